"""Sample planner state generator."""

import random
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Any

from ..models.project import Milestone, Project, Subject, WorkSession
from ..models.state import AppState
from ..utils.rounding import round_half_up

# Share of the timeline given to each of the five milestones
TIMELINE_DISTRIBUTION = [0.1, 0.15, 0.4, 0.25, 0.1]
DEFAULT_BUFFER = 1.5

ECONOMICS_MILESTONES = [
    ("Find News Article", 3,
     "Find a recent news article that relates to economic concepts. Save article with source and date."),
    ("Diagram & Key Concepts", 4,
     "Create relevant economic diagrams and identify the key concepts and theories to apply."),
    ("First Draft", 6,
     "Write the 800-word commentary with clear economic analysis, diagram integration, and theory application."),
    ("Revision & Theory", 4,
     "Strengthen economic theory application, check diagram accuracy, and ensure all IB criteria are met."),
    ("Final Submission", 2,
     "Final proofreading, format check, bibliography verification, and submission preparation."),
]

FULL_IA_MILESTONES = [
    ("Research & Topic Selection", 8,
     "Conduct preliminary research and identify a focused research question. Document sources."),
    ("Outline & Structure", 5,
     "Create detailed outline with clear argument structure. Plan word count allocation for each section."),
    ("First Draft", 15,
     "Write the complete first draft ({words} words). Focus on content and argument flow."),
    ("Revision & Refinement", 8,
     "Revise for clarity, strengthen arguments, check citations, and ensure rubric criteria alignment."),
    ("Final Polish", 4,
     "Final proofreading, format verification, bibliography check, and submission preparation."),
]

PROJECT_CATALOG = [
    ('econ-micro', "Economics Commentary 1: Microeconomics", Subject.ECONOMICS, 'commentary', 800),
    ('econ-macro', "Economics Commentary 2: Macroeconomics", Subject.ECONOMICS, 'commentary', 800),
    ('math', "Math AA HL IA", Subject.MATH, 'exploration', 3000),
    ('physics', "Physics HL IA", Subject.PHYSICS, 'investigation', 2500),
    ('history', "History SL IA", Subject.HISTORY, 'investigation', 2200),
    ('english', "English Lang & Lit SL IA", Subject.ENGLISH, 'analysis', 1500),
]


class StateGenerator:
    """Generates deterministic planner snapshots for demos and evaluation."""

    def __init__(self, seed: int = 42, config: dict = None):
        """Initialize generator with seed for reproducibility."""
        self.seed = seed
        self.random = random.Random(seed)
        self.config = config or {}
        self.generator_config = self.config.get('generator', {})

    def generate_milestones(
        self,
        project: Project,
        timeline_start: date,
        master_deadline: date,
    ) -> List[Milestone]:
        """Lay the fallback milestone template over the timeline."""
        template = ECONOMICS_MILESTONES if project.id.startswith('econ') else FULL_IA_MILESTONES
        total_days = (master_deadline - timeline_start).days

        milestones = []
        current_day = 0
        previous_id = None
        for index, (name, hours, description) in enumerate(template):
            start = timeline_start + timedelta(days=current_day)
            current_day += round_half_up(total_days * TIMELINE_DISTRIBUTION[index])

            milestones.append(Milestone(
                id=f"{project.id}-milestone-{index}",
                project_id=project.id,
                name=name,
                description=description.format(words=project.word_count),
                start_date=start,
                deadline=timeline_start + timedelta(days=current_day),
                estimated_hours=hours,
                buffer_multiplier=DEFAULT_BUFFER,
                dependencies=[previous_id] if previous_id else [],
            ))
            previous_id = milestones[-1].id

        return milestones

    def complete_past_milestones(self, milestones: List[Milestone], today: date) -> List[Milestone]:
        """Mark milestones due before today as done with randomized actual hours."""
        overrun_mean = self.generator_config.get('overrun_mean', 1.2)
        overrun_std = self.generator_config.get('overrun_std', 0.3)

        result = []
        for milestone in milestones:
            if milestone.deadline < today:
                overrun = max(0.5, self.random.gauss(overrun_mean, overrun_std))
                actual = round(milestone.scheduled_hours * overrun, 1)
                finished = datetime.combine(milestone.deadline, time(17, 0))
                session = WorkSession(
                    id=f"session-{milestone.id}",
                    start=finished - timedelta(minutes=round(actual * 60)),
                    duration_minutes=round(actual * 60),
                    note="Generated session",
                )
                milestone = replace(
                    milestone,
                    completed=True,
                    completed_at=finished,
                    actual_hours=actual,
                    work_sessions=[session],
                )
            result.append(milestone)
        return result

    def generate_state(
        self,
        today: date,
        master_deadline: Optional[date] = None,
        project_count: int = None,
        weekly_hours_budget: float = None,
    ) -> AppState:
        """Generate a complete snapshot with some history already completed."""
        history_days = self.generator_config.get('history_days', 21)
        timeline_weeks = self.generator_config.get('timeline_weeks', 12)
        planner = self.config.get('planner', {})

        master_deadline = master_deadline or today + timedelta(weeks=timeline_weeks)
        project_count = project_count or len(PROJECT_CATALOG)
        weekly_hours_budget = weekly_hours_budget or planner.get('weekly_hours_budget', 6)

        projects = []
        for project_id, name, subject, kind, words in PROJECT_CATALOG[:project_count]:
            project = Project(id=project_id, name=name, subject=subject, type=kind, word_count=words)
            # Stagger project starts so timelines do not line up exactly
            start = today - timedelta(days=self.random.randint(0, history_days))
            milestones = self.generate_milestones(project, start, master_deadline)
            milestones = self.complete_past_milestones(milestones, today)
            projects.append(replace(project, milestones=milestones))

        return AppState(
            projects=projects,
            master_deadline=master_deadline,
            weekly_hours_budget=weekly_hours_budget,
        )

    def generate_snapshot(self, today: date, **kwargs: Any) -> Dict[str, Any]:
        """Plain-data snapshot suitable for writing to JSON."""
        return self.generate_state(today, **kwargs).to_dict()

"""Rescheduling after completions, deadline edits and draft overlaps."""

import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional, Tuple

from ..models.analysis import RescheduleResult
from ..models.project import Milestone, Project

logger = logging.getLogger(__name__)

DRAFT_KEYWORDS = ('draft',)


def is_draft(milestone: Milestone, keywords: Tuple[str, ...] = DRAFT_KEYWORDS) -> bool:
    name = milestone.name.lower()
    return any(keyword in name for keyword in keywords)


def shift_milestone(milestone: Milestone, days: int) -> Milestone:
    """Copy of the milestone with start and deadline moved by days."""
    if days == 0:
        return milestone
    delta = timedelta(days=days)
    return replace(milestone, start_date=milestone.start_date + delta, deadline=milestone.deadline + delta)


def _latest_remaining(milestones: List[Milestone], exclude_id: Optional[str] = None) -> Optional[Milestone]:
    remaining = [m for m in milestones if not m.completed and m.id != exclude_id]
    if not remaining:
        return None
    return max(remaining, key=lambda m: m.deadline)


def reschedule_after_completion(
    project: Project,
    milestone_id: str,
    master_deadline: date,
    today: Optional[date] = None,
) -> RescheduleResult:
    """Move the remaining milestones by how early or late one was finished.

    Assumes a single linear chain per project; other projects are not
    touched.
    """
    target = project.find_milestone(milestone_id)
    if target is None:
        return RescheduleResult(updated_milestones=project.milestones, message="Milestone not found")

    if today is None:
        today = date.today()

    remaining = [m for m in project.milestones if not m.completed and m.id != milestone_id]
    if not remaining:
        return RescheduleResult(updated_milestones=project.milestones, message="All milestones completed!")

    days_early = (target.deadline - today).days

    if days_early == 0:
        updated = project.milestones
        message = "Completed on time!"
    else:
        # Early completion pulls dates in, late completion pushes them out
        updated = [
            m if m.completed or m.id == milestone_id else shift_milestone(m, -days_early)
            for m in project.milestones
        ]
        if days_early > 0:
            message = f"Saved {days_early} days - remaining milestones moved earlier"
        else:
            message = f"{-days_early} days behind schedule - remaining milestones pushed back"
        logger.info("Shifted %d milestones of %s by %d days", len(remaining), project.id, -days_early)

    last = _latest_remaining(updated, exclude_id=milestone_id)
    return RescheduleResult(
        updated_milestones=updated,
        message=message,
        impacted_project_ids=[project.id],
        deadline_at_risk=last is not None and last.deadline > master_deadline,
        new_completion_date=last.deadline if last is not None else None,
    )


def reschedule_after_deadline_change(
    project: Project,
    milestone_id: str,
    new_deadline: date,
    master_deadline: date,
) -> RescheduleResult:
    """Move one milestone's deadline and shift every later milestone with it."""
    index = next((i for i, m in enumerate(project.milestones) if m.id == milestone_id), None)
    if index is None:
        return RescheduleResult(updated_milestones=project.milestones, message="Milestone not found")

    target = project.milestones[index]
    delta = (new_deadline - target.deadline).days
    if delta == 0:
        return RescheduleResult(updated_milestones=project.milestones, message="No change in deadline")

    updated = list(project.milestones[:index])
    updated.append(replace(
        target,
        start_date=target.start_date + timedelta(days=delta),
        deadline=new_deadline,
    ))
    updated.extend(shift_milestone(m, delta) for m in project.milestones[index + 1:])

    downstream = len(project.milestones) - index - 1
    direction = "back" if delta > 0 else "forward"
    logger.info("Deadline of %s moved %d days; %d downstream milestones shifted", milestone_id, delta, downstream)

    last = _latest_remaining(updated)
    return RescheduleResult(
        updated_milestones=updated,
        message=f"Deadline moved {abs(delta)} days {direction}. {downstream} downstream milestones updated.",
        impacted_project_ids=[project.id],
        deadline_at_risk=last is not None and last.deadline > master_deadline,
        new_completion_date=last.deadline if last is not None else None,
    )


def _priority(project: Project):
    upcoming = next((m for m in project.milestones if not m.completed), None)
    if upcoming is None:
        return (1, date.max)
    return (0, upcoming.deadline)


def optimize_distribution(
    projects: List[Project],
    master_deadline: date,
    keywords: Tuple[str, ...] = DRAFT_KEYWORDS,
) -> List[Project]:
    """Shift projects so that their draft milestones do not overlap.

    Projects are ordered by their next incomplete deadline (projects with
    nothing left go last). Drafts are visited by start date and whenever a
    draft starts before the previous one ends, its whole project moves
    later to one day past that deadline. This is a greedy, order-dependent
    best effort: only adjacent drafts are compared, so an earlier shift is
    never re-checked against drafts further back, and the master deadline
    is not enforced. Drafts of the same project are compared like any
    other pair, so overlapping drafts within one project move that whole
    project without separating them.

    Drafts are milestones whose name contains one of keywords.
    """
    ordered = sorted(projects, key=_priority)
    by_id = {p.id: p for p in ordered}

    drafts = [
        (project.id, milestone.id)
        for project in ordered
        for milestone in project.milestones
        if is_draft(milestone, keywords) and not milestone.completed
    ]
    drafts.sort(key=lambda pair: by_id[pair[0]].find_milestone(pair[1]).start_date)

    for (prev_project, prev_id), (curr_project, curr_id) in zip(drafts, drafts[1:]):
        previous = by_id[prev_project].find_milestone(prev_id)
        current = by_id[curr_project].find_milestone(curr_id)

        if current.start_date < previous.deadline:
            days = (previous.deadline - current.start_date).days + 1
            project = by_id[curr_project]
            by_id[curr_project] = replace(
                project,
                milestones=[shift_milestone(m, days) for m in project.milestones],
            )
            logger.info("Shifted %s by %d days to clear draft overlap", curr_project, days)

    return [by_id[p.id] for p in ordered]

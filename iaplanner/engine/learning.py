"""Learning engine: effort multipliers from actual vs estimated hours."""

import logging
import math
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from ..models.analysis import AdjustedEstimate, LearnedMultipliers, MultiplierBucket
from ..models.project import Milestone, Phase, Project, Subject, WorkSession
from ..models.state import AppState
from ..utils.datetime_utils import start_of_week
from ..utils.rounding import round_half_up
from .phases import milestone_phase

logger = logging.getLogger(__name__)

# Samples needed before a bucket is trusted on its own
MIN_SAMPLES = 3


def milestone_ratio(milestone: Milestone) -> Optional[float]:
    """Actual / scheduled hours for a completed milestone with logged time."""
    if not milestone.completed or not milestone.actual_hours:
        return None

    scheduled = milestone.scheduled_hours
    if scheduled <= 0:
        return None

    return milestone.actual_hours / scheduled


def compute_multipliers(projects: List[Project]) -> LearnedMultipliers:
    """Average the actual/estimated ratio per phase, per subject and overall."""
    phase_data: Dict[Phase, List[float]] = {phase: [] for phase in Phase}
    subject_data: Dict[Subject, List[float]] = {subject: [] for subject in Subject}
    overall: List[float] = []

    for project in projects:
        for milestone in project.milestones:
            ratio = milestone_ratio(milestone)
            if ratio is None:
                continue

            phase_data[milestone_phase(milestone)].append(ratio)
            subject_data[project.subject].append(ratio)
            overall.append(ratio)

    multipliers = LearnedMultipliers(
        phases={phase: _bucket(ratios) for phase, ratios in phase_data.items()},
        subjects={subject: _bucket(ratios) for subject, ratios in subject_data.items()},
        overall=_bucket(overall),
    )
    logger.debug(
        "Computed multipliers from %d samples (overall %.2f)",
        multipliers.overall.sample_count,
        multipliers.overall.multiplier,
    )
    return multipliers


def _bucket(ratios: List[float]) -> MultiplierBucket:
    if not ratios:
        return MultiplierBucket()
    return MultiplierBucket(multiplier=sum(ratios) / len(ratios), sample_count=len(ratios))


def adjust_estimate(
    milestone: Milestone,
    subject: Subject,
    multipliers: LearnedMultipliers,
) -> AdjustedEstimate:
    """Adjust a milestone's scheduled hours by the most specific trusted multiplier.

    Priority is phase, then subject, then overall, each requiring
    MIN_SAMPLES samples. With fewer overall samples the overall multiplier
    is blended toward 1.0 in proportion to the samples available.
    """
    original_hours = milestone.scheduled_hours
    phase = milestone_phase(milestone)

    phase_bucket = multipliers.phases.get(phase, MultiplierBucket())
    subject_bucket = multipliers.subjects.get(subject, MultiplierBucket())
    overall_bucket = multipliers.overall

    applied = 1.0
    source = "AI estimate (no historical data)"
    sample_count = 0

    if phase_bucket.sample_count >= MIN_SAMPLES:
        applied = phase_bucket.multiplier
        source = f"{phase.value} phase ({phase_bucket.sample_count} samples)"
        sample_count = phase_bucket.sample_count
    elif subject_bucket.sample_count >= MIN_SAMPLES:
        applied = subject_bucket.multiplier
        source = f"{subject.value} subject ({subject_bucket.sample_count} samples)"
        sample_count = subject_bucket.sample_count
    elif overall_bucket.sample_count >= MIN_SAMPLES:
        applied = overall_bucket.multiplier
        source = f"overall average ({overall_bucket.sample_count} samples)"
        sample_count = overall_bucket.sample_count
    elif overall_bucket.sample_count > 0:
        weight = overall_bucket.sample_count / MIN_SAMPLES
        applied = 1.0 + (overall_bucket.multiplier - 1.0) * weight
        source = f"preliminary ({overall_bucket.sample_count}/{MIN_SAMPLES} samples needed)"
        sample_count = overall_bucket.sample_count

    if sample_count >= MIN_SAMPLES * 2:
        confidence = "high"
    elif sample_count >= MIN_SAMPLES:
        confidence = "medium"
    else:
        confidence = "low"

    return AdjustedEstimate(
        original_hours=original_hours,
        adjusted_hours=original_hours * applied,
        applied_multiplier=applied,
        source=source,
        confidence=confidence,
        sample_count=sample_count,
    )


def multiplier_explanation(multiplier: float) -> str:
    """Human-readable description of a multiplier."""
    if multiplier < 0.8:
        return f"You work {round_half_up((1 - multiplier) * 100)}% faster than estimated"
    if multiplier > 1.2:
        return f"You take {round_half_up((multiplier - 1) * 100)}% longer than estimated"
    return "You work close to the estimated pace"


def completed_milestone_data(projects: List[Project]) -> Dict[str, int]:
    """Count completed milestones and how many of them have logged hours."""
    total = 0
    with_data = 0

    for project in projects:
        for milestone in project.milestones:
            if milestone.completed:
                total += 1
                if milestone.actual_hours and milestone.actual_hours > 0:
                    with_data += 1

    return {'total': total, 'with_data': with_data}


def weekly_stats(state: AppState, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Logged work for the week (starting Sunday) containing now."""
    if now is None:
        now = datetime.now()

    week_start = datetime.combine(start_of_week(now.date()), datetime.min.time())
    today_start = datetime.combine(now.date(), datetime.min.time())

    logged_minutes = 0
    logged_today = False
    sessions = 0

    for milestone in state.all_milestones:
        for session in milestone.work_sessions:
            started = session.start.replace(tzinfo=None)
            if started >= week_start:
                logged_minutes += session.duration_minutes
                sessions += 1
                if started >= today_start:
                    logged_today = True

    return {
        'planned_hours': state.weekly_hours_budget,
        'logged_hours': logged_minutes / 60,
        'logged_today': logged_today,
        'sessions_this_week': sessions,
    }


def log_manual_hours(
    project: Project,
    milestone_id: str,
    hours: float,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Project:
    """Record a manual work session and recompute the milestone's actual hours.

    Raises ValueError if hours is not a positive finite number.
    """
    if hours is None or not math.isfinite(hours) or hours <= 0:
        raise ValueError(f"Logged hours must be a positive number, got {hours!r}")

    if project.find_milestone(milestone_id) is None:
        logger.debug("Milestone %s not found in project %s", milestone_id, project.id)
        return project

    if now is None:
        now = datetime.now()

    duration = round_half_up(hours * 60)
    session = WorkSession(
        id=f"manual-{uuid.uuid4().hex[:8]}",
        start=now - timedelta(minutes=duration),
        duration_minutes=duration,
        note=note,
    )

    milestones = []
    for milestone in project.milestones:
        if milestone.id == milestone_id:
            sessions = milestone.work_sessions + [session]
            total_minutes = sum(s.duration_minutes for s in sessions)
            milestone = replace(milestone, work_sessions=sessions, actual_hours=total_minutes / 60)
            logger.info("Logged %.2fh on milestone %s", hours, milestone_id)
        milestones.append(milestone)

    return replace(project, milestones=milestones)


def complete_milestone(
    project: Project,
    milestone_id: str,
    now: Optional[datetime] = None,
) -> Project:
    """Toggle a milestone's completion flag."""
    if now is None:
        now = datetime.now()

    milestones = []
    for milestone in project.milestones:
        if milestone.id == milestone_id:
            completed = not milestone.completed
            milestone = replace(
                milestone,
                completed=completed,
                completed_at=now if completed else None,
            )
        milestones.append(milestone)

    return replace(project, milestones=milestones)


def adjusted_estimates(projects: List[Project]) -> List[Dict[str, Any]]:
    """Adjusted estimates for every incomplete milestone."""
    multipliers = compute_multipliers(projects)
    rows = []
    for project in projects:
        for milestone in project.incomplete_milestones():
            estimate = adjust_estimate(milestone, project.subject, multipliers)
            rows.append({
                'project_id': project.id,
                'milestone_id': milestone.id,
                'milestone_name': milestone.name,
                **estimate.to_dict(),
            })
    return rows

"""Deep-work analysis: session layout, context switches and focus violations."""

import logging
from collections import OrderedDict
from datetime import date
from typing import Dict, List, Optional, Any

from ..models.analysis import (
    AutoFix,
    AutoFixAction,
    ContextSwitch,
    DailyScheduleAnalysis,
    FullScheduleAnalysis,
    ScheduledSession,
    ScheduleViolation,
    SuggestedChange,
    ViolationType,
)
from ..models.project import Milestone, Phase, Project
from ..models.settings import DeepWorkSettings
from ..models.state import AppState
from ..utils.datetime_utils import date_range, format_hour, format_short_date
from ..utils.rounding import round_half_up
from .phases import is_deep_work_phase, milestone_phase

logger = logging.getLogger(__name__)

# Synthetic day layout
DAY_START_HOUR = 9
SESSION_GAP_HOURS = 0.5

SWITCH_SCORE_PENALTY = 10
DEFAULT_VIOLATION_PENALTY = 10
EXCESS_PROJECT_PENALTY = 15
FRAGMENTED_DAY_PENALTY = 20
FRAGMENTED_MILESTONE_PENALTY = 15
MAX_SINGLE_BLOCK_HOURS = 8


def minimum_session_hours(phase: Phase, settings: DeepWorkSettings) -> float:
    return settings.minimum_session_hours.get(phase, 0.0)


def total_time_with_buffers(milestone: Milestone, settings: DeepWorkSettings) -> Dict[str, float]:
    """Core hours plus prep and decompress buffers for deep-work phases."""
    core_hours = milestone.scheduled_hours
    deep = is_deep_work_phase(milestone_phase(milestone))
    prep = settings.prep_buffer_minutes if deep else 0
    decompress = settings.decompress_buffer_minutes if deep else 0

    return {
        'core_hours': core_hours,
        'prep_minutes': prep,
        'decompress_minutes': decompress,
        'total_minutes': core_hours * 60 + prep + decompress,
    }


def detect_minimum_session_violations(
    milestones: List[Milestone],
    settings: DeepWorkSettings,
) -> List[ScheduleViolation]:
    """Flag deep-work milestones scheduled for less than their phase minimum."""
    violations = []

    for milestone in milestones:
        if milestone.completed:
            continue

        phase = milestone_phase(milestone)
        if not is_deep_work_phase(phase):
            continue

        minimum = minimum_session_hours(phase, settings)
        scheduled = milestone.scheduled_hours
        if minimum <= 0 or scheduled >= minimum:
            continue

        shortfall = minimum - scheduled
        minimum_text = f"{minimum:g}"
        violations.append(ScheduleViolation(
            id=f"min-session-{milestone.id}",
            type=ViolationType.MINIMUM_SESSION,
            severity="error" if phase == Phase.DRAFT else "warning",
            message=(
                f'"{milestone.name}" is scheduled for {scheduled:.1f}h but {phase.value} work '
                f'requires minimum {minimum_text}h blocks for productive focus.'
            ),
            affected_milestone_ids=[milestone.id],
            affected_date=milestone.start_date,
            productivity_penalty_percent=round_half_up(shortfall / minimum * 30),
            auto_fix=AutoFix(
                description=f"Extend session to {minimum_text}h minimum block",
                action=AutoFixAction.EXTEND,
                suggested_changes=[
                    SuggestedChange(milestone.id, 'scheduled_time', minimum_text),
                ],
            ),
        ))

    return violations


def detect_fragmented_milestones(milestones: List[Milestone]) -> List[ScheduleViolation]:
    """Flag deep-work milestones spread over several days that fit in one block."""
    violations = []

    for milestone in milestones:
        if milestone.completed:
            continue

        phase = milestone_phase(milestone)
        span = milestone.span_days
        hours = milestone.scheduled_hours

        if span > 1 and hours <= MAX_SINGLE_BLOCK_HOURS and is_deep_work_phase(phase):
            violations.append(ScheduleViolation(
                id=f"fragmented-milestone-{milestone.id}",
                type=ViolationType.FRAGMENTED_WORK,
                severity="warning",
                message=(
                    f'"{milestone.name}" is spread across {span} days but only requires '
                    f'{hours:.1f}h. Consider consolidating into a single focused session.'
                ),
                affected_milestone_ids=[milestone.id],
                productivity_penalty_percent=FRAGMENTED_MILESTONE_PENALTY,
                auto_fix=AutoFix(
                    description=f"Schedule as single {hours:.1f}h block",
                    action=AutoFixAction.CONSOLIDATE,
                    suggested_changes=[
                        SuggestedChange(milestone.id, 'deadline', milestone.start_date.isoformat()),
                    ],
                ),
            ))

    return violations


def analyze_daily_schedule(
    day: date,
    milestones: List[Milestone],
    projects: List[Project],
    settings: DeepWorkSettings,
) -> DailyScheduleAnalysis:
    """Lay out the day's active milestones and score the result.

    Sessions start at 09:00, grouped by project in first-seen order, with a
    30 minute gap between sessions. Each boundary between two project groups
    counts as one context switch.
    """
    active = [
        m for m in milestones
        if not m.completed and m.start_date <= day <= m.deadline
    ]

    groups: Dict[str, List[Milestone]] = OrderedDict()
    for milestone in active:
        groups.setdefault(milestone.project_id, []).append(milestone)

    project_count = len(groups)
    sessions: List[ScheduledSession] = []
    switches: List[ContextSwitch] = []
    violations: List[ScheduleViolation] = []

    current_hour = float(DAY_START_HOUR)
    project_order = list(groups.keys())

    for index, project_id in enumerate(project_order):
        for milestone in groups[project_id]:
            phase = milestone_phase(milestone)
            hours = milestone.scheduled_hours
            deep = is_deep_work_phase(phase)

            sessions.append(ScheduledSession(
                id=f"session-{milestone.id}-{day.isoformat()}",
                milestone_id=milestone.id,
                project_id=milestone.project_id,
                date=day,
                start_time=format_hour(current_hour),
                end_time=format_hour(current_hour + hours),
                duration_hours=hours,
                phase=phase,
                is_deep_work=deep,
                includes_prep=deep,
                includes_decompress=deep,
            ))
            current_hour += hours + SESSION_GAP_HOURS

        if index < len(project_order) - 1:
            switches.append(ContextSwitch(
                date=day,
                from_project_id=project_id,
                to_project_id=project_order[index + 1],
                penalty_minutes=settings.context_switch_penalty_minutes,
            ))

    total_hours = sum(s.duration_hours for s in sessions)
    penalty_hours = len(switches) * settings.context_switch_penalty_minutes / 60
    effective_hours = max(0.0, total_hours - penalty_hours)

    excess = project_count - settings.max_projects_per_day
    if excess > 0:
        violations.append(ScheduleViolation(
            id=f"max-ias-{day.isoformat()}",
            type=ViolationType.MAX_IAS_PER_DAY,
            severity="warning",
            message=(
                f"{project_count} different IAs scheduled on {format_short_date(day)} "
                f"(max recommended: {settings.max_projects_per_day}). "
                f"This causes significant context switching overhead."
            ),
            affected_milestone_ids=[m.id for m in active],
            affected_date=day,
            productivity_penalty_percent=excess * EXCESS_PROJECT_PENALTY,
            auto_fix=AutoFix(
                description=f"Move {excess} IA(s) to another day",
                action=AutoFixAction.MOVE,
            ),
        ))

    violations.extend(_fragmented_day_violations(day, sessions, projects))

    score = 100
    score -= len(switches) * SWITCH_SCORE_PENALTY
    for violation in violations:
        score -= violation.productivity_penalty_percent or DEFAULT_VIOLATION_PENALTY
    # Applied on top of the max_ias_per_day violation penalty above
    if excess > 0:
        score -= excess * EXCESS_PROJECT_PENALTY
    score = max(0, min(100, score))

    return DailyScheduleAnalysis(
        date=day,
        sessions=sessions,
        ia_count=project_count,
        total_hours=total_hours,
        effective_hours=effective_hours,
        context_switches=switches,
        violations=violations,
        productivity_score=score,
    )


def _session_hour(value: str) -> int:
    return int(value.split(':')[0])


def _fragmented_day_violations(
    day: date,
    sessions: List[ScheduledSession],
    projects: List[Project],
) -> List[ScheduleViolation]:
    """Same-project sessions with another project's session between them."""
    violations = []
    names = {p.id: p.name for p in projects}

    by_project: Dict[str, List[ScheduledSession]] = OrderedDict()
    for session in sessions:
        by_project.setdefault(session.project_id, []).append(session)

    for project_id, own in by_project.items():
        if len(own) < 2:
            continue
        others = [s for s in sessions if s.project_id != project_id]

        for current, following in zip(own, own[1:]):
            current_end = _session_hour(current.end_time)
            next_start = _session_hour(following.start_time)
            in_between = any(
                current_end <= _session_hour(s.start_time) < next_start
                for s in others
            )
            if not in_between:
                continue

            violations.append(ScheduleViolation(
                id=f"fragmented-{project_id}-{day.isoformat()}",
                type=ViolationType.FRAGMENTED_WORK,
                severity="warning",
                message=(
                    f"{names.get(project_id, 'IA')} work is split across the day with other "
                    f"work in between. This fragments focus and reduces productivity."
                ),
                affected_milestone_ids=[current.milestone_id, following.milestone_id],
                affected_date=day,
                productivity_penalty_percent=FRAGMENTED_DAY_PENALTY,
                auto_fix=AutoFix(
                    description="Consolidate into continuous block",
                    action=AutoFixAction.CONSOLIDATE,
                ),
            ))

    return violations


def analyze_full_schedule(state: AppState) -> FullScheduleAnalysis:
    """Run the daily analysis over every date an incomplete milestone covers."""
    settings = state.deep_work_settings
    milestones = state.all_milestones

    days = set()
    for milestone in milestones:
        if milestone.completed:
            continue
        days.update(date_range(milestone.start_date, milestone.deadline))

    daily = [
        analyze_daily_schedule(day, milestones, state.projects, settings)
        for day in sorted(days)
    ]

    violations: List[ScheduleViolation] = []
    for analysis in daily:
        violations.extend(analysis.violations)
    violations.extend(detect_minimum_session_violations(milestones, settings))
    violations.extend(detect_fragmented_milestones(milestones))

    total_switches = sum(len(a.context_switches) for a in daily)
    penalty_hours = total_switches * settings.context_switch_penalty_minutes / 60

    if daily:
        overall = round_half_up(sum(a.productivity_score for a in daily) / len(daily))
    else:
        overall = 100

    logger.debug(
        "Analyzed %d days: %d violations, %d context switches, score %d",
        len(daily), len(violations), total_switches, overall,
    )

    return FullScheduleAnalysis(
        violations=violations,
        daily_analyses=daily,
        overall_productivity_score=overall,
        total_context_switches=total_switches,
        total_penalty_hours=penalty_hours,
    )


def is_within_deep_work_window(start_hour: float, end_hour: float, settings: DeepWorkSettings) -> bool:
    """Whether a slot fits inside a configured deep-work window."""
    if not settings.enforce_deep_work_windows:
        return True

    return any(
        start_hour >= window_start and end_hour <= window_end
        for window_start, window_end in settings.deep_work_windows
    )


def calculate_effective_hours(
    scheduled_hours: float,
    switch_count: int,
    settings: DeepWorkSettings,
) -> Dict[str, float]:
    """Hours left after context-switch penalties."""
    penalty_hours = switch_count * settings.context_switch_penalty_minutes / 60
    effective = max(0.0, scheduled_hours - penalty_hours)
    efficiency = round_half_up(effective / scheduled_hours * 100) if scheduled_hours > 0 else 100

    return {
        'scheduled_hours': scheduled_hours,
        'penalty_hours': penalty_hours,
        'effective_hours': effective,
        'efficiency_percent': efficiency,
    }


def improvement_suggestions(violations: List[ScheduleViolation]) -> List[Dict[str, str]]:
    """Grouped remediation suggestions for a list of violations."""
    counts: Dict[ViolationType, int] = {}
    for violation in violations:
        counts[violation.type] = counts.get(violation.type, 0) + 1

    suggestions = []

    short = counts.get(ViolationType.MINIMUM_SESSION, 0)
    if short:
        suggestions.append({
            'title': "Extend Short Sessions",
            'description': f"{short} session(s) are shorter than recommended for deep work.",
            'impact': f"+{short * 10}% productivity",
        })

    crowded = counts.get(ViolationType.MAX_IAS_PER_DAY, 0)
    if crowded:
        suggestions.append({
            'title': "Reduce Daily IA Count",
            'description': f"{crowded} day(s) have too many different IAs scheduled.",
            'impact': f"+{crowded * 15}% productivity",
        })

    fragmented = counts.get(ViolationType.FRAGMENTED_WORK, 0)
    if fragmented:
        suggestions.append({
            'title': "Consolidate Fragmented Work",
            'description': f"{fragmented} work block(s) could be consolidated for better focus.",
            'impact': f"+{fragmented * 15}% productivity",
        })

    return suggestions


def describe_violation(violation: ScheduleViolation) -> Dict[str, str]:
    """Display descriptor (icon, color, title) for a violation."""
    kind = violation.type
    if kind == ViolationType.MINIMUM_SESSION:
        icon, title = 'clock', "Session Too Short"
        color = 'red' if violation.severity == "error" else 'yellow'
    elif kind == ViolationType.CONTEXT_SWITCH:
        icon, color, title = 'shuffle', 'yellow', "Context Switch Detected"
    elif kind == ViolationType.MAX_IAS_PER_DAY:
        icon, color, title = 'layers', 'orange', "Too Many IAs"
    elif kind == ViolationType.FRAGMENTED_WORK:
        icon, color, title = 'scissors', 'yellow', "Fragmented Work"
    elif kind == ViolationType.DEEP_WORK_CONFLICT:
        icon, color, title = 'alert-triangle', 'red', "Deep Work Conflict"
    else:
        raise ValueError(f"Unknown violation type: {kind}")

    return {'icon': icon, 'color': color, 'title': title, 'description': violation.message}


def summarize(analysis: FullScheduleAnalysis) -> Dict[str, Any]:
    """Compact summary used in reports."""
    return {
        'days_analyzed': len(analysis.daily_analyses),
        'violations': len(analysis.violations),
        'overall_productivity_score': analysis.overall_productivity_score,
        'total_context_switches': analysis.total_context_switches,
        'total_penalty_hours': analysis.total_penalty_hours,
        'suggestions': improvement_suggestions(analysis.violations),
    }

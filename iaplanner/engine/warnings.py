"""Schedule warnings with actionable fixes.

Every check turns a detected problem into a ``ScheduleWarning`` carrying two
or three ``ScheduleFix`` options. A fix holds a plain action record;
``apply_fix`` interprets it against a state snapshot and returns a new
snapshot together with a ``FixResult``. Expected failures (unknown ids,
no-op changes) are reported through ``FixResult.success`` and leave the
state untouched.
"""

import logging
import math
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from ..models.analysis import ScheduleViolation, ViolationType
from ..models.project import Milestone, Phase, Project
from ..models.risk import Blocker, BlockerSeverity
from ..models.settings import BlockerSettings
from ..models.state import AppState
from ..models.warnings import (
    SEVERITY_RANK,
    CompleteMilestone,
    ConsolidateMilestone,
    DismissRisk,
    EscalateBlocker,
    ExtendDeadline,
    ExtendSession,
    FixAction,
    FixResult,
    FixRisk,
    FixType,
    KeepSchedule,
    OptimizationScenario,
    ScaleEstimates,
    ScheduleFix,
    ScheduleWarning,
    SequenceDrafts,
    SetWeeklyHours,
    ShiftMilestones,
    WarningSeverity,
    WarningType,
)
from ..utils.datetime_utils import date_range, format_long_date, format_short_date, start_of_week
from .blockers import (
    blockers_needing_attention,
    critical_blockers,
    escalate_blocker,
    high_priority_risks,
    is_blocker_overdue,
    is_blocker_stale,
    needs_follow_up,
)
from .deepwork import analyze_full_schedule
from .energy import describe_mismatch, detect_energy_mismatches
from .feasibility import MAX_SUGGESTED_WEEKLY_HOURS, check_feasibility
from .learning import complete_milestone
from .phases import milestone_phase
from .reschedule import is_draft, optimize_distribution, reschedule_after_completion, shift_milestone

logger = logging.getLogger(__name__)

MEDIUM_RISK_WEEKLY_HOURS = 12
SEVERE_MISMATCH_PENALTY = 30
POLISH_SCOPE_FACTOR = 0.5
WRITING_KEYWORDS = ('draft', 'write')


def _start_of_day(today: date) -> datetime:
    return datetime.combine(today, time())


def _keep_fix(warning_id: str, label: str = "Keep current schedule", risk: FixRisk = FixRisk.MEDIUM) -> ScheduleFix:
    return ScheduleFix(
        id=f"{warning_id}-keep",
        type=FixType.KEEP,
        label=label,
        description="Acknowledge the warning without changing anything",
        impact="No changes",
        action=KeepSchedule(),
        risk=risk,
    )


# Checks


def _deadline_feasibility(state: AppState, today: date) -> Optional[ScheduleWarning]:
    feasibility = check_feasibility(state.projects, state.master_deadline, state.weekly_hours_budget, today)
    if feasibility.is_feasible:
        return None

    needed = feasibility.total_hours_needed
    suggested_deadline = today + timedelta(weeks=feasibility.weeks_needed + 1)
    warning_id = 'deadline-feasibility'

    fixes = [
        ScheduleFix(
            id=f"{warning_id}-extend",
            type=FixType.EXTEND_DEADLINE,
            label=f"Extend to {format_long_date(suggested_deadline)}",
            description=f"Move deadline to allow {feasibility.weeks_needed} weeks of work",
            impact=f"Adds {feasibility.weeks_needed - math.floor(feasibility.weeks_available)} weeks",
            action=ExtendDeadline(suggested_deadline),
            risk=FixRisk.LOW,
            recommended=True,
        ),
    ]

    if feasibility.weeks_available > 0:
        hours = math.ceil(needed / feasibility.weeks_available)
        fixes.append(ScheduleFix(
            id=f"{warning_id}-hours",
            type=FixType.INCREASE_HOURS,
            label=f"Increase to {hours}h/week",
            description="Work more hours each week to meet current deadline",
            impact=f"+{hours - state.weekly_hours_budget:g}h per week",
            action=SetWeeklyHours(hours),
            risk=FixRisk.MEDIUM if hours <= MEDIUM_RISK_WEEKLY_HOURS else FixRisk.HIGH,
        ))

    fixes.append(ScheduleFix(
        id=f"{warning_id}-scope",
        type=FixType.REDUCE_SCOPE,
        label="Trim polish work",
        description="Halve the estimates of remaining polish milestones",
        impact="Less time for final checks",
        action=ScaleEstimates(POLISH_SCOPE_FACTOR, (Phase.POLISH,)),
        risk=FixRisk.HIGH,
    ))

    return ScheduleWarning(
        id=warning_id,
        type=WarningType.DEADLINE_IMPOSSIBLE,
        severity=WarningSeverity.CRITICAL,
        title="Schedule exceeds available time",
        description=(
            f"You need {needed:.0f} hours but only have "
            f"{feasibility.available_hours:.0f} hours available."
        ),
        impact=f"{feasibility.shortfall:.0f} hours short",
        fixes=fixes,
        affected_project_ids=[p.id for p in state.projects],
        hours_short=feasibility.shortfall,
    )


def _overdue_warnings(state: AppState, today: date) -> List[ScheduleWarning]:
    warnings = []

    for project in state.projects:
        overdue = [m for m in project.milestones if not m.completed and m.deadline < today]
        if not overdue:
            continue

        first = min(overdue, key=lambda m: m.start_date)
        days_late = max((today - m.deadline).days for m in overdue)
        shift = (today - first.start_date).days
        warning_id = f"overdue-{project.id}"
        names = ", ".join(f'"{m.name}"' for m in overdue)

        warnings.append(ScheduleWarning(
            id=warning_id,
            type=WarningType.OVERDUE,
            severity=WarningSeverity.CRITICAL,
            title=f"{project.name}: {len(overdue)} overdue milestone{'s' if len(overdue) > 1 else ''}",
            description=f"{names} passed {'their deadlines' if len(overdue) > 1 else 'its deadline'}.",
            impact=f"Up to {days_late} days late",
            fixes=[
                ScheduleFix(
                    id=f"{warning_id}-shift",
                    type=FixType.SHIFT_MILESTONES,
                    label="Restart from today",
                    description=f"Push the remaining {project.name} milestones back {shift} days",
                    impact="Later dates for every remaining milestone",
                    action=ShiftMilestones(project.id, shift),
                    risk=FixRisk.LOW,
                    recommended=True,
                ),
                ScheduleFix(
                    id=f"{warning_id}-complete",
                    type=FixType.MARK_COMPLETE,
                    label=f'Mark "{first.name}" as done',
                    description="Record the milestone as finished if the work already happened",
                    impact="Remaining milestones follow the actual completion date",
                    action=CompleteMilestone(first.id),
                    risk=FixRisk.MEDIUM,
                ),
                ScheduleFix(
                    id=f"{warning_id}-extend",
                    type=FixType.EXTEND_DEADLINE,
                    label=f"Extend deadline by {days_late} days",
                    description="Give the whole plan the time that was lost",
                    impact=f"Final deadline becomes {format_long_date(state.master_deadline + timedelta(days=days_late))}",
                    action=ExtendDeadline(state.master_deadline + timedelta(days=days_late)),
                    risk=FixRisk.MEDIUM,
                ),
            ],
            affected_project_ids=[project.id],
            affected_milestone_ids=[m.id for m in overdue],
            days_late=days_late,
        ))

    return warnings


def _deadline_risk_warnings(state: AppState) -> List[ScheduleWarning]:
    warnings = []

    for project in state.projects:
        remaining = project.incomplete_milestones()
        if not remaining:
            continue
        deadline = project.target_deadline or state.master_deadline
        last = max(remaining, key=lambda m: m.deadline)
        days_late = (last.deadline - deadline).days
        if days_late <= 0:
            continue

        warning_id = f"deadline-risk-{project.id}"
        warnings.append(ScheduleWarning(
            id=warning_id,
            type=WarningType.DEADLINE_RISK,
            severity=WarningSeverity.CRITICAL,
            title=f"{project.name} finishes after the deadline",
            description=(
                f'"{last.name}" is due {format_short_date(last.deadline)}, '
                f"{days_late} days after {format_short_date(deadline)}."
            ),
            impact=f"{days_late} days late",
            fixes=[
                ScheduleFix(
                    id=f"{warning_id}-extend",
                    type=FixType.EXTEND_DEADLINE,
                    label=f"Extend to {format_long_date(last.deadline)}",
                    description="Move the master deadline to the last milestone",
                    impact=f"Adds {days_late} days",
                    action=ExtendDeadline(last.deadline),
                    risk=FixRisk.LOW,
                    recommended=True,
                ),
                ScheduleFix(
                    id=f"{warning_id}-shift",
                    type=FixType.SHIFT_MILESTONES,
                    label=f"Pull {project.name} {days_late} days earlier",
                    description="Move every remaining milestone earlier to fit the deadline",
                    impact="Less slack between now and the next milestone",
                    action=ShiftMilestones(project.id, -days_late),
                    risk=FixRisk.HIGH,
                ),
            ],
            affected_project_ids=[project.id],
            affected_milestone_ids=[last.id],
            days_late=days_late,
        ))

    return warnings


def weekly_allocations(state: AppState) -> Dict[date, float]:
    """Scheduled hours per week (keyed by Sunday), spread evenly over each milestone's days."""
    weeks: Dict[date, float] = {}
    for milestone in state.all_milestones:
        if milestone.completed:
            continue
        per_day = milestone.scheduled_hours / milestone.span_days
        for day in date_range(milestone.start_date, milestone.deadline):
            week = start_of_week(day)
            weeks[week] = weeks.get(week, 0.0) + per_day
    return dict(sorted(weeks.items()))


def _weekly_budget_warning(state: AppState) -> Optional[ScheduleWarning]:
    allocations = weekly_allocations(state)
    budget = state.weekly_hours_budget
    over = {week: hours for week, hours in allocations.items() if hours > budget}
    if not over:
        return None

    overage = sum(hours - budget for hours in over.values())
    peak = math.ceil(max(allocations.values()))
    warning_id = 'weekly-budget'

    return ScheduleWarning(
        id=warning_id,
        type=WarningType.WEEKLY_BUDGET_EXCEEDED,
        severity=WarningSeverity.CRITICAL if len(over) > 2 else WarningSeverity.WARNING,
        title=f"{len(over)} week{'s' if len(over) > 1 else ''} over budget",
        description=f"Some weeks have more work scheduled than your {budget:g}h/week budget",
        impact=f"{overage:.1f}h over budget total",
        fixes=[
            ScheduleFix(
                id=f"{warning_id}-hours",
                type=FixType.INCREASE_HOURS,
                label=f"Increase to {peak}h/week",
                description="Increase weekly budget to accommodate peak weeks",
                impact="No schedule changes needed",
                action=SetWeeklyHours(peak),
                risk=FixRisk.MEDIUM,
                recommended=True,
            ),
            ScheduleFix(
                id=f"{warning_id}-sequence",
                type=FixType.SEQUENCE_DRAFTS,
                label="Spread drafts apart",
                description="Stagger projects so drafting phases do not stack up",
                impact="Lighter peak weeks, may extend timeline",
                action=SequenceDrafts(),
                risk=FixRisk.LOW,
            ),
            _keep_fix(warning_id, "Accept heavy weeks", FixRisk.HIGH),
        ],
    )


def draft_overlaps(projects: List[Project]) -> List[Tuple[Milestone, Milestone]]:
    """Pairs of incomplete drafts from different projects whose date ranges intersect.

    A draft starting on the day another one ends is a hand-off, not an overlap.
    """
    drafts = [m for p in projects for m in p.milestones if not m.completed and is_draft(m, WRITING_KEYWORDS)]
    overlaps = []
    for i, first in enumerate(drafts):
        for second in drafts[i + 1:]:
            if first.project_id == second.project_id:
                continue
            if first.start_date < second.deadline and second.start_date < first.deadline:
                overlaps.append((first, second))
    return overlaps


def _draft_overlap_warning(state: AppState) -> Optional[ScheduleWarning]:
    overlaps = draft_overlaps(state.projects)
    if not overlaps:
        return None

    project_ids = []
    milestone_ids = []
    for pair in overlaps:
        for milestone in pair:
            if milestone.project_id not in project_ids:
                project_ids.append(milestone.project_id)
            if milestone.id not in milestone_ids:
                milestone_ids.append(milestone.id)

    warning_id = 'draft-overlap'
    return ScheduleWarning(
        id=warning_id,
        type=WarningType.DRAFT_OVERLAP,
        severity=WarningSeverity.CRITICAL if len(overlaps) > 2 else WarningSeverity.WARNING,
        title=f"{len(overlaps)} draft phase{'s' if len(overlaps) > 1 else ''} overlap",
        description="Writing multiple drafts simultaneously reduces quality and focus",
        impact="Reduced draft quality, mental fatigue",
        fixes=[
            ScheduleFix(
                id=f"{warning_id}-sequence",
                type=FixType.SEQUENCE_DRAFTS,
                label="Sequence drafts",
                description="Schedule one draft at a time",
                impact="Better focus, may extend timeline",
                action=SequenceDrafts(),
                risk=FixRisk.LOW,
                recommended=True,
            ),
            _keep_fix(warning_id, "Write drafts in parallel"),
        ],
        affected_project_ids=project_ids,
        affected_milestone_ids=milestone_ids,
    )


def _violation_fixes(state: AppState, violation: ScheduleViolation) -> List[ScheduleFix]:
    warning_id = violation.id
    changes = violation.auto_fix.suggested_changes if violation.auto_fix else []
    first_id = violation.affected_milestone_ids[0] if violation.affected_milestone_ids else None

    if violation.type == ViolationType.MINIMUM_SESSION and changes:
        hours = float(changes[0].new_value)
        return [
            ScheduleFix(
                id=f"{warning_id}-extend",
                type=FixType.EXTEND_SESSION,
                label=f"Extend to {hours:g}h",
                description=violation.auto_fix.description,
                impact="Enough time to get into focused work",
                action=ExtendSession(changes[0].milestone_id, hours),
                risk=FixRisk.LOW,
                recommended=True,
            ),
            _keep_fix(warning_id),
        ]

    if violation.type == ViolationType.FRAGMENTED_WORK and changes:
        return [
            ScheduleFix(
                id=f"{warning_id}-consolidate",
                type=FixType.CONSOLIDATE,
                label="Consolidate into one day",
                description=violation.auto_fix.description,
                impact="One uninterrupted block instead of several short ones",
                action=ConsolidateMilestone(changes[0].milestone_id, date.fromisoformat(changes[0].new_value)),
                risk=FixRisk.LOW,
                recommended=True,
            ),
            _keep_fix(warning_id),
        ]

    # Day-level violations: move the last affected milestone to the next day
    target_id = violation.affected_milestone_ids[-1] if violation.affected_milestone_ids else first_id
    target = state.find_milestone(target_id) if target_id else None
    fixes = []
    if target is not None:
        fixes.append(ScheduleFix(
            id=f"{warning_id}-move",
            type=FixType.SHIFT_MILESTONES,
            label=f'Move "{target.name}" a day later',
            description=violation.auto_fix.description if violation.auto_fix else "Spread work across days",
            impact="Fewer projects competing for the same day",
            action=ShiftMilestones(target.project_id, 1, (target.id,)),
            risk=FixRisk.LOW,
            recommended=True,
        ))
    fixes.append(_keep_fix(warning_id))
    return fixes


def _deep_work_warnings(state: AppState) -> List[ScheduleWarning]:
    analysis = analyze_full_schedule(state)
    warnings = []

    for violation in analysis.violations:
        if violation.type == ViolationType.MINIMUM_SESSION and violation.severity == "error":
            severity = WarningSeverity.WARNING
        else:
            severity = WarningSeverity.INFO

        affected_projects = []
        for milestone_id in violation.affected_milestone_ids:
            milestone = state.find_milestone(milestone_id)
            if milestone is not None and milestone.project_id not in affected_projects:
                affected_projects.append(milestone.project_id)

        warnings.append(ScheduleWarning(
            id=violation.id,
            type=WarningType.DEEP_WORK,
            severity=severity,
            title=violation.type.value.replace('_', ' ').capitalize(),
            description=violation.message,
            impact=f"-{violation.productivity_penalty_percent or 0}% productivity",
            fixes=_violation_fixes(state, violation),
            affected_project_ids=affected_projects,
            affected_milestone_ids=list(violation.affected_milestone_ids),
        ))

    return warnings


def _energy_warnings(state: AppState, today: date) -> List[ScheduleWarning]:
    settings = state.energy_settings
    if not settings.enforce_energy_matching:
        return []

    upcoming = [m for m in state.all_milestones if m.start_date >= today]
    warnings = []

    for mismatch in detect_energy_mismatches(upcoming, state.projects, settings):
        milestone = state.find_milestone(mismatch.milestone_id)
        warning_id = mismatch.id
        penalty = mismatch.productivity_impact_percent

        other_day = next((s for s in mismatch.suggested_alternatives if s.date != mismatch.date), None)
        target = other_day.date if other_day is not None else mismatch.date + timedelta(days=1)
        days = (target - mismatch.date).days

        if penalty >= SEVERE_MISMATCH_PENALTY or not settings.allow_mismatch_overrides:
            severity = WarningSeverity.WARNING
        else:
            severity = WarningSeverity.INFO
        keep_risk = FixRisk.LOW if settings.allow_mismatch_overrides else FixRisk.HIGH

        warnings.append(ScheduleWarning(
            id=warning_id,
            type=WarningType.ENERGY_MISMATCH,
            severity=severity,
            title=f'"{mismatch.milestone_name}" scheduled at low energy',
            description=(
                f"{describe_mismatch(mismatch.task_cognitive_load, mismatch.window_energy_level)} "
                f"on {format_short_date(mismatch.date)}."
            ),
            impact=f"-{penalty}% productivity",
            fixes=[
                ScheduleFix(
                    id=f"{warning_id}-move",
                    type=FixType.SHIFT_MILESTONES,
                    label=f"Move to {format_short_date(target)}",
                    description=other_day.reason if other_day is not None else "Try the next day",
                    impact="Harder work lands in a better energy window",
                    action=ShiftMilestones(milestone.project_id, days, (milestone.id,)),
                    risk=FixRisk.LOW,
                    recommended=True,
                ),
                _keep_fix(warning_id, risk=keep_risk),
            ],
            affected_project_ids=[milestone.project_id],
            affected_milestone_ids=[milestone.id],
        ))

    return warnings


def _should_notify(blocker: Blocker, settings: BlockerSettings, now: datetime) -> bool:
    """Whether an attention-worthy blocker passes the notification settings."""
    if needs_follow_up(blocker, settings, now):
        return True
    if settings.notify_on_stale and is_blocker_stale(blocker, settings, now):
        return True
    return settings.notify_on_overdue and is_blocker_overdue(blocker, now)


def _blocker_warnings(state: AppState, today: date) -> List[ScheduleWarning]:
    now = _start_of_day(today)
    settings = state.blocker_settings
    warnings = []

    critical = critical_blockers(state.blockers) if settings.notify_on_critical else []

    for blocker in critical:
        warning_id = f"blocker-{blocker.id}"
        delay = max(1, blocker.estimated_delay_days)
        warnings.append(ScheduleWarning(
            id=warning_id,
            type=WarningType.BLOCKER,
            severity=WarningSeverity.CRITICAL,
            title=f"Critical blocker: {blocker.title}",
            description=blocker.description,
            impact=f"~{blocker.estimated_delay_days} days delay",
            fixes=[
                ScheduleFix(
                    id=f"{warning_id}-shift",
                    type=FixType.SHIFT_MILESTONES,
                    label=f"Push back {delay} days",
                    description="Move the blocked project's remaining milestones by the expected delay",
                    impact="Later dates, realistic plan",
                    action=ShiftMilestones(blocker.project_id, delay),
                    risk=FixRisk.LOW,
                    recommended=True,
                ),
                _keep_fix(warning_id, "Work around it"),
            ],
            affected_project_ids=[blocker.project_id],
            affected_milestone_ids=[blocker.milestone_id],
            days_late=blocker.estimated_delay_days,
        ))

    for blocker in blockers_needing_attention(state.blockers, settings, now):
        if blocker.severity == BlockerSeverity.CRITICAL:
            continue
        if not _should_notify(blocker, settings, now):
            continue
        warning_id = f"blocker-{blocker.id}"
        delay = max(1, blocker.estimated_delay_days)
        warnings.append(ScheduleWarning(
            id=warning_id,
            type=WarningType.BLOCKER,
            severity=WarningSeverity.WARNING,
            title=f"Blocker needs attention: {blocker.title}",
            description=f"Waiting on {blocker.waiting_on}" if blocker.waiting_on else blocker.description,
            impact=f"{blocker.severity.value.capitalize()} severity, {blocker.status.value}",
            fixes=[
                ScheduleFix(
                    id=f"{warning_id}-escalate",
                    type=FixType.ESCALATE,
                    label="Escalate",
                    description="Raise the blocker's severity one level",
                    impact="Gets more attention sooner",
                    action=EscalateBlocker(blocker.id),
                    risk=FixRisk.LOW,
                    recommended=True,
                ),
                ScheduleFix(
                    id=f"{warning_id}-shift",
                    type=FixType.SHIFT_MILESTONES,
                    label=f"Push back {delay} days",
                    description="Plan for the blocker taking as long as estimated",
                    impact="Later dates for the blocked project",
                    action=ShiftMilestones(blocker.project_id, delay),
                    risk=FixRisk.MEDIUM,
                ),
            ],
            affected_project_ids=[blocker.project_id],
            affected_milestone_ids=[blocker.milestone_id],
        ))

    for risk in high_priority_risks(state.risks):
        warning_id = f"risk-{risk.id}"
        warnings.append(ScheduleWarning(
            id=warning_id,
            type=WarningType.RISK,
            severity=WarningSeverity.INFO,
            title=f"High risk: {risk.title}",
            description=risk.mitigation_strategy or risk.description,
            impact=f"Risk score {risk.risk_score}/16",
            fixes=[
                _keep_fix(warning_id, "Keep monitoring", FixRisk.LOW),
                ScheduleFix(
                    id=f"{warning_id}-dismiss",
                    type=FixType.DISMISS,
                    label="Dismiss",
                    description="Hide this risk from future warnings",
                    impact="No longer tracked",
                    action=DismissRisk(risk.id),
                    risk=FixRisk.MEDIUM,
                ),
            ],
            affected_project_ids=[risk.project_id] if risk.project_id else [],
            affected_milestone_ids=[risk.milestone_id] if risk.milestone_id else [],
        ))

    return warnings


def analyze_schedule_warnings(state: AppState, today: Optional[date] = None) -> List[ScheduleWarning]:
    """Collect every warning for the snapshot, most severe first."""
    if today is None:
        today = date.today()

    warnings: List[ScheduleWarning] = []

    feasibility = _deadline_feasibility(state, today)
    if feasibility is not None:
        warnings.append(feasibility)
    warnings.extend(_overdue_warnings(state, today))
    warnings.extend(_deadline_risk_warnings(state))

    budget = _weekly_budget_warning(state)
    if budget is not None:
        warnings.append(budget)

    drafts = _draft_overlap_warning(state)
    if drafts is not None:
        warnings.append(drafts)

    warnings.extend(_deep_work_warnings(state))
    warnings.extend(_energy_warnings(state, today))
    warnings.extend(_blocker_warnings(state, today))

    logger.debug("Found %d schedule warnings", len(warnings))
    return sorted(warnings, key=lambda w: SEVERITY_RANK[w.severity])


# Applying fixes


def _fail(state: AppState, message: str) -> Tuple[AppState, FixResult]:
    return state, FixResult(success=False, message=message)


def _update_project(state: AppState, project: Project) -> AppState:
    return replace(state, projects=[project if p.id == project.id else p for p in state.projects])


def _update_milestone(state: AppState, milestone: Milestone) -> AppState:
    project = state.find_project(milestone.project_id)
    updated = replace(
        project,
        milestones=[milestone if m.id == milestone.id else m for m in project.milestones],
    )
    return _update_project(state, updated)


def _project_of(state: AppState, milestone_id: str) -> Optional[Project]:
    for project in state.projects:
        if project.find_milestone(milestone_id) is not None:
            return project
    return None


def _apply_extend_deadline(state, action: ExtendDeadline, today):
    if action.new_deadline == state.master_deadline:
        return _fail(state, "Deadline unchanged")
    verb = "extended" if action.new_deadline > state.master_deadline else "moved"
    change = f"Deadline {verb} to {format_long_date(action.new_deadline)}"
    return replace(state, master_deadline=action.new_deadline), FixResult(
        success=True, message=change, changes=[change], new_deadline=action.new_deadline,
    )


def _apply_weekly_hours(state, action: SetWeeklyHours, today):
    if action.hours <= 0:
        return _fail(state, "Weekly hours must be positive")
    if action.hours == state.weekly_hours_budget:
        return _fail(state, "Weekly hours unchanged")
    verb = "increased" if action.hours > state.weekly_hours_budget else "reduced"
    change = f"Weekly hours {verb} to {action.hours:g}h"
    return replace(state, weekly_hours_budget=action.hours), FixResult(
        success=True, message=change, changes=[change], new_weekly_hours=action.hours,
    )


def _apply_shift(state, action: ShiftMilestones, today):
    project = state.find_project(action.project_id)
    if project is None:
        return _fail(state, "Project not found")
    if action.days == 0:
        return _fail(state, "No change in dates")

    if action.milestone_ids:
        missing = [mid for mid in action.milestone_ids if project.find_milestone(mid) is None]
        if missing:
            return _fail(state, "Milestone not found")
        targets = set(action.milestone_ids)
    else:
        targets = {m.id for m in project.milestones if not m.completed}
    if not targets:
        return _fail(state, "No incomplete milestones to move")

    milestones = []
    changes = []
    for milestone in project.milestones:
        if milestone.id in targets:
            milestone = shift_milestone(milestone, action.days)
            changes.append(f'Moved "{milestone.name}" to {format_short_date(milestone.start_date)}')
        milestones.append(milestone)

    direction = "later" if action.days > 0 else "earlier"
    message = f"Moved {len(changes)} milestone(s) {abs(action.days)} days {direction}"
    return _update_project(state, replace(project, milestones=milestones)), FixResult(
        success=True, message=message, changes=changes,
    )


def _apply_extend_session(state, action: ExtendSession, today):
    milestone = state.find_milestone(action.milestone_id)
    if milestone is None:
        return _fail(state, "Milestone not found")
    if action.hours <= 0:
        return _fail(state, "Session hours must be positive")
    if milestone.scheduled_hours >= action.hours:
        return _fail(state, f'"{milestone.name}" is already {milestone.scheduled_hours:g}h')

    change = f'Session for "{milestone.name}" set to {action.hours:g}h'
    updated = replace(milestone, estimated_hours=action.hours, buffer_multiplier=1.0)
    return _update_milestone(state, updated), FixResult(success=True, message=change, changes=[change])


def _apply_consolidate(state, action: ConsolidateMilestone, today):
    milestone = state.find_milestone(action.milestone_id)
    if milestone is None:
        return _fail(state, "Milestone not found")
    if action.new_deadline < milestone.start_date:
        return _fail(state, "New deadline is before the start date")
    if action.new_deadline == milestone.deadline:
        return _fail(state, "No change in deadline")

    change = f'"{milestone.name}" now due {format_short_date(action.new_deadline)}'
    updated = replace(milestone, deadline=action.new_deadline)
    return _update_milestone(state, updated), FixResult(success=True, message=change, changes=[change])


def _apply_sequence_drafts(state, action: SequenceDrafts, today):
    sequenced = optimize_distribution(state.projects, state.master_deadline, WRITING_KEYWORDS)
    optimized = {p.id: p for p in sequenced}
    changes = []
    for project in state.projects:
        new = optimized[project.id]
        if new.milestones != project.milestones:
            days = (new.milestones[0].start_date - project.milestones[0].start_date).days
            changes.append(f"{project.name} moved {days} days later")

    if not changes:
        return _fail(state, "Drafts are already sequenced")
    projects = [optimized[p.id] for p in state.projects]
    return replace(state, projects=projects), FixResult(
        success=True, message="Draft phases sequenced", changes=changes,
    )


def _apply_complete(state, action: CompleteMilestone, today):
    project = _project_of(state, action.milestone_id)
    if project is None:
        return _fail(state, "Milestone not found")
    milestone = project.find_milestone(action.milestone_id)
    if milestone.completed:
        return _fail(state, f'"{milestone.name}" is already complete')

    completed = complete_milestone(project, action.milestone_id, _start_of_day(today))
    changes = [f'Marked "{milestone.name}" complete']

    result = reschedule_after_completion(completed, action.milestone_id, state.master_deadline, today)
    if result.updated_milestones is not completed.milestones:
        completed = replace(completed, milestones=result.updated_milestones)
        changes.append(result.message)

    return _update_project(state, completed), FixResult(success=True, message=changes[0], changes=changes)


def _apply_escalate(state, action: EscalateBlocker, today):
    blocker = next((b for b in state.blockers if b.id == action.blocker_id), None)
    if blocker is None:
        return _fail(state, "Blocker not found")
    if not blocker.is_open:
        return _fail(state, "Blocker already resolved")
    if blocker.severity == BlockerSeverity.CRITICAL:
        return _fail(state, "Blocker is already critical")

    escalated = escalate_blocker(blocker, "Escalated from schedule warnings", now=_start_of_day(today))
    change = f'"{blocker.title}" escalated to {escalated.severity.value}'
    blockers = [escalated if b.id == blocker.id else b for b in state.blockers]
    return replace(state, blockers=blockers), FixResult(success=True, message=change, changes=[change])


def _apply_dismiss(state, action: DismissRisk, today):
    risk = next((r for r in state.risks if r.id == action.risk_id), None)
    if risk is None:
        return _fail(state, "Risk not found")
    if risk.is_dismissed:
        return _fail(state, "Risk already dismissed")

    change = f'Dismissed risk "{risk.title}"'
    risks = [replace(r, is_dismissed=True) if r.id == risk.id else r for r in state.risks]
    return replace(state, risks=risks), FixResult(success=True, message=change, changes=[change])


def _apply_scale(state, action: ScaleEstimates, today):
    if action.factor <= 0:
        return _fail(state, "Scale factor must be positive")

    changes = []
    projects = []
    for project in state.projects:
        milestones = []
        for milestone in project.milestones:
            if not milestone.completed and (not action.phases or milestone_phase(milestone) in action.phases):
                milestone = replace(milestone, estimated_hours=milestone.estimated_hours * action.factor)
                changes.append(f'"{milestone.name}" estimate now {milestone.estimated_hours:.1f}h')
            milestones.append(milestone)
        projects.append(replace(project, milestones=milestones))

    if not changes:
        return _fail(state, "No milestones to rescale")
    return replace(state, projects=projects), FixResult(
        success=True, message=f"Rescaled {len(changes)} estimate(s)", changes=changes,
    )


def _apply_keep(state, action: KeepSchedule, today):
    return state, FixResult(success=True, message="Schedule left unchanged")


_HANDLERS: Dict[type, Callable] = {
    ExtendDeadline: _apply_extend_deadline,
    SetWeeklyHours: _apply_weekly_hours,
    ShiftMilestones: _apply_shift,
    ExtendSession: _apply_extend_session,
    ConsolidateMilestone: _apply_consolidate,
    SequenceDrafts: _apply_sequence_drafts,
    CompleteMilestone: _apply_complete,
    EscalateBlocker: _apply_escalate,
    DismissRisk: _apply_dismiss,
    ScaleEstimates: _apply_scale,
    KeepSchedule: _apply_keep,
}


def apply_fix(state: AppState, fix, today: Optional[date] = None) -> Tuple[AppState, FixResult]:
    """Apply a ScheduleFix (or a bare fix action) to a snapshot.

    Returns the new snapshot and the outcome. On failure the original
    snapshot is returned unchanged.
    """
    if today is None:
        today = date.today()
    action = fix.action if isinstance(fix, ScheduleFix) else fix

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unknown fix action: {type(action).__name__}")

    new_state, result = handler(state, action, today)
    if result.success:
        logger.info("Applied %s: %s", type(action).__name__, result.message)
    else:
        logger.debug("Fix %s not applied: %s", type(action).__name__, result.message)
    return new_state, result


# Scenarios


def _find_action(warning: ScheduleWarning, kind: type) -> Optional[FixAction]:
    for fix in warning.fixes:
        if isinstance(fix.action, kind):
            return fix.action
    return None


def generate_optimization_scenarios(
    state: AppState,
    warnings: List[ScheduleWarning],
    today: Optional[date] = None,
) -> List[OptimizationScenario]:
    """Whole-schedule strategies for the current warnings. Nothing is applied."""
    if today is None:
        today = date.today()
    scenarios = []

    deadline_warning = next((w for w in warnings if w.type == WarningType.DEADLINE_IMPOSSIBLE), None)
    if deadline_warning is not None:
        extend = _find_action(deadline_warning, ExtendDeadline)
        hours = _find_action(deadline_warning, SetWeeklyHours)

        if extend is not None:
            scenarios.append(OptimizationScenario(
                id='extend-deadline',
                name="Extend Deadline",
                description=f"Move the deadline to {format_long_date(extend.new_deadline)}",
                actions=[extend],
                tradeoffs=["Later completion date", "No changes to weekly workload"],
                recommended=True,
            ))

        if hours is not None and hours.hours <= MAX_SUGGESTED_WEEKLY_HOURS:
            scenarios.append(OptimizationScenario(
                id='increase-hours',
                name="Increase Weekly Hours",
                description=f"Work {hours.hours:g}h per week to keep the current deadline",
                actions=[hours],
                tradeoffs=["More work per week", "Keep current deadline"],
            ))

        if extend is not None and extend.new_deadline > state.master_deadline:
            extra_days = (extend.new_deadline - state.master_deadline).days
            middle = state.master_deadline + timedelta(days=math.ceil(extra_days / 2))
            feasibility = check_feasibility(state.projects, middle, state.weekly_hours_budget, today)
            if feasibility.weeks_available > 0:
                balanced_hours = max(
                    state.weekly_hours_budget,
                    math.ceil(feasibility.total_hours_needed / feasibility.weeks_available),
                )
                if balanced_hours <= MAX_SUGGESTED_WEEKLY_HOURS:
                    scenarios.append(OptimizationScenario(
                        id='balanced',
                        name="Balanced",
                        description=(
                            f"Extend to {format_long_date(middle)} and work {balanced_hours:g}h per week"
                        ),
                        actions=[ExtendDeadline(middle), SetWeeklyHours(balanced_hours)],
                        tradeoffs=["Moderately later completion", "Moderately more work per week"],
                    ))

    if any(w.type == WarningType.DRAFT_OVERLAP for w in warnings):
        scenarios.append(OptimizationScenario(
            id='sequence-drafts',
            name="Sequence Drafts",
            description="Stagger projects so only one draft is in progress at a time",
            actions=[SequenceDrafts()],
            tradeoffs=["Better focus on each draft", "Some projects finish later"],
            recommended=deadline_warning is None,
        ))

    return scenarios

"""Risk registry and blocker tracking.

Blockers are logged when work is actually stuck; risks are identified up
front and scored probability x impact. Every function returns new records
and takes an injectable ``now`` so that time-based rules are testable.
"""

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple, Any

from ..models.project import Milestone, Project
from ..models.risk import (
    SEVERITY_ORDER,
    Blocker,
    BlockerCategory,
    BlockerSeverity,
    BlockerStatus,
    BlockerTemplate,
    BlockerUpdate,
    BlockerUpdateType,
    Risk,
    RiskImpact,
    RiskProbability,
    RiskStatus,
    RiskSuggestion,
)
from ..models.settings import BlockerSettings

logger = logging.getLogger(__name__)

HIGH_PRIORITY_RISK_SCORE = 6
CRITICAL_PATH_DAYS = 14

BLOCKER_TEMPLATES: List[BlockerTemplate] = [
    BlockerTemplate(
        id='lab-equipment',
        title="Lab equipment unavailable",
        description="Required laboratory equipment is not available or reserved by others",
        category=BlockerCategory.RESOURCE,
        default_severity=BlockerSeverity.HIGH,
        suggested_workarounds=[
            "Consider simulation-based investigation",
            "Book alternative time slot",
            "Use different equipment with similar function",
        ],
        estimated_resolution_days=3,
    ),
    BlockerTemplate(
        id='library-book',
        title="Waiting for library resource",
        description="Required book or resource is on loan or needs interlibrary loan",
        category=BlockerCategory.EXTERNAL_DEPENDENCY,
        default_severity=BlockerSeverity.MEDIUM,
        suggested_workarounds=[
            "Start with secondary sources while waiting",
            "Find digital alternatives (JSTOR, Google Scholar)",
            "Check if another library has it",
        ],
        estimated_resolution_days=14,
    ),
    BlockerTemplate(
        id='teacher-approval',
        title="Waiting for teacher approval",
        description="Topic, methodology, or draft needs teacher sign-off",
        category=BlockerCategory.APPROVAL,
        default_severity=BlockerSeverity.HIGH,
        suggested_workarounds=[
            "Prepare alternative approaches to present",
            "Work on non-dependent sections",
            "Schedule meeting to discuss in person",
        ],
        estimated_resolution_days=5,
    ),
    BlockerTemplate(
        id='knowledge-gap',
        title="Need to learn new concept/skill",
        description="Lack understanding of required concept or technique",
        category=BlockerCategory.KNOWLEDGE_GAP,
        default_severity=BlockerSeverity.MEDIUM,
        suggested_workarounds=[
            "Watch Khan Academy or YouTube tutorials",
            "Ask teacher for recommended resources",
            "Study group with classmates",
        ],
        estimated_resolution_days=7,
    ),
    BlockerTemplate(
        id='software-issue',
        title="Software or technical problem",
        description="Required software not working, data lost, or technical issues",
        category=BlockerCategory.TECHNICAL_ISSUE,
        default_severity=BlockerSeverity.HIGH,
        suggested_workarounds=[
            "Use school computers as backup",
            "Try alternative software (free alternatives)",
            "Contact IT support",
        ],
        estimated_resolution_days=2,
    ),
    BlockerTemplate(
        id='data-collection',
        title="Data collection delayed",
        description="Survey responses, experimental data, or interviews not completed",
        category=BlockerCategory.EXTERNAL_DEPENDENCY,
        default_severity=BlockerSeverity.MEDIUM,
        suggested_workarounds=[
            "Extend data collection period",
            "Use smaller sample size",
            "Find secondary data sources",
        ],
        estimated_resolution_days=7,
    ),
    BlockerTemplate(
        id='health-personal',
        title="Health or personal circumstances",
        description="Unable to work due to health or personal reasons",
        category=BlockerCategory.HEALTH_PERSONAL,
        default_severity=BlockerSeverity.MEDIUM,
        suggested_workarounds=[
            "Focus on recovery first",
            "Delegate research tasks if possible",
            "Request deadline extension if needed",
        ],
        estimated_resolution_days=5,
    ),
]

RISK_SUGGESTIONS: List[RiskSuggestion] = [
    RiskSuggestion(
        id='physics-lab',
        for_subject='physics',
        title="Lab equipment availability conflict",
        description="Physics labs are shared - equipment may be unavailable when needed",
        category=BlockerCategory.RESOURCE,
        default_probability=RiskProbability.MEDIUM,
        default_impact=RiskImpact.MAJOR,
        mitigation_suggestion="Reserve lab equipment at least 2 weeks in advance",
        contingency_suggestion="Prepare simulation-based alternative methodology",
    ),
    RiskSuggestion(
        id='physics-data',
        for_subject='physics',
        for_phase='research',
        title="Experimental data insufficient",
        description="Initial experiments may not yield usable data",
        category=BlockerCategory.TECHNICAL_ISSUE,
        default_probability=RiskProbability.MEDIUM,
        default_impact=RiskImpact.MAJOR,
        mitigation_suggestion="Plan for 2-3 data collection attempts",
        contingency_suggestion="Have backup research question ready",
    ),
    RiskSuggestion(
        id='math-complexity',
        for_subject='math',
        title="Mathematical concept too complex",
        description="Chosen topic may require math beyond current skill level",
        category=BlockerCategory.KNOWLEDGE_GAP,
        default_probability=RiskProbability.MEDIUM,
        default_impact=RiskImpact.MAJOR,
        mitigation_suggestion="Consult teacher early about scope",
        contingency_suggestion="Have simpler alternative exploration ready",
    ),
    RiskSuggestion(
        id='history-sources',
        for_subject='history',
        for_phase='research',
        title="Primary sources difficult to access",
        description="May need interlibrary loan or archive access",
        category=BlockerCategory.EXTERNAL_DEPENDENCY,
        default_probability=RiskProbability.HIGH,
        default_impact=RiskImpact.MODERATE,
        mitigation_suggestion="Identify sources early and request immediately",
        contingency_suggestion="Use digital archives as fallback",
    ),
    RiskSuggestion(
        id='econ-articles',
        for_subject='economics',
        for_phase='research',
        title="Suitable current news article hard to find",
        description="Finding an article that clearly demonstrates economic concepts",
        category=BlockerCategory.EXTERNAL_DEPENDENCY,
        default_probability=RiskProbability.LOW,
        default_impact=RiskImpact.MINOR,
        mitigation_suggestion="Start collecting articles early from multiple sources",
        contingency_suggestion="Keep backup articles for each commentary",
    ),
    RiskSuggestion(
        id='english-text',
        for_subject='english',
        title="Primary text interpretation challenges",
        description="Chosen text may be more complex than anticipated",
        category=BlockerCategory.KNOWLEDGE_GAP,
        default_probability=RiskProbability.MEDIUM,
        default_impact=RiskImpact.MODERATE,
        mitigation_suggestion="Read critical analyses before starting",
        contingency_suggestion="Narrow focus to specific passage if needed",
    ),
]

GENERIC_WORKAROUNDS: Dict[BlockerCategory, List[str]] = {
    BlockerCategory.RESOURCE: [
        "Look for alternative resources",
        "Borrow from another student",
        "Ask teacher for alternatives",
    ],
    BlockerCategory.APPROVAL: [
        "Prepare materials for review",
        "Schedule dedicated meeting time",
        "Work on non-dependent sections",
    ],
    BlockerCategory.EXTERNAL_DEPENDENCY: [
        "Start with available information",
        "Find alternative sources",
        "Adjust scope to available data",
    ],
    BlockerCategory.KNOWLEDGE_GAP: [
        "Find online tutorials",
        "Ask classmates for help",
        "Consult with teacher",
    ],
    BlockerCategory.TECHNICAL_ISSUE: [
        "Try alternative software",
        "Use school resources",
        "Back up work frequently",
    ],
    BlockerCategory.HEALTH_PERSONAL: [
        "Prioritize wellbeing",
        "Communicate with teachers",
        "Adjust timeline if needed",
    ],
}

CATEGORY_LABELS = {
    BlockerCategory.RESOURCE: "Resource",
    BlockerCategory.APPROVAL: "Approval",
    BlockerCategory.EXTERNAL_DEPENDENCY: "External Dependency",
    BlockerCategory.KNOWLEDGE_GAP: "Knowledge Gap",
    BlockerCategory.TECHNICAL_ISSUE: "Technical Issue",
    BlockerCategory.HEALTH_PERSONAL: "Health/Personal",
}


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


def _whole_days(later: datetime, earlier: datetime) -> int:
    """Whole days between two instants, truncated toward zero."""
    if (later.tzinfo is None) != (earlier.tzinfo is None):
        later = later.replace(tzinfo=None)
        earlier = earlier.replace(tzinfo=None)
    return int((later - earlier).total_seconds() / 86400)


def _midnight(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _update(message: str, kind: BlockerUpdateType, now: datetime) -> BlockerUpdate:
    return BlockerUpdate(id=_new_id('update'), timestamp=now, message=message, type=kind)


# Blocker lifecycle


def create_blocker(
    milestone_id: str,
    project_id: str,
    title: str,
    description: str,
    category: BlockerCategory,
    severity: BlockerSeverity,
    estimated_delay_days: int,
    expected_resolution_date: Optional[date] = None,
    waiting_on: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Blocker:
    """Log a new blocker. Critical blockers start out escalated."""
    if estimated_delay_days < 0:
        raise ValueError(f"Estimated delay must not be negative, got {estimated_delay_days}")

    now = _now(now)
    blocker = Blocker(
        id=_new_id('blocker'),
        project_id=project_id,
        milestone_id=milestone_id,
        title=title,
        description=description,
        category=category,
        severity=severity,
        status=BlockerStatus.ESCALATED if severity == BlockerSeverity.CRITICAL else BlockerStatus.ACTIVE,
        created_at=now,
        last_updated_at=now,
        estimated_delay_days=estimated_delay_days,
        expected_resolution_date=expected_resolution_date,
        waiting_on=waiting_on,
        updates=[_update("Blocker created", BlockerUpdateType.STATUS_CHANGE, now)],
    )
    logger.info("Created %s blocker %s on milestone %s", severity.value, blocker.id, milestone_id)
    return blocker


def find_template(template_id: str) -> Optional[BlockerTemplate]:
    return next((t for t in BLOCKER_TEMPLATES if t.id == template_id), None)


def create_blocker_from_template(
    template_id: str,
    milestone_id: str,
    project_id: str,
    additional_description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[Blocker]:
    """Create a blocker from a predefined template, or None for unknown ids."""
    template = find_template(template_id)
    if template is None:
        return None

    now = _now(now)
    description = template.description
    if additional_description:
        description = f"{description}\n\nAdditional notes: {additional_description}"

    return create_blocker(
        milestone_id,
        project_id,
        template.title,
        description,
        template.category,
        template.default_severity,
        template.estimated_resolution_days,
        expected_resolution_date=now.date() + timedelta(days=template.estimated_resolution_days),
        now=now,
    )


def add_blocker_update(
    blocker: Blocker,
    message: str,
    kind: BlockerUpdateType = BlockerUpdateType.NOTE,
    now: Optional[datetime] = None,
) -> Blocker:
    now = _now(now)
    return replace(
        blocker,
        last_updated_at=now,
        updates=blocker.updates + [_update(message, kind, now)],
    )


def resolve_blocker(
    blocker: Blocker,
    resolution_notes: str,
    lessons_learned: Optional[str] = None,
    workaround_applied: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Blocker:
    """Close a blocker; the actual delay is the days since it was created."""
    now = _now(now)
    logger.info("Resolved blocker %s", blocker.id)
    return replace(
        blocker,
        status=BlockerStatus.RESOLVED,
        resolved_at=now,
        last_updated_at=now,
        actual_delay_days=_whole_days(now, blocker.created_at),
        resolution_notes=resolution_notes,
        lessons_learned=lessons_learned,
        workaround_applied=workaround_applied,
        updates=blocker.updates + [
            _update(f"Resolved: {resolution_notes}", BlockerUpdateType.STATUS_CHANGE, now),
        ],
    )


def escalate_blocker(
    blocker: Blocker,
    reason: str,
    new_severity: Optional[BlockerSeverity] = None,
    now: Optional[datetime] = None,
) -> Blocker:
    """Raise severity one step (capped at critical) unless given explicitly."""
    now = _now(now)
    if new_severity is None:
        index = SEVERITY_ORDER.index(blocker.severity)
        new_severity = SEVERITY_ORDER[min(index + 1, len(SEVERITY_ORDER) - 1)]

    logger.info("Escalated blocker %s to %s", blocker.id, new_severity.value)
    return replace(
        blocker,
        severity=new_severity,
        status=BlockerStatus.ESCALATED,
        last_updated_at=now,
        auto_escalated_at=now,
        original_severity=blocker.original_severity or blocker.severity,
        updates=blocker.updates + [
            _update(f"Escalated to {new_severity.value}: {reason}", BlockerUpdateType.ESCALATION, now),
        ],
    )


# Time-based checks


def is_blocker_stale(blocker: Blocker, settings: BlockerSettings, now: Optional[datetime] = None) -> bool:
    if blocker.status == BlockerStatus.RESOLVED:
        return False
    return _whole_days(_now(now), blocker.last_updated_at) >= settings.stale_after_days


def is_blocker_overdue(blocker: Blocker, now: Optional[datetime] = None) -> bool:
    if blocker.status == BlockerStatus.RESOLVED or blocker.expected_resolution_date is None:
        return False
    return _now(now) > _midnight(blocker.expected_resolution_date)


def needs_follow_up(blocker: Blocker, settings: BlockerSettings, now: Optional[datetime] = None) -> bool:
    """Whether it is time to chase whoever the blocker is waiting on."""
    if blocker.status == BlockerStatus.RESOLVED or not blocker.waiting_on:
        return False

    now = _now(now)
    if blocker.next_follow_up_date is not None:
        return now >= _midnight(blocker.next_follow_up_date)
    if blocker.last_follow_up_date is not None:
        since = _whole_days(now, _midnight(blocker.last_follow_up_date))
        return since >= settings.default_follow_up_interval_days
    return _whole_days(now, blocker.created_at) >= settings.default_follow_up_interval_days


def process_auto_escalation(
    blockers: List[Blocker],
    settings: BlockerSettings,
    now: Optional[datetime] = None,
) -> List[Blocker]:
    """Mark quiet blockers stale and escalate long-overdue ones.

    At most one transition is applied per blocker per call; staleness is
    checked first.
    """
    now = _now(now)
    processed = []

    for blocker in blockers:
        if blocker.status == BlockerStatus.RESOLVED:
            processed.append(blocker)
            continue

        if blocker.status != BlockerStatus.STALE and is_blocker_stale(blocker, settings, now):
            processed.append(replace(
                blocker,
                status=BlockerStatus.STALE,
                last_updated_at=now,
                updates=blocker.updates + [_update(
                    f"Marked stale - no updates for {settings.stale_after_days} days",
                    BlockerUpdateType.STATUS_CHANGE,
                    now,
                )],
            ))
            logger.info("Blocker %s marked stale", blocker.id)
            continue

        if (
            is_blocker_overdue(blocker, now)
            and blocker.severity != BlockerSeverity.CRITICAL
            and blocker.auto_escalated_at is None
        ):
            overdue = _whole_days(now, _midnight(blocker.expected_resolution_date))
            if overdue >= settings.auto_escalate_after_days:
                processed.append(escalate_blocker(blocker, f"Auto-escalated: {overdue} days overdue", now=now))
                continue

        processed.append(blocker)

    return processed


# Queries


def blockers_for_milestone(blockers: List[Blocker], milestone_id: str) -> List[Blocker]:
    return [b for b in blockers if b.milestone_id == milestone_id and b.is_open]


def blockers_for_project(blockers: List[Blocker], project_id: str) -> List[Blocker]:
    return [b for b in blockers if b.project_id == project_id and b.is_open]


def critical_blockers(blockers: List[Blocker]) -> List[Blocker]:
    return [b for b in blockers if b.severity == BlockerSeverity.CRITICAL and b.is_open]


def blockers_needing_attention(
    blockers: List[Blocker],
    settings: BlockerSettings,
    now: Optional[datetime] = None,
) -> List[Blocker]:
    """Open blockers that are stale, overdue, due a follow-up or critical."""
    now = _now(now)
    return [
        b for b in blockers
        if b.is_open and (
            is_blocker_stale(b, settings, now)
            or is_blocker_overdue(b, now)
            or needs_follow_up(b, settings, now)
            or b.severity == BlockerSeverity.CRITICAL
        )
    ]


def blocker_age_days(blocker: Blocker, now: Optional[datetime] = None) -> int:
    return _whole_days(_now(now), blocker.created_at)


def days_until_resolution(blocker: Blocker, now: Optional[datetime] = None) -> Optional[int]:
    if blocker.expected_resolution_date is None:
        return None
    return _whole_days(_midnight(blocker.expected_resolution_date), _now(now))


def category_label(category: BlockerCategory) -> str:
    return CATEGORY_LABELS[category]


def workaround_suggestions(blocker: Blocker) -> List[str]:
    """Workarounds from the first template of the same category, else generic ones."""
    template = next((t for t in BLOCKER_TEMPLATES if t.category == blocker.category), None)
    if template is not None:
        return list(template.suggested_workarounds)
    return list(GENERIC_WORKAROUNDS.get(blocker.category, []))


def blocker_statistics(blockers: List[Blocker]) -> Dict[str, Any]:
    """Totals, per-category resolution times and recurring patterns."""
    resolved = [b for b in blockers if b.status == BlockerStatus.RESOLVED]
    days_lost = sum(
        b.actual_delay_days if b.actual_delay_days else b.estimated_delay_days
        for b in resolved
    )

    times: Dict[BlockerCategory, List[int]] = {category: [] for category in BlockerCategory}
    for blocker in resolved:
        if blocker.actual_delay_days is not None:
            times[blocker.category].append(blocker.actual_delay_days)
    average_days = {
        category: (sum(values) / len(values) if values else 0.0)
        for category, values in times.items()
    }

    counts = {category: 0 for category in BlockerCategory}
    for blocker in blockers:
        counts[blocker.category] += 1

    most_common = None
    max_count = 0
    for category, count in counts.items():
        if count > max_count:
            most_common, max_count = category, count

    with_workaround = [b for b in resolved if b.workaround_applied]
    workaround_rate = len(with_workaround) / len(resolved) * 100 if resolved else 0.0

    patterns = []
    if most_common is not None and max_count >= 3:
        patterns.append(
            f'"{category_label(most_common)}" is your most common blocker type ({max_count} occurrences)'
        )

    average_overall = days_lost / len(resolved) if resolved else 0.0
    if average_overall > 5:
        patterns.append(
            f"Blockers take {average_overall:.1f} days on average to resolve - consider earlier mitigation"
        )

    underestimated = [
        b for b in resolved
        if b.actual_delay_days and b.actual_delay_days > b.estimated_delay_days * 1.5
    ]
    if len(underestimated) >= 2:
        patterns.append("You often underestimate blocker resolution time - consider adding buffer")

    return {
        'total_blockers': len(blockers),
        'resolved_blockers': len(resolved),
        'average_resolution_days': average_days,
        'total_days_lost': days_lost,
        'most_common_category': most_common,
        'workaround_success_rate': workaround_rate,
        'patterns': patterns,
    }


# Risks


def create_risk(
    title: str,
    description: str,
    category: BlockerCategory,
    probability: RiskProbability,
    impact: RiskImpact,
    project_id: Optional[str] = None,
    milestone_id: Optional[str] = None,
    mitigation_strategy: Optional[str] = None,
    contingency_plan: Optional[str] = None,
    is_system_suggested: bool = False,
    now: Optional[datetime] = None,
) -> Risk:
    now = _now(now)
    return Risk(
        id=_new_id('risk'),
        title=title,
        description=description,
        category=category,
        probability=probability,
        impact=impact,
        status=RiskStatus.IDENTIFIED,
        identified_at=now,
        last_assessed_at=now,
        project_id=project_id,
        milestone_id=milestone_id,
        mitigation_strategy=mitigation_strategy,
        contingency_plan=contingency_plan,
        is_system_suggested=is_system_suggested,
    )


def suggested_risks(project: Project, existing: List[Risk], now: Optional[datetime] = None) -> List[Risk]:
    """Subject-specific risks not already registered for the project."""
    taken = {
        r.title for r in existing
        if r.project_id == project.id and not r.is_dismissed
    }
    return [
        create_risk(
            s.title,
            s.description,
            s.category,
            s.default_probability,
            s.default_impact,
            project_id=project.id,
            mitigation_strategy=s.mitigation_suggestion,
            contingency_plan=s.contingency_suggestion,
            is_system_suggested=True,
            now=now,
        )
        for s in RISK_SUGGESTIONS
        if s.for_subject == project.subject.value and s.title not in taken
    ]


def materialize_risk(
    risk: Risk,
    milestone_id: str,
    project_id: str,
    estimated_delay_days: int,
    now: Optional[datetime] = None,
) -> Tuple[Risk, Blocker]:
    """Turn a risk that happened into a blocker, linking the two."""
    now = _now(now)
    score = risk.risk_score
    if score >= 9:
        severity = BlockerSeverity.CRITICAL
    elif score >= 6:
        severity = BlockerSeverity.HIGH
    else:
        severity = BlockerSeverity.MEDIUM

    blocker = create_blocker(
        milestone_id,
        project_id,
        risk.title,
        f"{risk.description}\n\nContingency: {risk.contingency_plan or 'None specified'}",
        risk.category,
        severity,
        estimated_delay_days,
        now=now,
    )
    updated = replace(
        risk,
        status=RiskStatus.MATERIALIZED,
        materialized_at=now,
        last_assessed_at=now,
        blocker_id=blocker.id,
    )
    return updated, blocker


def update_risk_status(
    risk: Risk,
    status: RiskStatus,
    mitigation_progress: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Risk:
    if mitigation_progress is not None and not 0 <= mitigation_progress <= 100:
        raise ValueError(f"Mitigation progress must be 0-100, got {mitigation_progress}")

    now = _now(now)
    return replace(
        risk,
        status=status,
        last_assessed_at=now,
        mitigation_progress=mitigation_progress if mitigation_progress is not None else risk.mitigation_progress,
        mitigated_at=now if status == RiskStatus.AVOIDED else risk.mitigated_at,
    )


def dismiss_risk(risk: Risk, now: Optional[datetime] = None) -> Risk:
    return replace(risk, is_dismissed=True, last_assessed_at=_now(now))


def high_priority_risks(risks: List[Risk]) -> List[Risk]:
    """Live risks scoring 6 or more."""
    return [
        r for r in risks
        if r.risk_score >= HIGH_PRIORITY_RISK_SCORE
        and r.status not in (RiskStatus.MATERIALIZED, RiskStatus.AVOIDED)
        and not r.is_dismissed
    ]


# Critical path


def is_on_critical_path(
    milestone: Milestone,
    milestones: List[Milestone],
    master_deadline: date,
    _seen: Optional[set] = None,
) -> bool:
    """Due within two weeks of the master deadline, or something depending on it is."""
    if (master_deadline - milestone.deadline).days <= CRITICAL_PATH_DAYS:
        return True

    seen = _seen if _seen is not None else set()
    seen.add(milestone.id)
    dependents = [m for m in milestones if milestone.id in m.dependencies and m.id not in seen]
    return any(is_on_critical_path(d, milestones, master_deadline, seen) for d in dependents)


def slack_days(milestone: Milestone, dependents: List[Milestone]) -> int:
    if not dependents:
        return 0
    earliest = min(m.start_date for m in dependents)
    return max(0, (earliest - milestone.deadline).days)

"""Application state snapshot and its plain-data conversion."""

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, List, Optional, Any

from .project import Milestone, Phase, Project, Subject, WorkSession
from .risk import (
    Blocker,
    BlockerCategory,
    BlockerSeverity,
    BlockerStatus,
    BlockerUpdate,
    BlockerUpdateType,
    Risk,
    RiskImpact,
    RiskProbability,
    RiskStatus,
)
from .settings import BlockerSettings, DeepWorkSettings, EnergySettings
from ..utils.datetime_utils import parse_date, parse_datetime


@dataclass(frozen=True)
class AppState:
    """Everything the engine needs for one invocation."""

    projects: List[Project]
    master_deadline: date
    weekly_hours_budget: float = 6
    deep_work_settings: DeepWorkSettings = field(default_factory=DeepWorkSettings)
    energy_settings: EnergySettings = field(default_factory=EnergySettings)
    risks: List[Risk] = field(default_factory=list)
    blockers: List[Blocker] = field(default_factory=list)
    blocker_settings: BlockerSettings = field(default_factory=BlockerSettings)

    def __post_init__(self):
        if self.weekly_hours_budget <= 0:
            raise ValueError(f"Weekly hours budget must be positive, got {self.weekly_hours_budget}")

    @property
    def all_milestones(self) -> List[Milestone]:
        return [m for project in self.projects for m in project.milestones]

    def find_project(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def find_milestone(self, milestone_id: str) -> Optional[Milestone]:
        for project in self.projects:
            milestone = project.find_milestone(milestone_id)
            if milestone is not None:
                return milestone
        return None

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        deep_work_settings: Optional[DeepWorkSettings] = None,
        energy_settings: Optional[EnergySettings] = None,
        blocker_settings: Optional[BlockerSettings] = None,
    ) -> 'AppState':
        """Build a snapshot from JSON/YAML data (snake_case or camelCase keys).

        Settings are usually supplied from the config file rather than the
        snapshot itself.
        """
        projects = [_project_from_dict(p) for p in _get(data, 'projects', 'ias', default=[])]
        return cls(
            projects=projects,
            master_deadline=parse_date(_get(data, 'master_deadline', 'masterDeadline')),
            weekly_hours_budget=float(_get(data, 'weekly_hours_budget', 'weeklyHoursBudget', default=6)),
            deep_work_settings=deep_work_settings or DeepWorkSettings(),
            energy_settings=energy_settings or EnergySettings(),
            risks=[_risk_from_dict(r) for r in _get(data, 'risks', default=[])],
            blockers=[_blocker_from_dict(b) for b in _get(data, 'blockers', default=[])],
            blocker_settings=blocker_settings or BlockerSettings(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export projects, deadline, budget, risks and blockers."""
        return {
            'projects': [asdict(p) for p in self.projects],
            'master_deadline': self.master_deadline,
            'weekly_hours_budget': self.weekly_hours_budget,
            'risks': [asdict(r) for r in self.risks],
            'blockers': [asdict(b) for b in self.blockers],
        }


_MISSING = object()


def _get(data: Dict[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    if default is _MISSING:
        raise KeyError(f"Missing required field: {keys[0]}")
    return default


def _optional_date(value):
    return parse_date(value) if value else None


def _optional_datetime(value):
    return parse_datetime(value) if value else None


def _session_from_dict(data: Dict[str, Any]) -> WorkSession:
    return WorkSession(
        id=str(data['id']),
        start=parse_datetime(_get(data, 'start', 'startTime')),
        duration_minutes=int(_get(data, 'duration_minutes', 'durationMinutes')),
        note=data.get('note'),
    )


def _milestone_from_dict(data: Dict[str, Any], project_id: str) -> Milestone:
    phase = data.get('phase')
    actual = _get(data, 'actual_hours', 'actualHours', default=None)
    return Milestone(
        id=str(data['id']),
        project_id=str(_get(data, 'project_id', 'iaId', 'ia_id', default=project_id)),
        name=_get(data, 'name', 'milestone_name'),
        description=data.get('description', ''),
        start_date=parse_date(_get(data, 'start_date', 'startDate')),
        deadline=parse_date(data['deadline']),
        estimated_hours=float(_get(data, 'estimated_hours', 'estimatedHours')),
        buffer_multiplier=float(_get(data, 'buffer_multiplier', 'bufferMultiplier', default=1.0)),
        completed=bool(data.get('completed', False)),
        completed_at=_optional_datetime(_get(data, 'completed_at', 'completedAt', default=None)),
        actual_hours=float(actual) if actual is not None else None,
        phase=Phase(phase) if phase else None,
        dependencies=list(data.get('dependencies', [])),
        work_sessions=[
            _session_from_dict(s) for s in _get(data, 'work_sessions', 'workSessions', default=[])
        ],
    )


def _project_from_dict(data: Dict[str, Any]) -> Project:
    project_id = str(data['id'])
    return Project(
        id=project_id,
        name=data.get('name', project_id),
        subject=Subject(_get(data, 'subject', 'subjectColor')),
        type=data.get('type', ''),
        word_count=int(_get(data, 'word_count', 'wordCount', default=0)),
        milestones=[_milestone_from_dict(m, project_id) for m in data.get('milestones', [])],
        target_deadline=_optional_date(_get(data, 'target_deadline', 'targetDeadline', default=None)),
    )


def _update_from_dict(data: Dict[str, Any]) -> BlockerUpdate:
    return BlockerUpdate(
        id=str(data['id']),
        timestamp=parse_datetime(data['timestamp']),
        message=data.get('message', ''),
        type=BlockerUpdateType(data.get('type', 'note')),
    )


def _blocker_from_dict(data: Dict[str, Any]) -> Blocker:
    original = _get(data, 'original_severity', 'originalSeverity', default=None)
    actual = _get(data, 'actual_delay_days', 'actualDelayDays', default=None)
    return Blocker(
        id=str(data['id']),
        project_id=str(_get(data, 'project_id', 'iaId')),
        milestone_id=str(_get(data, 'milestone_id', 'milestoneId')),
        title=data['title'],
        description=data.get('description', ''),
        category=BlockerCategory(data['category']),
        severity=BlockerSeverity(data['severity']),
        status=BlockerStatus(data.get('status', 'active')),
        created_at=parse_datetime(_get(data, 'created_at', 'createdAt')),
        last_updated_at=parse_datetime(
            _get(data, 'last_updated_at', 'lastUpdatedAt', 'created_at', 'createdAt')
        ),
        estimated_delay_days=int(_get(data, 'estimated_delay_days', 'estimatedDelayDays', default=0)),
        actual_delay_days=int(actual) if actual is not None else None,
        expected_resolution_date=_optional_date(
            _get(data, 'expected_resolution_date', 'expectedResolutionDate', default=None)
        ),
        resolved_at=_optional_datetime(_get(data, 'resolved_at', 'resolvedAt', default=None)),
        resolution_notes=_get(data, 'resolution_notes', 'resolutionNotes', default=None),
        lessons_learned=_get(data, 'lessons_learned', 'lessonsLearned', default=None),
        workaround_applied=_get(data, 'workaround_applied', 'workaroundApplied', default=None),
        waiting_on=_get(data, 'waiting_on', 'waitingOn', default=None),
        last_follow_up_date=_optional_date(_get(data, 'last_follow_up_date', 'lastFollowUpDate', default=None)),
        next_follow_up_date=_optional_date(_get(data, 'next_follow_up_date', 'nextFollowUpDate', default=None)),
        updates=[_update_from_dict(u) for u in data.get('updates', [])],
        auto_escalated_at=_optional_datetime(_get(data, 'auto_escalated_at', 'autoEscalatedAt', default=None)),
        original_severity=BlockerSeverity(original) if original else None,
    )


def _risk_from_dict(data: Dict[str, Any]) -> Risk:
    identified = parse_datetime(_get(data, 'identified_at', 'identifiedAt'))
    return Risk(
        id=str(data['id']),
        title=data['title'],
        description=data.get('description', ''),
        category=BlockerCategory(data['category']),
        probability=RiskProbability(data['probability']),
        impact=RiskImpact(data['impact']),
        status=RiskStatus(data.get('status', 'identified')),
        identified_at=identified,
        last_assessed_at=_optional_datetime(
            _get(data, 'last_assessed_at', 'lastAssessedAt', default=None)
        ) or identified,
        project_id=_get(data, 'project_id', 'iaId', default=None),
        milestone_id=_get(data, 'milestone_id', 'milestoneId', default=None),
        materialized_at=_optional_datetime(_get(data, 'materialized_at', 'materializedAt', default=None)),
        mitigated_at=_optional_datetime(_get(data, 'mitigated_at', 'mitigatedAt', default=None)),
        mitigation_strategy=_get(data, 'mitigation_strategy', 'mitigationStrategy', default=None),
        contingency_plan=_get(data, 'contingency_plan', 'contingencyPlan', default=None),
        mitigation_progress=_get(data, 'mitigation_progress', 'mitigationProgress', default=None),
        blocker_id=_get(data, 'blocker_id', 'blockerId', default=None),
        is_system_suggested=bool(_get(data, 'is_system_suggested', 'isSystemSuggested', default=False)),
        is_dismissed=bool(_get(data, 'is_dismissed', 'isDismissed', default=False)),
    )

"""User-facing warnings, fixes and optimization scenarios.

Fix actions form a closed set of frozen dataclasses. ``apply_fix`` in the
warning engine dispatches on the concrete type.
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union, Any

from .project import Phase


class WarningType(str, Enum):
    DEADLINE_IMPOSSIBLE = "deadline_impossible"
    DEADLINE_RISK = "deadline_risk"
    OVERDUE = "overdue"
    WEEKLY_BUDGET_EXCEEDED = "weekly_budget_exceeded"
    DRAFT_OVERLAP = "draft_overlap"
    DEEP_WORK = "deep_work"
    ENERGY_MISMATCH = "energy_mismatch"
    BLOCKER = "blocker"
    RISK = "risk"


class WarningSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


SEVERITY_RANK = {
    WarningSeverity.CRITICAL: 0,
    WarningSeverity.WARNING: 1,
    WarningSeverity.INFO: 2,
}


class FixType(str, Enum):
    EXTEND_DEADLINE = "extend_deadline"
    INCREASE_HOURS = "increase_hours"
    SHIFT_MILESTONES = "shift_milestones"
    EXTEND_SESSION = "extend_session"
    CONSOLIDATE = "consolidate"
    SEQUENCE_DRAFTS = "sequence_drafts"
    REDUCE_SCOPE = "reduce_scope"
    MARK_COMPLETE = "mark_complete"
    ESCALATE = "escalate"
    DISMISS = "dismiss"
    KEEP = "keep"


class FixRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Fix actions


@dataclass(frozen=True)
class ExtendDeadline:
    new_deadline: date


@dataclass(frozen=True)
class SetWeeklyHours:
    hours: float


@dataclass(frozen=True)
class ShiftMilestones:
    """Shift milestones of one project by a number of days.

    An empty milestone_ids shifts every incomplete milestone of the project.
    """

    project_id: str
    days: int
    milestone_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtendSession:
    milestone_id: str
    hours: float


@dataclass(frozen=True)
class ConsolidateMilestone:
    milestone_id: str
    new_deadline: date


@dataclass(frozen=True)
class SequenceDrafts:
    pass


@dataclass(frozen=True)
class CompleteMilestone:
    milestone_id: str


@dataclass(frozen=True)
class EscalateBlocker:
    blocker_id: str


@dataclass(frozen=True)
class DismissRisk:
    risk_id: str


@dataclass(frozen=True)
class ScaleEstimates:
    """Multiply incomplete milestone estimates, optionally limited to phases."""

    factor: float
    phases: Tuple[Phase, ...] = ()


@dataclass(frozen=True)
class KeepSchedule:
    pass


FixAction = Union[
    ExtendDeadline,
    SetWeeklyHours,
    ShiftMilestones,
    ExtendSession,
    ConsolidateMilestone,
    SequenceDrafts,
    CompleteMilestone,
    EscalateBlocker,
    DismissRisk,
    ScaleEstimates,
    KeepSchedule,
]


@dataclass
class ScheduleFix:
    id: str
    type: FixType
    label: str
    description: str
    impact: str
    action: FixAction
    risk: FixRisk = FixRisk.LOW
    recommended: bool = False


@dataclass
class ScheduleWarning:
    id: str
    type: WarningType
    severity: WarningSeverity
    title: str
    description: str
    impact: str
    fixes: List[ScheduleFix] = field(default_factory=list)
    affected_project_ids: List[str] = field(default_factory=list)
    affected_milestone_ids: List[str] = field(default_factory=list)
    hours_short: Optional[float] = None
    days_late: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for fix_data, fix in zip(data['fixes'], self.fixes):
            fix_data['action'] = {'kind': type(fix.action).__name__, **asdict(fix.action)}
        return data


@dataclass
class FixResult:
    success: bool
    message: str
    changes: List[str] = field(default_factory=list)
    new_deadline: Optional[date] = None
    new_weekly_hours: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OptimizationScenario:
    id: str
    name: str
    description: str
    actions: List[FixAction]
    tradeoffs: List[str]
    recommended: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'actions': [{'kind': type(a).__name__, **asdict(a)} for a in self.actions],
            'tradeoffs': list(self.tradeoffs),
            'recommended': self.recommended,
        }


@dataclass
class ProjectHours:
    project_id: str
    project_name: str
    hours_needed: float
    weeks_needed: int


class UserAction(str, Enum):
    NONE = "none"
    INCREASE_HOURS = "increase_hours"
    EXTEND_DEADLINE = "extend_deadline"


@dataclass
class GenerationFeasibility:
    """Whether the remaining work fits before the master deadline."""

    is_feasible: bool
    can_proceed: bool
    total_hours_needed: float
    available_hours: float
    shortfall: float
    weeks_needed: int
    weeks_available: float
    minimum_deadline: date
    suggested_weekly_hours: Optional[int]
    user_action_required: UserAction
    message: str
    breakdown: List[ProjectHours] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

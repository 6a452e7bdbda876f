"""Report objects produced by the analysis engine."""

from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Any

from .project import Milestone, Phase, Subject
from .settings import CognitiveLoad, EnergyLevel


@dataclass
class MultiplierBucket:
    multiplier: float = 1.0
    sample_count: int = 0


@dataclass
class LearnedMultipliers:
    """Actual-to-estimated ratios grouped by phase, subject and overall."""

    phases: Dict[Phase, MultiplierBucket] = field(
        default_factory=lambda: {phase: MultiplierBucket() for phase in Phase}
    )
    subjects: Dict[Subject, MultiplierBucket] = field(
        default_factory=lambda: {subject: MultiplierBucket() for subject in Subject}
    )
    overall: MultiplierBucket = field(default_factory=MultiplierBucket)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phases': {phase.value: asdict(bucket) for phase, bucket in self.phases.items()},
            'subjects': {subject.value: asdict(bucket) for subject, bucket in self.subjects.items()},
            'overall': asdict(self.overall),
        }


@dataclass
class AdjustedEstimate:
    original_hours: float
    adjusted_hours: float
    applied_multiplier: float
    source: str
    confidence: str
    sample_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScheduledSession:
    """Synthetic work block laid out on a single day."""

    id: str
    milestone_id: str
    project_id: str
    date: date
    start_time: str
    end_time: str
    duration_hours: float
    phase: Phase
    is_deep_work: bool
    includes_prep: bool = False
    includes_decompress: bool = False


@dataclass
class ContextSwitch:
    date: date
    from_project_id: str
    to_project_id: str
    penalty_minutes: int
    is_same_day: bool = True
    has_gap_between: bool = False


class ViolationType(str, Enum):
    MINIMUM_SESSION = "minimum_session"
    CONTEXT_SWITCH = "context_switch"
    MAX_IAS_PER_DAY = "max_ias_per_day"
    FRAGMENTED_WORK = "fragmented_work"
    DEEP_WORK_CONFLICT = "deep_work_conflict"


class AutoFixAction(str, Enum):
    CONSOLIDATE = "consolidate"
    MOVE = "move"
    EXTEND = "extend"
    SWAP = "swap"


@dataclass(frozen=True)
class SuggestedChange:
    milestone_id: str
    field: str  # start_date, deadline or scheduled_time
    new_value: str


@dataclass(frozen=True)
class AutoFix:
    description: str
    action: AutoFixAction
    suggested_changes: List[SuggestedChange] = field(default_factory=list)


@dataclass
class ScheduleViolation:
    id: str
    type: ViolationType
    severity: str  # error or warning
    message: str
    affected_milestone_ids: List[str]
    affected_date: Optional[date] = None
    productivity_penalty_percent: Optional[int] = None
    auto_fix: Optional[AutoFix] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DailyScheduleAnalysis:
    date: date
    sessions: List[ScheduledSession]
    ia_count: int
    total_hours: float
    effective_hours: float
    context_switches: List[ContextSwitch]
    violations: List[ScheduleViolation]
    productivity_score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FullScheduleAnalysis:
    violations: List[ScheduleViolation]
    daily_analyses: List[DailyScheduleAnalysis]
    overall_productivity_score: int
    total_context_switches: int
    total_penalty_hours: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TimeSlot:
    date: date
    hour: int
    energy_level: EnergyLevel
    reason: str


@dataclass
class EnergyMismatch:
    id: str
    milestone_id: str
    milestone_name: str
    date: date
    scheduled_hour: int
    task_cognitive_load: CognitiveLoad
    window_energy_level: EnergyLevel
    productivity_impact_percent: int
    suggested_alternatives: List[TimeSlot] = field(default_factory=list)


@dataclass
class WeeklyEnergyAnalysis:
    week_start: date
    well_matched_sessions: int
    mismatched_sessions: int
    mismatches: List[EnergyMismatch]
    overall_energy_score: int
    high_load_in_low_energy: int
    low_load_in_high_energy: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RescheduleResult:
    """Outcome of a single-project reschedule."""

    updated_milestones: List[Milestone]
    message: str
    impacted_project_ids: List[str] = field(default_factory=list)
    deadline_at_risk: bool = False
    new_completion_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

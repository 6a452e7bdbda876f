"""Risk and blocker data models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class BlockerCategory(str, Enum):
    RESOURCE = "resource"
    APPROVAL = "approval"
    EXTERNAL_DEPENDENCY = "external_dependency"
    KNOWLEDGE_GAP = "knowledge_gap"
    TECHNICAL_ISSUE = "technical_issue"
    HEALTH_PERSONAL = "health_personal"


class BlockerSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Escalation order
SEVERITY_ORDER = [
    BlockerSeverity.LOW,
    BlockerSeverity.MEDIUM,
    BlockerSeverity.HIGH,
    BlockerSeverity.CRITICAL,
]


class BlockerStatus(str, Enum):
    ACTIVE = "active"
    STALE = "stale"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class BlockerUpdateType(str, Enum):
    STATUS_CHANGE = "status_change"
    NOTE = "note"
    ESCALATION = "escalation"
    FOLLOW_UP = "follow_up"


class RiskProbability(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def value_score(self) -> int:
        return _PROBABILITY_SCORES[self]


class RiskImpact(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    SEVERE = "severe"

    @property
    def value_score(self) -> int:
        return _IMPACT_SCORES[self]


_PROBABILITY_SCORES = {
    RiskProbability.LOW: 1,
    RiskProbability.MEDIUM: 2,
    RiskProbability.HIGH: 3,
    RiskProbability.VERY_HIGH: 4,
}

_IMPACT_SCORES = {
    RiskImpact.MINOR: 1,
    RiskImpact.MODERATE: 2,
    RiskImpact.MAJOR: 3,
    RiskImpact.SEVERE: 4,
}


class RiskStatus(str, Enum):
    IDENTIFIED = "identified"
    MITIGATING = "mitigating"
    MATERIALIZED = "materialized"
    AVOIDED = "avoided"
    ACCEPTED = "accepted"


def calculate_risk_score(probability: RiskProbability, impact: RiskImpact) -> int:
    """Risk score on a 1-16 scale."""
    return probability.value_score * impact.value_score


@dataclass(frozen=True)
class BlockerUpdate:
    id: str
    timestamp: datetime
    message: str
    type: BlockerUpdateType = BlockerUpdateType.NOTE


@dataclass(frozen=True)
class Blocker:
    """A reactively logged impediment on a milestone."""

    id: str
    project_id: str
    milestone_id: str
    title: str
    description: str
    category: BlockerCategory
    severity: BlockerSeverity
    status: BlockerStatus
    created_at: datetime
    last_updated_at: datetime
    estimated_delay_days: int = 0
    actual_delay_days: Optional[int] = None
    expected_resolution_date: Optional[date] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    lessons_learned: Optional[str] = None
    workaround_applied: Optional[str] = None
    waiting_on: Optional[str] = None
    last_follow_up_date: Optional[date] = None
    next_follow_up_date: Optional[date] = None
    updates: List[BlockerUpdate] = field(default_factory=list)
    auto_escalated_at: Optional[datetime] = None
    original_severity: Optional[BlockerSeverity] = None

    @property
    def is_open(self) -> bool:
        return self.status != BlockerStatus.RESOLVED


@dataclass(frozen=True)
class Risk:
    """A proactively identified risk, scored probability x impact."""

    id: str
    title: str
    description: str
    category: BlockerCategory
    probability: RiskProbability
    impact: RiskImpact
    status: RiskStatus
    identified_at: datetime
    last_assessed_at: datetime
    project_id: Optional[str] = None
    milestone_id: Optional[str] = None
    materialized_at: Optional[datetime] = None
    mitigated_at: Optional[datetime] = None
    mitigation_strategy: Optional[str] = None
    contingency_plan: Optional[str] = None
    mitigation_progress: Optional[int] = None
    blocker_id: Optional[str] = None
    is_system_suggested: bool = False
    is_dismissed: bool = False

    @property
    def risk_score(self) -> int:
        return calculate_risk_score(self.probability, self.impact)


@dataclass(frozen=True)
class BlockerTemplate:
    id: str
    title: str
    description: str
    category: BlockerCategory
    default_severity: BlockerSeverity
    suggested_workarounds: List[str]
    estimated_resolution_days: int


@dataclass(frozen=True)
class RiskSuggestion:
    id: str
    for_subject: str
    title: str
    description: str
    category: BlockerCategory
    default_probability: RiskProbability
    default_impact: RiskImpact
    mitigation_suggestion: str
    contingency_suggestion: str
    for_phase: Optional[str] = None

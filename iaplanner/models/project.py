"""Project (IA) and milestone data models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class Subject(str, Enum):
    MATH = "math"
    PHYSICS = "physics"
    ECONOMICS = "economics"
    ENGLISH = "english"
    HISTORY = "history"


class Phase(str, Enum):
    """Canonical work phases, in classifier priority order."""

    RESEARCH = "research"
    OUTLINE = "outline"
    DRAFT = "draft"
    REVISION = "revision"
    POLISH = "polish"


class ProjectStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class WorkSession:
    """A logged block of work on a milestone. Append-only."""

    id: str
    start: datetime
    duration_minutes: int
    note: Optional[str] = None


@dataclass(frozen=True)
class Milestone:
    """A dated unit of work inside a project."""

    id: str
    project_id: str
    name: str
    start_date: date
    deadline: date
    estimated_hours: float
    buffer_multiplier: float = 1.0
    description: str = ""
    completed: bool = False
    completed_at: Optional[datetime] = None
    actual_hours: Optional[float] = None
    phase: Optional[Phase] = None
    dependencies: List[str] = field(default_factory=list)
    work_sessions: List[WorkSession] = field(default_factory=list)

    def __post_init__(self):
        """Reject inverted date ranges."""
        if self.start_date > self.deadline:
            raise ValueError(
                f"Milestone {self.id}: start date {self.start_date} is after deadline {self.deadline}"
            )

    @property
    def scheduled_hours(self) -> float:
        """Base estimate inflated by the buffer multiplier."""
        return self.estimated_hours * self.buffer_multiplier

    @property
    def span_days(self) -> int:
        """Number of calendar days covered, inclusive."""
        return (self.deadline - self.start_date).days + 1


@dataclass(frozen=True)
class Project:
    """An internal assessment with an ordered milestone sequence."""

    id: str
    name: str
    subject: Subject
    type: str = ""
    word_count: int = 0
    milestones: List[Milestone] = field(default_factory=list)
    target_deadline: Optional[date] = None

    def status(self, today: Optional[date] = None) -> ProjectStatus:
        return derive_project_status(self.milestones, today)

    def find_milestone(self, milestone_id: str) -> Optional[Milestone]:
        for milestone in self.milestones:
            if milestone.id == milestone_id:
                return milestone
        return None

    def incomplete_milestones(self) -> List[Milestone]:
        return [m for m in self.milestones if not m.completed]


def derive_project_status(milestones: List[Milestone], today: Optional[date] = None) -> ProjectStatus:
    """Recompute a project's status from its milestones."""
    if today is None:
        today = date.today()

    if milestones and all(m.completed for m in milestones):
        return ProjectStatus.COMPLETED
    if any(not m.completed and m.deadline < today for m in milestones):
        return ProjectStatus.OVERDUE
    if any(m.completed for m in milestones):
        return ProjectStatus.IN_PROGRESS
    return ProjectStatus.NOT_STARTED

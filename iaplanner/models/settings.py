"""Deep-work, energy and blocker settings."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .project import Phase


class EnergyLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CognitiveLoad(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _default_minimum_session_hours() -> Dict[Phase, float]:
    return {
        Phase.RESEARCH: 2.0,
        Phase.OUTLINE: 1.5,
        Phase.DRAFT: 3.0,
        Phase.REVISION: 2.0,
        Phase.POLISH: 1.0,
    }


@dataclass(frozen=True)
class DeepWorkSettings:
    """Focus-session rules used by the deep-work analyzer."""

    minimum_session_hours: Dict[Phase, float] = field(default_factory=_default_minimum_session_hours)
    context_switch_penalty_minutes: int = 30
    max_projects_per_day: int = 2
    prep_buffer_minutes: int = 15
    decompress_buffer_minutes: int = 15
    enforce_deep_work_windows: bool = False
    deep_work_windows: List[Tuple[int, int]] = field(default_factory=lambda: [(9, 12), (14, 17)])


@dataclass(frozen=True)
class EnergyWindow:
    """A time-of-day window, [start_hour, end_hour), tagged with an energy level."""

    id: str
    start_hour: int
    end_hour: int
    level: EnergyLevel
    description: Optional[str] = None


@dataclass(frozen=True)
class DayEnergyPattern:
    windows: List[EnergyWindow] = field(default_factory=list)


DEFAULT_WEEKDAY_PATTERN = DayEnergyPattern(windows=[
    EnergyWindow("early-morning", 6, 8, EnergyLevel.MEDIUM, "Wake up, getting started"),
    EnergyWindow("morning-peak", 8, 12, EnergyLevel.HIGH, "Peak focus time"),
    EnergyWindow("lunch-dip", 12, 14, EnergyLevel.LOW, "Post-lunch energy dip"),
    EnergyWindow("afternoon", 14, 17, EnergyLevel.MEDIUM, "Recovering energy"),
    EnergyWindow("evening", 17, 20, EnergyLevel.MEDIUM, "Evening focus"),
    EnergyWindow("night", 20, 23, EnergyLevel.LOW, "Winding down"),
])

DEFAULT_WEEKEND_PATTERN = DayEnergyPattern(windows=[
    EnergyWindow("morning-slow", 8, 10, EnergyLevel.MEDIUM, "Relaxed morning"),
    EnergyWindow("late-morning", 10, 13, EnergyLevel.HIGH, "Weekend peak"),
    EnergyWindow("afternoon", 13, 17, EnergyLevel.MEDIUM, "Flexible afternoon"),
    EnergyWindow("evening", 17, 22, EnergyLevel.LOW, "Rest time"),
])


@dataclass(frozen=True)
class EnergyProfile:
    """Weekly energy calendar.

    exceptions maps an ISO date string to a pattern that replaces the
    weekday/weekend pattern for that day.
    """

    weekday_pattern: DayEnergyPattern = DEFAULT_WEEKDAY_PATTERN
    weekend_pattern: DayEnergyPattern = DEFAULT_WEEKEND_PATTERN
    exceptions: Dict[str, DayEnergyPattern] = field(default_factory=dict)
    focus_mode_days: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EnergySettings:
    profile: EnergyProfile = field(default_factory=EnergyProfile)
    enforce_energy_matching: bool = True
    allow_mismatch_overrides: bool = True
    # Productivity penalty percentages
    high_load_in_medium_penalty: int = 20
    high_load_in_low_penalty: int = 40
    medium_load_in_low_penalty: int = 15


@dataclass(frozen=True)
class BlockerSettings:
    stale_after_days: int = 3
    auto_escalate_after_days: int = 2
    notify_on_critical: bool = True
    notify_on_stale: bool = True
    notify_on_overdue: bool = True
    default_follow_up_interval_days: int = 2

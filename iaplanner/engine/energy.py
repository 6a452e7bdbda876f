"""Energy and cognitive-load matching."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple, Any

from ..models.analysis import EnergyMismatch, TimeSlot, WeeklyEnergyAnalysis
from ..models.project import Milestone, Phase, Project, Subject
from ..models.settings import (
    CognitiveLoad,
    DayEnergyPattern,
    EnergyLevel,
    EnergyProfile,
    EnergySettings,
    EnergyWindow,
)
from ..models.state import AppState
from ..utils.datetime_utils import date_range, is_weekend, start_of_week
from ..utils.rounding import round_half_up
from .phases import milestone_phase

logger = logging.getLogger(__name__)

# Milestones are assumed to be worked on from this hour of their start date
DEFAULT_SCHEDULED_HOUR = 9
MAX_ALTERNATIVES = 5

_H, _M, _L = CognitiveLoad.HIGH, CognitiveLoad.MEDIUM, CognitiveLoad.LOW

COGNITIVE_LOAD_MATRIX: Dict[Tuple[Subject, Phase], CognitiveLoad] = {
    (Subject.MATH, Phase.RESEARCH): _H,
    (Subject.MATH, Phase.OUTLINE): _H,
    (Subject.MATH, Phase.DRAFT): _H,
    (Subject.MATH, Phase.REVISION): _H,
    (Subject.MATH, Phase.POLISH): _M,

    (Subject.PHYSICS, Phase.RESEARCH): _H,
    (Subject.PHYSICS, Phase.OUTLINE): _H,
    (Subject.PHYSICS, Phase.DRAFT): _H,
    (Subject.PHYSICS, Phase.REVISION): _M,
    (Subject.PHYSICS, Phase.POLISH): _L,

    (Subject.ECONOMICS, Phase.RESEARCH): _L,
    (Subject.ECONOMICS, Phase.OUTLINE): _M,
    (Subject.ECONOMICS, Phase.DRAFT): _H,
    (Subject.ECONOMICS, Phase.REVISION): _M,
    (Subject.ECONOMICS, Phase.POLISH): _L,

    (Subject.ENGLISH, Phase.RESEARCH): _M,
    (Subject.ENGLISH, Phase.OUTLINE): _H,
    (Subject.ENGLISH, Phase.DRAFT): _H,
    (Subject.ENGLISH, Phase.REVISION): _H,
    (Subject.ENGLISH, Phase.POLISH): _L,

    (Subject.HISTORY, Phase.RESEARCH): _H,
    (Subject.HISTORY, Phase.OUTLINE): _M,
    (Subject.HISTORY, Phase.DRAFT): _H,
    (Subject.HISTORY, Phase.REVISION): _M,
    (Subject.HISTORY, Phase.POLISH): _L,
}

LOAD_LABELS = {
    CognitiveLoad.HIGH: "High Intensity",
    CognitiveLoad.MEDIUM: "Medium Intensity",
    CognitiveLoad.LOW: "Low Intensity",
}

ENERGY_LABELS = {
    EnergyLevel.HIGH: "Peak Energy",
    EnergyLevel.MEDIUM: "Moderate Energy",
    EnergyLevel.LOW: "Low Energy",
}


def cognitive_load(subject: Subject, phase: Phase) -> CognitiveLoad:
    return COGNITIVE_LOAD_MATRIX.get((subject, phase), CognitiveLoad.MEDIUM)


def energy_pattern_for_date(day: date, profile: EnergyProfile) -> DayEnergyPattern:
    """Exception pattern for the date if any, else weekend or weekday."""
    exception = profile.exceptions.get(day.isoformat())
    if exception is not None:
        return exception
    return profile.weekend_pattern if is_weekend(day) else profile.weekday_pattern


def energy_window_at_hour(day: date, hour: float, profile: EnergyProfile) -> Optional[EnergyWindow]:
    for window in energy_pattern_for_date(day, profile).windows:
        if window.start_hour <= hour < window.end_hour:
            return window
    return None


def energy_level_at_hour(day: date, hour: float, profile: EnergyProfile) -> EnergyLevel:
    """Energy level at an hour; hours outside every window count as low."""
    window = energy_window_at_hour(day, hour, profile)
    return window.level if window is not None else EnergyLevel.LOW


def is_focus_mode_day(day: date, profile: EnergyProfile) -> bool:
    return day.isoformat() in profile.focus_mode_days


def is_energy_match(load: CognitiveLoad, level: EnergyLevel) -> bool:
    """High load needs high energy, medium needs at least medium."""
    if load == CognitiveLoad.HIGH:
        return level == EnergyLevel.HIGH
    if load == CognitiveLoad.MEDIUM:
        return level in (EnergyLevel.HIGH, EnergyLevel.MEDIUM)
    return True


def mismatch_penalty(load: CognitiveLoad, level: EnergyLevel, settings: EnergySettings) -> int:
    """Productivity penalty percent for working at load during level."""
    if load == CognitiveLoad.HIGH:
        if level == EnergyLevel.MEDIUM:
            return settings.high_load_in_medium_penalty
        if level == EnergyLevel.LOW:
            return settings.high_load_in_low_penalty
    if load == CognitiveLoad.MEDIUM and level == EnergyLevel.LOW:
        return settings.medium_load_in_low_penalty
    return 0


def describe_mismatch(load: CognitiveLoad, level: EnergyLevel) -> str:
    if load == CognitiveLoad.HIGH and level == EnergyLevel.LOW:
        return "Critical mismatch: High-demand task during low energy time"
    if load == CognitiveLoad.HIGH and level == EnergyLevel.MEDIUM:
        return "Suboptimal: High-demand task during medium energy time"
    if load == CognitiveLoad.MEDIUM and level == EnergyLevel.LOW:
        return "Mismatch: Medium-demand task during low energy time"
    if load == CognitiveLoad.LOW and level == EnergyLevel.HIGH:
        return "Wasted peak: Low-demand task using prime energy time"
    return "Good match"


def find_better_time_slots(
    load: CognitiveLoad,
    start_date: date,
    profile: EnergyProfile,
    days_to_search: int = 7,
    limit: int = MAX_ALTERNATIVES,
) -> List[TimeSlot]:
    """Windows in the coming days whose energy suits the given load.

    High load only takes high-energy windows and low load only takes
    low-energy ones, leaving peaks free. Medium load takes any match.
    Peaks on focus-mode days come first for high load.
    """
    slots = []

    for offset in range(days_to_search):
        day = start_date + timedelta(days=offset)
        for window in energy_pattern_for_date(day, profile).windows:
            if not is_energy_match(load, window.level):
                continue

            if load == CognitiveLoad.HIGH and window.level == EnergyLevel.HIGH:
                if is_focus_mode_day(day, profile):
                    reason = "Focus mode day - ideal for intensive work"
                else:
                    reason = f"{window.description or 'Peak energy'} - ideal for intensive work"
            elif load == CognitiveLoad.MEDIUM:
                reason = window.description or "Good energy window"
            elif load == CognitiveLoad.LOW and window.level == EnergyLevel.LOW:
                reason = f"{window.description or 'Low energy time'} - perfect for light tasks"
            else:
                continue

            slots.append(TimeSlot(date=day, hour=window.start_hour, energy_level=window.level, reason=reason))

    if load == CognitiveLoad.HIGH:
        slots.sort(key=lambda slot: not is_focus_mode_day(slot.date, profile))
    return slots[:limit]


def _milestone_load(milestone: Milestone, subjects: Dict[str, Subject]) -> Optional[CognitiveLoad]:
    subject = subjects.get(milestone.project_id)
    if subject is None:
        return None
    return cognitive_load(subject, milestone_phase(milestone))


def detect_energy_mismatches(
    milestones: List[Milestone],
    projects: List[Project],
    settings: EnergySettings,
) -> List[EnergyMismatch]:
    """Incomplete milestones whose start-day slot is below the energy they need."""
    subjects = {p.id: p.subject for p in projects}
    mismatches = []

    for milestone in milestones:
        if milestone.completed:
            continue

        load = _milestone_load(milestone, subjects)
        if load is None:
            continue

        level = energy_level_at_hour(milestone.start_date, DEFAULT_SCHEDULED_HOUR, settings.profile)
        if is_energy_match(load, level):
            continue

        mismatches.append(EnergyMismatch(
            id=f"mismatch-{milestone.id}",
            milestone_id=milestone.id,
            milestone_name=milestone.name,
            date=milestone.start_date,
            scheduled_hour=DEFAULT_SCHEDULED_HOUR,
            task_cognitive_load=load,
            window_energy_level=level,
            productivity_impact_percent=mismatch_penalty(load, level, settings),
            suggested_alternatives=find_better_time_slots(load, milestone.start_date, settings.profile),
        ))

    return mismatches


def analyze_weekly_energy(state: AppState, today: Optional[date] = None) -> WeeklyEnergyAnalysis:
    """Energy alignment for milestones starting or due this week (Sunday start)."""
    if today is None:
        today = date.today()

    settings = state.energy_settings
    week_start = start_of_week(today)
    week_end = week_start + timedelta(days=7)
    subjects = {p.id: p.subject for p in state.projects}

    week_milestones = [
        m for m in state.all_milestones
        if not m.completed and (
            week_start <= m.start_date < week_end or week_start <= m.deadline < week_end
        )
    ]

    mismatches = detect_energy_mismatches(week_milestones, state.projects, settings)

    well_matched = 0
    high_in_low = 0
    low_in_high = 0

    for milestone in week_milestones:
        load = _milestone_load(milestone, subjects)
        if load is None:
            continue
        level = energy_level_at_hour(milestone.start_date, DEFAULT_SCHEDULED_HOUR, settings.profile)

        if is_energy_match(load, level):
            well_matched += 1
        if load == CognitiveLoad.HIGH and level == EnergyLevel.LOW:
            high_in_low += 1
        if load == CognitiveLoad.LOW and level == EnergyLevel.HIGH:
            low_in_high += 1

    total = len(week_milestones)
    score = round_half_up(well_matched / total * 100) if total > 0 else 100

    return WeeklyEnergyAnalysis(
        week_start=week_start,
        well_matched_sessions=well_matched,
        mismatched_sessions=len(mismatches),
        mismatches=mismatches,
        overall_energy_score=score,
        high_load_in_low_energy=high_in_low,
        low_load_in_high_energy=low_in_high,
    )


def high_energy_windows(start: date, end: date, profile: EnergyProfile) -> List[Tuple[date, EnergyWindow]]:
    """All high-energy windows between two dates, inclusive."""
    return [
        (day, window)
        for day in date_range(start, end)
        for window in energy_pattern_for_date(day, profile).windows
        if window.level == EnergyLevel.HIGH
    ]


def available_high_energy_hours(start: date, end: date, profile: EnergyProfile) -> float:
    return sum(w.end_hour - w.start_hour for _, w in high_energy_windows(start, end, profile))


def validate_high_energy_capacity(
    milestones: List[Milestone],
    projects: List[Project],
    start: date,
    end: date,
    settings: EnergySettings,
) -> Dict[str, Any]:
    """Check that high-load work fits in the high-energy hours of a period."""
    subjects = {p.id: p.subject for p in projects}
    required = sum(
        m.scheduled_hours
        for m in milestones
        if not m.completed and _milestone_load(m, subjects) == CognitiveLoad.HIGH
    )
    available = available_high_energy_hours(start, end, settings.profile)
    shortfall = max(0.0, required - available)

    return {
        'is_valid': shortfall == 0,
        'required_high_energy_hours': required,
        'available_high_energy_hours': available,
        'shortfall': shortfall,
    }


def energy_optimization_suggestions(state: AppState) -> List[Dict[str, Any]]:
    """One move suggestion per mismatch, largest expected gain first."""
    settings = state.energy_settings
    projects = {p.id: p for p in state.projects}
    suggestions = []

    for mismatch in detect_energy_mismatches(state.all_milestones, state.projects, settings):
        if not mismatch.suggested_alternatives:
            continue
        milestone = state.find_milestone(mismatch.milestone_id)
        project = projects[milestone.project_id]
        best = mismatch.suggested_alternatives[0]
        load = mismatch.task_cognitive_load

        suggestions.append({
            'milestone_id': mismatch.milestone_id,
            'milestone_name': mismatch.milestone_name,
            'project_name': project.name,
            'current_cognitive_load': load,
            'current_energy_level': mismatch.window_energy_level,
            'suggested_date': best.date,
            'suggested_hour': best.hour,
            'suggested_energy_level': best.energy_level,
            'expected_productivity_gain': mismatch.productivity_impact_percent,
            'reason': (
                f"Move {LOAD_LABELS[load].lower()} task from "
                f"{ENERGY_LABELS[mismatch.window_energy_level].lower()} to "
                f"{ENERGY_LABELS[best.energy_level].lower()} window"
            ),
        })

    suggestions.sort(key=lambda s: s['expected_productivity_gain'], reverse=True)
    return suggestions


def energy_optimization_summary(state: AppState) -> Dict[str, Any]:
    suggestions = energy_optimization_suggestions(state)
    return {
        'total_suggestions': len(suggestions),
        'high_priority_suggestions': sum(1 for s in suggestions if s['expected_productivity_gain'] >= 20),
        'potential_productivity_gain': sum(s['expected_productivity_gain'] for s in suggestions),
        'top_suggestion': suggestions[0] if suggestions else None,
    }

"""Configuration management."""

import json
import yaml
from pathlib import Path
from typing import Dict, Any

from ..models.settings import (
    BlockerSettings,
    DayEnergyPattern,
    DeepWorkSettings,
    EnergyLevel,
    EnergyProfile,
    EnergySettings,
    EnergyWindow,
)
from ..models.project import Phase


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML or JSON file."""
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        if path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        elif path.suffix.lower() == '.json':
            return json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        'planner': {
            'weekly_hours_budget': 6,
            'master_deadline': '2026-12-31',
            'feasibility_buffer': 1.2,
            'max_suggested_weekly_hours': 20,
        },
        'deep_work': {
            'minimum_session_hours': {
                'research': 2,
                'outline': 1.5,
                'draft': 3,
                'revision': 2,
                'polish': 1,
            },
            'context_switch_penalty_minutes': 30,
            'max_projects_per_day': 2,
            'prep_buffer_minutes': 15,
            'decompress_buffer_minutes': 15,
            'enforce_deep_work_windows': False,
            'deep_work_windows': [[9, 12], [14, 17]],
        },
        'energy': {
            'enforce_energy_matching': True,
            'allow_mismatch_overrides': True,
            'high_load_in_medium_penalty': 20,
            'high_load_in_low_penalty': 40,
            'medium_load_in_low_penalty': 15,
        },
        'blockers': {
            'stale_after_days': 3,
            'auto_escalate_after_days': 2,
            'notify_on_critical': True,
            'notify_on_stale': True,
            'notify_on_overdue': True,
            'default_follow_up_interval_days': 2,
        },
        'generator': {
            'history_days': 21,
            'timeline_weeks': 12,
            'overrun_mean': 1.2,
            'overrun_std': 0.3,
        },
        'output': {
            'results_dir': 'results',
        },
    }


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def deep_work_settings_from_config(config: Dict[str, Any]) -> DeepWorkSettings:
    """Build DeepWorkSettings from the 'deep_work' section."""
    section = config.get('deep_work', {})
    defaults = DeepWorkSettings()

    minimums = dict(defaults.minimum_session_hours)
    for phase_name, hours in section.get('minimum_session_hours', {}).items():
        minimums[Phase(phase_name)] = float(hours)

    windows = section.get('deep_work_windows')
    if windows is None:
        windows = defaults.deep_work_windows
    else:
        windows = [_window_bounds(w) for w in windows]

    return DeepWorkSettings(
        minimum_session_hours=minimums,
        context_switch_penalty_minutes=section.get(
            'context_switch_penalty_minutes', defaults.context_switch_penalty_minutes
        ),
        max_projects_per_day=section.get('max_projects_per_day', defaults.max_projects_per_day),
        prep_buffer_minutes=section.get('prep_buffer_minutes', defaults.prep_buffer_minutes),
        decompress_buffer_minutes=section.get(
            'decompress_buffer_minutes', defaults.decompress_buffer_minutes
        ),
        enforce_deep_work_windows=section.get(
            'enforce_deep_work_windows', defaults.enforce_deep_work_windows
        ),
        deep_work_windows=windows,
    )


def energy_settings_from_config(config: Dict[str, Any]) -> EnergySettings:
    """Build EnergySettings from the 'energy' section.

    An optional 'profile' subsection may override the weekday/weekend
    patterns; each pattern is a list of windows.
    """
    section = config.get('energy', {})
    defaults = EnergySettings()

    profile = defaults.profile
    profile_section = section.get('profile')
    if profile_section:
        profile = EnergyProfile(
            weekday_pattern=_pattern_from_config(
                profile_section.get('weekday'), profile.weekday_pattern
            ),
            weekend_pattern=_pattern_from_config(
                profile_section.get('weekend'), profile.weekend_pattern
            ),
            exceptions={
                key: _pattern_from_config(value, profile.weekday_pattern)
                for key, value in profile_section.get('exceptions', {}).items()
            },
            focus_mode_days=list(profile_section.get('focus_mode_days', [])),
        )

    return EnergySettings(
        profile=profile,
        enforce_energy_matching=section.get(
            'enforce_energy_matching', defaults.enforce_energy_matching
        ),
        allow_mismatch_overrides=section.get(
            'allow_mismatch_overrides', defaults.allow_mismatch_overrides
        ),
        high_load_in_medium_penalty=section.get(
            'high_load_in_medium_penalty', defaults.high_load_in_medium_penalty
        ),
        high_load_in_low_penalty=section.get(
            'high_load_in_low_penalty', defaults.high_load_in_low_penalty
        ),
        medium_load_in_low_penalty=section.get(
            'medium_load_in_low_penalty', defaults.medium_load_in_low_penalty
        ),
    )


def blocker_settings_from_config(config: Dict[str, Any]) -> BlockerSettings:
    """Build BlockerSettings from the 'blockers' section."""
    section = config.get('blockers', {})
    defaults = BlockerSettings()
    return BlockerSettings(
        stale_after_days=section.get('stale_after_days', defaults.stale_after_days),
        auto_escalate_after_days=section.get(
            'auto_escalate_after_days', defaults.auto_escalate_after_days
        ),
        notify_on_critical=section.get('notify_on_critical', defaults.notify_on_critical),
        notify_on_stale=section.get('notify_on_stale', defaults.notify_on_stale),
        notify_on_overdue=section.get('notify_on_overdue', defaults.notify_on_overdue),
        default_follow_up_interval_days=section.get(
            'default_follow_up_interval_days', defaults.default_follow_up_interval_days
        ),
    )


def _window_bounds(window) -> tuple:
    if isinstance(window, dict):
        return (window['start'], window['end'])
    start, end = window
    return (start, end)


def _pattern_from_config(windows, fallback: DayEnergyPattern) -> DayEnergyPattern:
    if windows is None:
        return fallback
    if isinstance(windows, dict):
        windows = windows.get('windows', [])
    return DayEnergyPattern(windows=[
        EnergyWindow(
            id=w.get('id', f"window-{index}"),
            start_hour=w.get('start_hour', w.get('startHour')),
            end_hour=w.get('end_hour', w.get('endHour')),
            level=EnergyLevel(w['level']),
            description=w.get('description'),
        )
        for index, w in enumerate(windows)
    ])

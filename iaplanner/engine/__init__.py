"""Planning engine: classification, learning, analysis, warnings and rescheduling."""

from .phases import classify_phase, milestone_phase, is_deep_work_phase
from .learning import compute_multipliers, adjust_estimate, log_manual_hours, complete_milestone
from .deepwork import (
    analyze_daily_schedule,
    analyze_full_schedule,
    detect_minimum_session_violations,
    detect_fragmented_milestones,
)
from .energy import cognitive_load, detect_energy_mismatches, analyze_weekly_energy
from .feasibility import check_feasibility
from .warnings import analyze_schedule_warnings, apply_fix, generate_optimization_scenarios
from .reschedule import reschedule_after_completion, reschedule_after_deadline_change, optimize_distribution
from .blockers import (
    create_blocker,
    create_blocker_from_template,
    resolve_blocker,
    escalate_blocker,
    process_auto_escalation,
    create_risk,
    materialize_risk,
)

__all__ = [
    'classify_phase', 'milestone_phase', 'is_deep_work_phase',
    'compute_multipliers', 'adjust_estimate', 'log_manual_hours', 'complete_milestone',
    'analyze_daily_schedule', 'analyze_full_schedule',
    'detect_minimum_session_violations', 'detect_fragmented_milestones',
    'cognitive_load', 'detect_energy_mismatches', 'analyze_weekly_energy',
    'check_feasibility',
    'analyze_schedule_warnings', 'apply_fix', 'generate_optimization_scenarios',
    'reschedule_after_completion', 'reschedule_after_deadline_change', 'optimize_distribution',
    'create_blocker', 'create_blocker_from_template', 'resolve_blocker', 'escalate_blocker',
    'process_auto_escalation', 'create_risk', 'materialize_risk',
]

"""Can the remaining work fit before the master deadline?"""

import logging
import math
from datetime import date, timedelta
from typing import List, Optional

from ..models.project import Project
from ..models.warnings import GenerationFeasibility, ProjectHours, UserAction

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = 1.2
MAX_SUGGESTED_WEEKLY_HOURS = 20

# Typical total hours for a project that has no milestones yet
PROJECT_HOUR_TEMPLATES = {
    'math': 19,
    'physics': 18,
    'history': 15,
    'english': 12,
}
ECONOMICS_PROJECT_HOURS = 7
DEFAULT_PROJECT_HOURS = 15


def template_hours(project: Project) -> float:
    """Base hour estimate for a project before milestones exist."""
    if project.id.startswith('econ'):
        return ECONOMICS_PROJECT_HOURS
    return PROJECT_HOUR_TEMPLATES.get(project.id, DEFAULT_PROJECT_HOURS)


def project_hours_needed(project: Project, buffer_multiplier: float = DEFAULT_BUFFER) -> float:
    """Scheduled hours of incomplete milestones, or the buffered template.

    The template only applies to a project with no milestones at all, so
    adding one completed milestone to such a project drops its need from
    the template to zero.
    """
    if project.milestones:
        return sum(m.scheduled_hours for m in project.milestones if not m.completed)
    return template_hours(project) * buffer_multiplier


def check_feasibility(
    projects: List[Project],
    master_deadline: date,
    weekly_hours_budget: float,
    today: Optional[date] = None,
    buffer_multiplier: float = DEFAULT_BUFFER,
    max_weekly_hours: int = MAX_SUGGESTED_WEEKLY_HOURS,
) -> GenerationFeasibility:
    """Compare hours needed against hours available at the weekly budget."""
    if weekly_hours_budget <= 0:
        raise ValueError(f"Weekly hours budget must be positive, got {weekly_hours_budget}")
    if today is None:
        today = date.today()

    days_available = (master_deadline - today).days
    weeks_available = max(0.0, days_available / 7)
    available = weeks_available * weekly_hours_budget

    breakdown = []
    total_needed = 0.0
    for project in projects:
        hours = project_hours_needed(project, buffer_multiplier)
        breakdown.append(ProjectHours(
            project_id=project.id,
            project_name=project.name,
            hours_needed=hours,
            weeks_needed=math.ceil(hours / weekly_hours_budget),
        ))
        total_needed += hours

    weeks_needed = math.ceil(total_needed / weekly_hours_budget)
    minimum_deadline = today + timedelta(weeks=weeks_needed)
    is_feasible = total_needed <= available
    shortfall = max(0.0, total_needed - available)

    suggested_hours = None
    if weeks_available > 0:
        candidate = math.ceil(total_needed / weeks_available)
        if candidate <= max_weekly_hours:
            suggested_hours = candidate

    if is_feasible:
        action = UserAction.NONE
        message = (
            f"Schedule is feasible. You have {available:.1f} hours available "
            f"and need {total_needed:.1f} hours."
        )
    else:
        action = UserAction.INCREASE_HOURS if suggested_hours is not None else UserAction.EXTEND_DEADLINE
        message = (
            f"IMPOSSIBLE SCHEDULE: You need {total_needed:.1f} hours but only have "
            f"{available:.1f} hours available ({days_available} days at "
            f"{weekly_hours_budget:g}h/week). Shortage: {shortfall:.1f} hours."
        )
        logger.debug("Infeasible schedule: %.1fh short", shortfall)

    return GenerationFeasibility(
        is_feasible=is_feasible,
        can_proceed=is_feasible,
        total_hours_needed=total_needed,
        available_hours=available,
        shortfall=shortfall,
        weeks_needed=weeks_needed,
        weeks_available=weeks_available,
        minimum_deadline=minimum_deadline,
        suggested_weekly_hours=suggested_hours,
        user_action_required=action,
        message=message,
        breakdown=breakdown,
    )

"""Tests for the schedule feasibility check."""

from datetime import date

import pytest

from iaplanner.engine.feasibility import check_feasibility, project_hours_needed, template_hours
from iaplanner.models.warnings import UserAction

TODAY = date(2025, 1, 6)
TWO_WEEKS_OUT = date(2025, 1, 20)


def test_impossible_schedule(make_milestone, make_project):
    project = make_project(milestones=[make_milestone(hours=100)])

    result = check_feasibility([project], TWO_WEEKS_OUT, 5, today=TODAY)

    assert not result.is_feasible
    assert not result.can_proceed
    assert result.available_hours == pytest.approx(10)
    assert result.total_hours_needed == pytest.approx(100)
    assert result.shortfall == pytest.approx(90)
    assert result.weeks_needed == 20
    assert result.minimum_deadline == date(2025, 5, 26)
    # 50h/week would be needed, above the suggestion cap
    assert result.suggested_weekly_hours is None
    assert result.user_action_required == UserAction.EXTEND_DEADLINE
    assert result.message.startswith("IMPOSSIBLE SCHEDULE")


def test_feasible_schedule(make_milestone, make_project):
    project = make_project(milestones=[make_milestone(hours=10)])

    result = check_feasibility([project], TWO_WEEKS_OUT, 10, today=TODAY)

    assert result.is_feasible
    assert result.can_proceed
    assert result.shortfall == 0
    assert result.suggested_weekly_hours == 5
    assert result.user_action_required == UserAction.NONE


def test_more_hours_would_fix_it(make_milestone, make_project):
    project = make_project(milestones=[make_milestone(hours=30)])

    result = check_feasibility([project], TWO_WEEKS_OUT, 10, today=TODAY)

    assert not result.is_feasible
    assert result.suggested_weekly_hours == 15
    assert result.user_action_required == UserAction.INCREASE_HOURS


def test_deadline_already_passed(make_milestone, make_project):
    project = make_project(milestones=[make_milestone(hours=1)])

    result = check_feasibility([project], date(2025, 1, 1), 10, today=TODAY)

    assert result.weeks_available == 0
    assert result.available_hours == 0
    assert result.suggested_weekly_hours is None
    assert not result.is_feasible


@pytest.mark.parametrize('budget', [0, -3])
def test_non_positive_budget_is_rejected(budget):
    with pytest.raises(ValueError):
        check_feasibility([], TWO_WEEKS_OUT, budget, today=TODAY)


def test_completed_milestones_need_no_hours(make_milestone, make_project):
    project = make_project(milestones=[
        make_milestone(id='a', hours=4, buffer=1.5),
        make_milestone(id='b', hours=10, completed=True),
    ])
    assert project_hours_needed(project) == pytest.approx(6)


def test_projects_without_milestones_use_templates(make_project):
    assert template_hours(make_project('econ-micro')) == 7
    assert template_hours(make_project('math')) == 19
    assert template_hours(make_project('biology')) == 15
    assert project_hours_needed(make_project('math')) == pytest.approx(22.8)


def test_template_stops_once_any_milestone_exists(make_milestone, make_project):
    finished = make_project('math', [make_milestone(project_id='math', completed=True)])
    assert project_hours_needed(finished) == 0


def test_breakdown_per_project(make_milestone, make_project):
    projects = [
        make_project('p1', [make_milestone(project_id='p1', hours=12)]),
        make_project('p2', [make_milestone(id='m2', project_id='p2', hours=3)]),
    ]

    result = check_feasibility(projects, TWO_WEEKS_OUT, 10, today=TODAY)

    assert [(b.project_id, b.hours_needed, b.weeks_needed) for b in result.breakdown] == [
        ('p1', 12, 2),
        ('p2', 3, 1),
    ]

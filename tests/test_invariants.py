"""Properties shared by the engine functions: completed work outside a
function's filter does not change its result, and inputs are never mutated."""

import copy
from dataclasses import replace
from datetime import date

import pytest

from iaplanner.engine.deepwork import analyze_full_schedule
from iaplanner.engine.energy import analyze_weekly_energy, detect_energy_mismatches
from iaplanner.engine.feasibility import check_feasibility
from iaplanner.engine.learning import adjusted_estimates, compute_multipliers
from iaplanner.engine.reschedule import (
    optimize_distribution,
    reschedule_after_completion,
    reschedule_after_deadline_change,
)
from iaplanner.engine.warnings import analyze_schedule_warnings
from iaplanner.models.project import Subject

TODAY = date(2025, 1, 6)
DONE_ID = 'done-reading'


@pytest.fixture
def state(make_milestone, make_project, make_state):
    math = make_project('p1', [
        make_milestone(id='p1-research', project_id='p1', name="Research",
                       start=date(2025, 1, 6), deadline=date(2025, 1, 8), hours=3),
        make_milestone(id='p1-draft', project_id='p1', name="First Draft",
                       start=date(2025, 1, 9), deadline=date(2025, 1, 15), hours=8, buffer=1.5),
        make_milestone(id='p1-polish', project_id='p1', name="Final Polish",
                       start=date(2025, 1, 16), deadline=date(2025, 1, 17), hours=1),
    ])
    history = make_project('p2', [
        make_milestone(id='p2-outline', project_id='p2', name="Outline",
                       start=date(2024, 12, 20), deadline=date(2024, 12, 22), hours=2,
                       completed=True, actual_hours=3),
        make_milestone(id='p2-draft', project_id='p2', name="First Draft",
                       start=date(2025, 1, 11), deadline=date(2025, 1, 18), hours=6),
    ], subject=Subject.HISTORY)
    return make_state([math, history], master_deadline=date(2025, 1, 31), weekly_hours_budget=8)


@pytest.fixture
def with_done(state, make_milestone):
    """The same state plus a finished milestone with no logged hours in each project."""
    projects = []
    for project in state.projects:
        done = make_milestone(id=f"{DONE_ID}-{project.id}", project_id=project.id, name="Background reading",
                              start=date(2024, 12, 2), deadline=date(2024, 12, 4), hours=5, completed=True)
        projects.append(replace(project, milestones=[done] + list(project.milestones)))
    return replace(state, projects=projects)


def _strip_done(projects):
    return [
        replace(p, milestones=[m for m in p.milestones if not m.id.startswith(DONE_ID)])
        for p in projects
    ]


OPERATIONS = {
    'multipliers': lambda s: compute_multipliers(s.projects),
    'adjusted_estimates': lambda s: adjusted_estimates(s.projects),
    'deep_work': analyze_full_schedule,
    'energy_mismatches': lambda s: detect_energy_mismatches(s.all_milestones, s.projects, s.energy_settings),
    'weekly_energy': lambda s: analyze_weekly_energy(s, TODAY),
    'feasibility': lambda s: check_feasibility(s.projects, s.master_deadline, s.weekly_hours_budget, TODAY),
    'warnings': lambda s: analyze_schedule_warnings(s, TODAY),
    'optimize': lambda s: _strip_done(optimize_distribution(s.projects, s.master_deadline)),
    'completion': lambda s: _strip_done([replace(
        s.projects[0],
        milestones=reschedule_after_completion(s.projects[0], 'p1-research', s.master_deadline, TODAY)
        .updated_milestones,
    )]),
    'deadline_change': lambda s: reschedule_after_deadline_change(
        s.projects[0], 'p1-draft', date(2025, 1, 17), s.master_deadline,
    ).message,
}


@pytest.mark.parametrize('name', sorted(OPERATIONS))
def test_completed_milestones_outside_the_filter_change_nothing(state, with_done, name):
    operation = OPERATIONS[name]
    assert operation(with_done) == operation(state)


@pytest.mark.parametrize('name', sorted(OPERATIONS))
def test_inputs_are_not_mutated(with_done, name):
    before = copy.deepcopy(with_done)

    OPERATIONS[name](with_done)

    assert with_done == before
    for project, original in zip(with_done.projects, before.projects):
        assert project.milestones == original.milestones


def test_completion_keeps_finished_milestones_in_place(with_done):
    project = with_done.projects[0]

    result = reschedule_after_completion(project, 'p1-research', with_done.master_deadline, date(2025, 1, 7))

    assert result.updated_milestones[0] is project.milestones[0]
    assert result.message == "Saved 1 days - remaining milestones moved earlier"

"""Tests for the data models and snapshot conversion."""

import json
from datetime import date, datetime

import pytest

from iaplanner.models.project import Phase, ProjectStatus, Subject, derive_project_status
from iaplanner.models.risk import (
    BlockerCategory,
    BlockerSeverity,
    BlockerStatus,
    RiskImpact,
    RiskProbability,
    calculate_risk_score,
)
from iaplanner.models.state import AppState

TODAY = date(2025, 1, 6)


def test_inverted_milestone_dates_are_rejected(make_milestone):
    with pytest.raises(ValueError):
        make_milestone(start=date(2025, 1, 10), deadline=date(2025, 1, 9))


def test_scheduled_hours_and_span(make_milestone):
    milestone = make_milestone(start=date(2025, 1, 6), deadline=date(2025, 1, 8), hours=4, buffer=1.5)
    assert milestone.scheduled_hours == pytest.approx(6)
    assert milestone.span_days == 3


def test_project_status(make_milestone):
    done = make_milestone(id='a', completed=True)
    late = make_milestone(id='b', start=date(2025, 1, 1), deadline=date(2025, 1, 3))
    upcoming = make_milestone(id='c', start=date(2025, 1, 10), deadline=date(2025, 1, 12))

    assert derive_project_status([], TODAY) == ProjectStatus.NOT_STARTED
    assert derive_project_status([upcoming], TODAY) == ProjectStatus.NOT_STARTED
    assert derive_project_status([done, upcoming], TODAY) == ProjectStatus.IN_PROGRESS
    assert derive_project_status([done, late, upcoming], TODAY) == ProjectStatus.OVERDUE
    assert derive_project_status([done], TODAY) == ProjectStatus.COMPLETED


def test_risk_score():
    assert calculate_risk_score(RiskProbability.LOW, RiskImpact.MINOR) == 1
    assert calculate_risk_score(RiskProbability.HIGH, RiskImpact.MAJOR) == 9
    assert calculate_risk_score(RiskProbability.VERY_HIGH, RiskImpact.SEVERE) == 16


def test_state_from_camel_case_data():
    data = {
        'masterDeadline': '2025-03-31T00:00:00Z',
        'weeklyHoursBudget': 8,
        'ias': [{
            'id': 'math',
            'name': "Math IA",
            'subjectColor': 'math',
            'wordCount': 3000,
            'targetDeadline': '2025-03-01',
            'milestones': [{
                'id': 'm1',
                'iaId': 'math',
                'milestone_name': "Research",
                'startDate': '2025-01-06',
                'deadline': '2025-01-10',
                'estimatedHours': 4,
                'bufferMultiplier': 1.5,
                'actualHours': 5,
                'completed': True,
                'completedAt': '2025-01-09T17:00:00Z',
                'workSessions': [
                    {'id': 's1', 'startTime': '2025-01-09T12:00:00Z', 'durationMinutes': 300},
                ],
            }],
        }],
        'blockers': [{
            'id': 'b1',
            'iaId': 'math',
            'milestoneId': 'm1',
            'title': "Need approval",
            'category': 'approval',
            'severity': 'high',
            'createdAt': '2025-01-05T10:00:00',
            'expectedResolutionDate': '2025-01-08',
        }],
        'risks': [{
            'id': 'r1',
            'title': "Topic too broad",
            'category': 'knowledge_gap',
            'probability': 'medium',
            'impact': 'major',
            'identifiedAt': '2025-01-02T09:00:00',
        }],
    }

    state = AppState.from_dict(data)

    assert state.master_deadline == date(2025, 3, 31)
    assert state.weekly_hours_budget == 8
    project = state.projects[0]
    assert project.subject == Subject.MATH
    assert project.target_deadline == date(2025, 3, 1)
    milestone = project.milestones[0]
    assert milestone.name == "Research"
    assert milestone.scheduled_hours == pytest.approx(6)
    assert milestone.completed and milestone.actual_hours == 5
    assert milestone.work_sessions[0].duration_minutes == 300
    assert milestone.phase is None

    blocker = state.blockers[0]
    assert blocker.category == BlockerCategory.APPROVAL
    assert blocker.severity == BlockerSeverity.HIGH
    assert blocker.status == BlockerStatus.ACTIVE
    assert blocker.last_updated_at == datetime(2025, 1, 5, 10)
    assert state.risks[0].risk_score == 6
    assert state.risks[0].last_assessed_at == datetime(2025, 1, 2, 9)


def test_state_round_trips_through_json(make_milestone, make_project, make_state):
    project = make_project(milestones=[
        make_milestone(id='a', name="Research", phase=Phase.RESEARCH, dependencies=[]),
        make_milestone(id='b', start=date(2025, 1, 7), deadline=date(2025, 1, 9), dependencies=['a']),
    ], target_deadline=date(2025, 2, 1))
    state = make_state([project])

    data = json.loads(json.dumps(state.to_dict(), default=str))
    restored = AppState.from_dict(data)

    assert restored.projects == state.projects
    assert restored.master_deadline == state.master_deadline
    assert restored.weekly_hours_budget == state.weekly_hours_budget


def test_missing_required_field():
    with pytest.raises(KeyError):
        AppState.from_dict({'projects': []})


def test_malformed_date():
    with pytest.raises(ValueError):
        AppState.from_dict({'projects': [], 'master_deadline': 'next tuesday'})


@pytest.mark.parametrize('budget', [0, -5])
def test_non_positive_weekly_budget_is_rejected(budget):
    with pytest.raises(ValueError):
        AppState.from_dict({'ias': [], 'masterDeadline': '2025-03-31', 'weeklyHoursBudget': budget})
    with pytest.raises(ValueError):
        AppState(projects=[], master_deadline=date(2025, 3, 31), weekly_hours_budget=budget)


def test_state_lookups(make_milestone, make_project, make_state):
    state = make_state([
        make_project('p1', [make_milestone(id='a', project_id='p1')]),
        make_project('p2', [make_milestone(id='b', project_id='p2')]),
    ])

    assert [m.id for m in state.all_milestones] == ['a', 'b']
    assert state.find_project('p2').id == 'p2'
    assert state.find_milestone('b').project_id == 'p2'
    assert state.find_milestone('zzz') is None
    assert state.find_project('zzz') is None

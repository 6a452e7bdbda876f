"""Shared fixtures: a fixed clock and builders for milestones, projects and state."""

from datetime import date, datetime

import pytest

from iaplanner.models.project import Milestone, Project, Subject
from iaplanner.models.state import AppState

# A Monday
TODAY = date(2025, 1, 6)
NOW = datetime(2025, 1, 6, 10, 0)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def now():
    return NOW


def build_milestone(id='m1', project_id='p1', name='First Draft', start=None, deadline=None,
                    hours=4.0, buffer=1.0, **kwargs):
    return Milestone(
        id=id,
        project_id=project_id,
        name=name,
        start_date=start or TODAY,
        deadline=deadline or start or TODAY,
        estimated_hours=hours,
        buffer_multiplier=buffer,
        **kwargs,
    )


def build_project(id='p1', milestones=None, subject=Subject.MATH, name=None, **kwargs):
    return Project(
        id=id,
        name=name or f"Project {id}",
        subject=subject,
        milestones=list(milestones or []),
        **kwargs,
    )


def build_state(projects=None, master_deadline=date(2025, 3, 31), weekly_hours_budget=10, **kwargs):
    return AppState(
        projects=list(projects or []),
        master_deadline=master_deadline,
        weekly_hours_budget=weekly_hours_budget,
        **kwargs,
    )


@pytest.fixture
def make_milestone():
    return build_milestone


@pytest.fixture
def make_project():
    return build_project


@pytest.fixture
def make_state():
    return build_state

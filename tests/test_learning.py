"""Tests for the learning engine."""

import math
from datetime import date, datetime

import pytest

from iaplanner.engine.learning import (
    adjust_estimate,
    complete_milestone,
    completed_milestone_data,
    compute_multipliers,
    log_manual_hours,
    multiplier_explanation,
    weekly_stats,
)
from iaplanner.models.project import Phase, Subject, WorkSession


def _done(make_milestone, id, name, hours, actual, buffer=1.0, **kwargs):
    return make_milestone(id=id, name=name, hours=hours, buffer=buffer,
                          completed=True, actual_hours=actual, **kwargs)


def test_no_history_gives_neutral_multipliers(make_milestone, make_project):
    project = make_project(milestones=[make_milestone(hours=5)])
    multipliers = compute_multipliers([project])

    assert all(b.multiplier == 1.0 and b.sample_count == 0 for b in multipliers.phases.values())
    assert all(b.multiplier == 1.0 and b.sample_count == 0 for b in multipliers.subjects.values())
    assert multipliers.overall.multiplier == 1.0

    estimate = adjust_estimate(project.milestones[0], project.subject, multipliers)
    assert estimate.adjusted_hours == estimate.original_hours == 5
    assert estimate.source == "AI estimate (no historical data)"
    assert estimate.confidence == "low"


def test_bucket_is_mean_of_ratios(make_milestone, make_project):
    project = make_project(milestones=[
        _done(make_milestone, 'r1', "Research 1", hours=2, actual=3),
        _done(make_milestone, 'r2', "Research 2", hours=2, actual=2),
        _done(make_milestone, 'r3', "Research 3", hours=4, actual=2, buffer=1.25),
    ])
    multipliers = compute_multipliers([project])

    research = multipliers.phases[Phase.RESEARCH]
    assert research.sample_count == 3
    assert research.multiplier == pytest.approx((1.5 + 1.0 + 0.4) / 3)
    assert multipliers.subjects[Subject.MATH].sample_count == 3
    assert multipliers.phases[Phase.DRAFT].sample_count == 0


def test_milestones_without_usable_history_are_ignored(make_milestone, make_project):
    project = make_project(milestones=[
        make_milestone(id='open', name="Research", actual_hours=5),
        _done(make_milestone, 'none', "Research", hours=2, actual=None),
        _done(make_milestone, 'zero', "Research", hours=2, actual=0),
    ])
    assert compute_multipliers([project]).overall.sample_count == 0


def test_phase_bucket_preferred(make_milestone, make_project):
    history = [_done(make_milestone, f"r{i}", "Research", hours=2, actual=3) for i in range(3)]
    target = make_milestone(id='t', name="More research", hours=4)
    project = make_project(milestones=history + [target])

    estimate = adjust_estimate(target, Subject.MATH, compute_multipliers([project]))

    assert estimate.applied_multiplier == pytest.approx(1.5)
    assert estimate.adjusted_hours == pytest.approx(6.0)
    assert estimate.source == "research phase (3 samples)"
    assert estimate.confidence == "medium"


def test_subject_bucket_when_phase_is_thin(make_milestone, make_project):
    history = [
        _done(make_milestone, 'a', "Research", hours=1, actual=2),
        _done(make_milestone, 'b', "Outline", hours=1, actual=2),
        _done(make_milestone, 'c', "First Draft", hours=1, actual=2),
    ]
    target = make_milestone(id='t', name="Final Polish", hours=2)
    project = make_project(milestones=history + [target])

    estimate = adjust_estimate(target, Subject.MATH, compute_multipliers([project]))

    assert estimate.source == "math subject (3 samples)"
    assert estimate.adjusted_hours == pytest.approx(4.0)


def test_overall_bucket_when_subject_is_thin(make_milestone, make_project):
    math_project = make_project(id='math', subject=Subject.MATH, milestones=[
        _done(make_milestone, 'a', "Research", hours=1, actual=2, project_id='math'),
        _done(make_milestone, 'b', "Outline", hours=1, actual=2, project_id='math'),
    ])
    history_project = make_project(id='hist', subject=Subject.HISTORY, milestones=[
        _done(make_milestone, 'c', "First Draft", hours=1, actual=2, project_id='hist'),
    ])
    target = make_milestone(id='t', name="Final Polish", hours=1, project_id='eng')

    multipliers = compute_multipliers([math_project, history_project])
    estimate = adjust_estimate(target, Subject.ENGLISH, multipliers)

    assert estimate.source == "overall average (3 samples)"
    assert estimate.applied_multiplier == pytest.approx(2.0)


def test_preliminary_blend_toward_one(make_milestone, make_project):
    project = make_project(milestones=[_done(make_milestone, 'a', "Research", hours=1, actual=2)])
    target = make_milestone(id='t', name="Final Polish", hours=3)

    estimate = adjust_estimate(target, Subject.MATH, compute_multipliers([project]))

    assert estimate.applied_multiplier == pytest.approx(1 + 1 / 3)
    assert estimate.adjusted_hours == pytest.approx(4.0)
    assert estimate.source == "preliminary (1/3 samples needed)"
    assert estimate.confidence == "low"


def test_adjust_estimate_is_idempotent(make_milestone, make_project):
    history = [_done(make_milestone, f"r{i}", "Research", hours=2, actual=2.5) for i in range(4)]
    target = make_milestone(id='t', name="Research", hours=3, buffer=1.5)
    multipliers = compute_multipliers([make_project(milestones=history + [target])])

    assert adjust_estimate(target, Subject.MATH, multipliers) == adjust_estimate(target, Subject.MATH, multipliers)


def test_high_confidence_from_six_samples(make_milestone, make_project):
    history = [_done(make_milestone, f"r{i}", "Research", hours=2, actual=2) for i in range(6)]
    target = make_milestone(id='t', name="Research", hours=3)
    multipliers = compute_multipliers([make_project(milestones=history + [target])])

    assert adjust_estimate(target, Subject.MATH, multipliers).confidence == "high"


@pytest.mark.parametrize('multiplier, text', [
    (0.5, "You work 50% faster than estimated"),
    (1.5, "You take 50% longer than estimated"),
    (1.1, "You work close to the estimated pace"),
])
def test_multiplier_explanation(multiplier, text):
    assert multiplier_explanation(multiplier) == text


def test_log_manual_hours_appends_session(make_milestone, make_project, now):
    project = make_project(milestones=[make_milestone(id='m1'), make_milestone(id='m2')])

    updated = log_manual_hours(project, 'm1', 1.5, note="library", now=now)
    updated = log_manual_hours(updated, 'm1', 0.5, now=now)

    milestone = updated.find_milestone('m1')
    assert [s.duration_minutes for s in milestone.work_sessions] == [90, 30]
    assert milestone.actual_hours == pytest.approx(2.0)
    assert milestone.work_sessions[0].note == "library"
    assert updated.find_milestone('m2') == project.find_milestone('m2')
    # original is untouched
    assert project.find_milestone('m1').work_sessions == []


@pytest.mark.parametrize('hours', [0, -1, math.nan, math.inf])
def test_log_manual_hours_rejects_invalid_hours(make_milestone, make_project, hours):
    project = make_project(milestones=[make_milestone()])
    with pytest.raises(ValueError):
        log_manual_hours(project, 'm1', hours)


def test_log_manual_hours_unknown_milestone_is_noop(make_milestone, make_project, now):
    project = make_project(milestones=[make_milestone()])
    assert log_manual_hours(project, 'missing', 1, now=now) is project


def test_complete_milestone_toggles(make_milestone, make_project, now):
    project = make_project(milestones=[make_milestone()])

    done = complete_milestone(project, 'm1', now)
    assert done.milestones[0].completed
    assert done.milestones[0].completed_at == now

    undone = complete_milestone(done, 'm1', now)
    assert not undone.milestones[0].completed
    assert undone.milestones[0].completed_at is None


def test_completed_milestone_data(make_milestone, make_project):
    project = make_project(milestones=[
        _done(make_milestone, 'a', "Research", hours=1, actual=2),
        _done(make_milestone, 'b', "Outline", hours=1, actual=None),
        make_milestone(id='c'),
    ])
    assert completed_milestone_data([project]) == {'total': 2, 'with_data': 1}


def test_weekly_stats_counts_sessions_since_sunday(make_milestone, make_project, make_state):
    sessions = [
        WorkSession('s1', datetime(2025, 1, 4, 10), 60),   # Saturday, previous week
        WorkSession('s2', datetime(2025, 1, 5, 10), 90),   # Sunday
        WorkSession('s3', datetime(2025, 1, 6, 8), 30),    # today
    ]
    milestone = make_milestone(work_sessions=sessions)
    state = make_state([make_project(milestones=[milestone])], weekly_hours_budget=6)

    stats = weekly_stats(state, now=datetime(2025, 1, 6, 12))

    assert stats['planned_hours'] == 6
    assert stats['logged_hours'] == pytest.approx(2.0)
    assert stats['sessions_this_week'] == 2
    assert stats['logged_today'] is True

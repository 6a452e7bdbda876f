"""Tests for schedule warnings, fixes and optimization scenarios."""

from dataclasses import replace
from datetime import date, datetime

import pytest

from iaplanner.engine.warnings import (
    analyze_schedule_warnings,
    apply_fix,
    draft_overlaps,
    generate_optimization_scenarios,
    weekly_allocations,
)
from iaplanner.models.project import Phase
from iaplanner.models.risk import (
    Blocker,
    BlockerCategory,
    BlockerSeverity,
    BlockerStatus,
    Risk,
    RiskImpact,
    RiskProbability,
    RiskStatus,
)
from iaplanner.models.settings import BlockerSettings, EnergySettings
from iaplanner.models.warnings import (
    SEVERITY_RANK,
    CompleteMilestone,
    ConsolidateMilestone,
    DismissRisk,
    EscalateBlocker,
    ExtendDeadline,
    ExtendSession,
    FixRisk,
    KeepSchedule,
    ScaleEstimates,
    SequenceDrafts,
    SetWeeklyHours,
    ShiftMilestones,
    WarningSeverity,
    WarningType,
)

TODAY = date(2025, 1, 6)
NOW = datetime(2025, 1, 6, 10, 0)


def _by_id(warnings):
    return {w.id: w for w in warnings}


def _blocker(id='b1', severity=BlockerSeverity.MEDIUM, status=BlockerStatus.ACTIVE, last_updated=NOW, **kwargs):
    return Blocker(
        id=id,
        project_id='p1',
        milestone_id='m1',
        title=f"Blocker {id}",
        description="Stuck",
        category=BlockerCategory.RESOURCE,
        severity=severity,
        status=status,
        created_at=last_updated,
        last_updated_at=last_updated,
        **kwargs,
    )


@pytest.fixture
def calm_state(make_milestone, make_project, make_state):
    """One short polish task today: nothing to warn about."""
    milestone = make_milestone(name="Final Polish", hours=1)
    return make_state([make_project(milestones=[milestone])])


def test_calm_schedule_has_no_warnings(calm_state):
    assert analyze_schedule_warnings(calm_state, today=TODAY) == []


def test_impossible_deadline(make_milestone, make_project, make_state):
    state = make_state(
        [make_project(milestones=[make_milestone(hours=100)])],
        master_deadline=date(2025, 1, 20),
        weekly_hours_budget=5,
    )

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['deadline-feasibility']

    assert warning.type == WarningType.DEADLINE_IMPOSSIBLE
    assert warning.severity == WarningSeverity.CRITICAL
    assert warning.hours_short == pytest.approx(90)
    extend, hours, scope = warning.fixes
    assert extend.recommended
    assert extend.action == ExtendDeadline(date(2025, 6, 2))
    assert hours.action == SetWeeklyHours(50)
    assert hours.risk == FixRisk.HIGH
    assert scope.action == ScaleEstimates(0.5, (Phase.POLISH,))
    assert warning.to_dict()['fixes'][0]['action']['kind'] == 'ExtendDeadline'


def test_overdue_milestones(make_milestone, make_project, make_state):
    project = make_project(milestones=[
        make_milestone(id='m1', start=date(2025, 1, 1), deadline=date(2025, 1, 3)),
        make_milestone(id='m2', name="Final Polish", start=date(2025, 1, 10), deadline=date(2025, 1, 12), hours=1),
    ])
    state = make_state([project])

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['overdue-p1']

    assert warning.severity == WarningSeverity.CRITICAL
    assert warning.days_late == 3
    assert warning.affected_milestone_ids == ['m1']
    shift, complete, extend = warning.fixes
    assert shift.action == ShiftMilestones('p1', 5)
    assert complete.action == CompleteMilestone('m1')
    assert extend.action == ExtendDeadline(date(2025, 4, 3))

    shifted, result = apply_fix(state, shift, today=TODAY)
    assert result.success
    assert result.message == "Moved 2 milestone(s) 5 days later"
    assert shifted.find_milestone('m1').start_date == TODAY
    assert shifted.find_milestone('m2').deadline == date(2025, 1, 17)


def test_marking_overdue_milestone_complete_reschedules(make_milestone, make_project, make_state):
    project = make_project(milestones=[
        make_milestone(id='m1', start=date(2025, 1, 1), deadline=date(2025, 1, 3)),
        make_milestone(id='m2', start=date(2025, 1, 10), deadline=date(2025, 1, 12)),
    ])
    state = make_state([project])

    new_state, result = apply_fix(state, CompleteMilestone('m1'), today=TODAY)

    assert result.success
    assert new_state.find_milestone('m1').completed
    assert new_state.find_milestone('m2').deadline == date(2025, 1, 15)
    assert len(result.changes) == 2

    _, again = apply_fix(new_state, CompleteMilestone('m1'), today=TODAY)
    assert not again.success


def test_project_finishing_after_its_target(make_milestone, make_project, make_state):
    project = make_project(
        milestones=[make_milestone(name="Final Polish", start=date(2025, 1, 14), deadline=date(2025, 1, 15), hours=1)],
        target_deadline=date(2025, 1, 10),
    )

    warning = _by_id(analyze_schedule_warnings(make_state([project]), today=TODAY))['deadline-risk-p1']

    assert warning.days_late == 5
    assert warning.fixes[0].action == ExtendDeadline(date(2025, 1, 15))
    assert warning.fixes[1].action == ShiftMilestones('p1', -5)
    assert warning.fixes[1].risk == FixRisk.HIGH


def test_weekly_allocations_spread_over_days(make_milestone, make_project, make_state):
    milestone = make_milestone(start=date(2025, 1, 3), deadline=date(2025, 1, 6), hours=8)
    state = make_state([make_project(milestones=[milestone])])

    assert weekly_allocations(state) == {
        date(2024, 12, 29): pytest.approx(4.0),
        date(2025, 1, 5): pytest.approx(4.0),
    }


def test_weekly_budget_exceeded(make_milestone, make_project, make_state):
    milestone = make_milestone(start=date(2025, 1, 3), deadline=date(2025, 1, 6), hours=8)
    state = make_state([make_project(milestones=[milestone])], weekly_hours_budget=3)

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['weekly-budget']

    assert warning.severity == WarningSeverity.WARNING
    assert warning.title == "2 weeks over budget"
    assert warning.fixes[0].action == SetWeeklyHours(4)
    assert warning.fixes[-1].label == "Accept heavy weeks"


def test_draft_overlap_and_sequencing(make_milestone, make_project, make_state):
    first = make_project('p1', [
        make_milestone(id='a', project_id='p1', start=date(2025, 1, 6), deadline=date(2025, 1, 10)),
    ])
    second = make_project('p2', [
        make_milestone(id='b', project_id='p2', start=date(2025, 1, 8), deadline=date(2025, 1, 12)),
    ])
    state = make_state([first, second])

    [(left, right)] = draft_overlaps(state.projects)
    assert (left.id, right.id) == ('a', 'b')

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['draft-overlap']
    assert warning.severity == WarningSeverity.WARNING
    assert warning.affected_project_ids == ['p1', 'p2']

    sequenced, result = apply_fix(state, warning.fixes[0], today=TODAY)
    assert result.success
    assert result.changes == ["Project p2 moved 3 days later"]
    assert [p.id for p in sequenced.projects] == ['p1', 'p2']
    assert sequenced.find_milestone('b').start_date == date(2025, 1, 11)
    assert draft_overlaps(sequenced.projects) == []

    unchanged, again = apply_fix(sequenced, SequenceDrafts(), today=TODAY)
    assert not again.success
    assert unchanged is sequenced


def test_drafts_within_one_project_do_not_overlap(make_milestone, make_project):
    project = make_project(milestones=[
        make_milestone(id='a', start=date(2025, 1, 6), deadline=date(2025, 1, 10)),
        make_milestone(id='b', name="Write conclusion", start=date(2025, 1, 8), deadline=date(2025, 1, 12)),
    ])
    assert draft_overlaps([project]) == []


def test_overlapping_writing_milestones_can_be_sequenced(make_milestone, make_project, make_state):
    state = make_state([
        make_project('p1', [make_milestone(id='a', project_id='p1', name="Write essay",
                                           start=date(2025, 1, 6), deadline=date(2025, 1, 10))]),
        make_project('p2', [make_milestone(id='b', project_id='p2', name="Write commentary",
                                           start=date(2025, 1, 7), deadline=date(2025, 1, 11))]),
    ])
    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['draft-overlap']
    recommended = next(fix for fix in warning.fixes if fix.recommended)

    sequenced, result = apply_fix(state, recommended, today=TODAY)

    assert result.success
    assert sequenced.find_milestone('b').start_date == date(2025, 1, 11)
    assert draft_overlaps(sequenced.projects) == []


def test_draft_handoff_day_is_not_an_overlap(make_milestone, make_project, make_state):
    state = make_state([
        make_project('p1', [make_milestone(id='a', project_id='p1', deadline=date(2025, 1, 10))]),
        make_project('p2', [make_milestone(id='b', project_id='p2', start=date(2025, 1, 10),
                                           deadline=date(2025, 1, 12))]),
    ])
    assert draft_overlaps(state.projects) == []
    assert 'draft-overlap' not in _by_id(analyze_schedule_warnings(state, today=TODAY))


def test_short_draft_session(make_milestone, make_project, make_state):
    state = make_state([make_project(milestones=[make_milestone(hours=1)])])

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['min-session-m1']

    assert warning.type == WarningType.DEEP_WORK
    assert warning.severity == WarningSeverity.WARNING
    assert warning.fixes[0].action == ExtendSession('m1', 3.0)

    extended, result = apply_fix(state, warning.fixes[0], today=TODAY)
    assert result.success
    milestone = extended.find_milestone('m1')
    assert milestone.estimated_hours == 3.0
    assert milestone.buffer_multiplier == 1.0

    _, again = apply_fix(extended, warning.fixes[0], today=TODAY)
    assert not again.success


def test_fragmented_milestone_is_info(make_milestone, make_project, make_state):
    milestone = make_milestone(name="Research", start=date(2025, 1, 6), deadline=date(2025, 1, 8), hours=3)
    state = make_state([make_project(milestones=[milestone])])

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['fragmented-milestone-m1']

    assert warning.severity == WarningSeverity.INFO
    assert warning.fixes[0].action == ConsolidateMilestone('m1', TODAY)

    consolidated, result = apply_fix(state, warning.fixes[0], today=TODAY)
    assert result.success
    assert consolidated.find_milestone('m1').deadline == TODAY


def test_weekend_draft_energy_warning(make_milestone, make_project, make_state):
    milestone = make_milestone(start=date(2025, 1, 11), hours=4)
    state = make_state([make_project(milestones=[milestone])])

    warning = _by_id(analyze_schedule_warnings(state, today=TODAY))['mismatch-m1']

    assert warning.type == WarningType.ENERGY_MISMATCH
    assert warning.severity == WarningSeverity.INFO
    # the first alternative is later that Saturday, so the move goes to Sunday
    assert warning.fixes[0].action == ShiftMilestones('p1', 1, ('m1',))
    assert warning.description == "Suboptimal: High-demand task during medium energy time on Jan 11."
    assert warning.fixes[1].risk == FixRisk.LOW


def test_energy_warning_settings(make_milestone, make_project, make_state):
    project = make_project(milestones=[make_milestone(start=date(2025, 1, 11), hours=4)])

    strict = make_state([project], energy_settings=EnergySettings(allow_mismatch_overrides=False))
    warning = _by_id(analyze_schedule_warnings(strict, today=TODAY))['mismatch-m1']
    assert warning.severity == WarningSeverity.WARNING
    assert warning.fixes[1].risk == FixRisk.HIGH

    relaxed = make_state([project], energy_settings=EnergySettings(enforce_energy_matching=False))
    assert 'mismatch-m1' not in _by_id(analyze_schedule_warnings(relaxed, today=TODAY))


def test_blockers_and_risks(calm_state):
    risk = Risk(
        id='r1', title="Data may be unusable", description="Noisy readings",
        category=BlockerCategory.TECHNICAL_ISSUE, probability=RiskProbability.HIGH,
        impact=RiskImpact.MAJOR, status=RiskStatus.IDENTIFIED,
        identified_at=NOW, last_assessed_at=NOW, project_id='p1',
    )
    minor = replace(risk, id='r2', probability=RiskProbability.LOW, impact=RiskImpact.MINOR)
    state = replace(calm_state, blockers=[
        _blocker('crit', BlockerSeverity.CRITICAL, status=BlockerStatus.ESCALATED, estimated_delay_days=4),
        _blocker('stale', last_updated=datetime(2025, 1, 1, 10)),
        _blocker('fresh', last_updated=datetime(2025, 1, 5, 10)),
        _blocker('done', BlockerSeverity.CRITICAL, status=BlockerStatus.RESOLVED),
    ], risks=[risk, minor])

    warnings = analyze_schedule_warnings(state, today=TODAY)
    by_id = _by_id(warnings)

    assert set(by_id) == {'blocker-crit', 'blocker-stale', 'risk-r1'}
    assert [w.severity for w in warnings] == [
        WarningSeverity.CRITICAL, WarningSeverity.WARNING, WarningSeverity.INFO,
    ]
    assert by_id['blocker-crit'].fixes[0].action == ShiftMilestones('p1', 4)
    assert by_id['blocker-stale'].fixes[0].action == EscalateBlocker('stale')
    assert by_id['risk-r1'].fixes[1].action == DismissRisk('r1')

    escalated, result = apply_fix(state, EscalateBlocker('stale'), today=TODAY)
    assert result.success
    blocker = next(b for b in escalated.blockers if b.id == 'stale')
    assert blocker.severity == BlockerSeverity.HIGH
    assert blocker.original_severity == BlockerSeverity.MEDIUM

    assert not apply_fix(state, EscalateBlocker('crit'), today=TODAY)[1].success
    assert not apply_fix(state, EscalateBlocker('done'), today=TODAY)[1].success
    assert not apply_fix(state, EscalateBlocker('missing'), today=TODAY)[1].success

    dismissed, result = apply_fix(state, DismissRisk('r1'), today=TODAY)
    assert result.success
    assert 'risk-r1' not in _by_id(analyze_schedule_warnings(dismissed, today=TODAY))
    assert not apply_fix(dismissed, DismissRisk('r1'), today=TODAY)[1].success


def test_blocker_notification_settings(calm_state):
    blockers = [
        _blocker('crit', BlockerSeverity.CRITICAL, status=BlockerStatus.ESCALATED),
        _blocker('stale', last_updated=datetime(2025, 1, 1, 10)),
        _blocker('late', last_updated=datetime(2025, 1, 5, 10), expected_resolution_date=date(2025, 1, 3)),
    ]

    def blocker_warnings(**settings):
        state = replace(calm_state, blockers=blockers, blocker_settings=BlockerSettings(**settings))
        return {w.id for w in analyze_schedule_warnings(state, today=TODAY)}

    assert blocker_warnings() == {'blocker-crit', 'blocker-stale', 'blocker-late'}
    assert blocker_warnings(notify_on_critical=False) == {'blocker-stale', 'blocker-late'}
    assert blocker_warnings(notify_on_stale=False) == {'blocker-crit', 'blocker-late'}
    assert blocker_warnings(notify_on_overdue=False) == {'blocker-crit', 'blocker-stale'}


def test_warnings_sorted_by_severity(make_milestone, make_project, make_state):
    project = make_project(milestones=[
        make_milestone(id='m1', name="Research", start=date(2025, 1, 6), deadline=date(2025, 1, 8), hours=3),
        make_milestone(id='m2', start=date(2025, 1, 1), deadline=date(2025, 1, 3), hours=1),
    ])

    warnings = analyze_schedule_warnings(make_state([project]), today=TODAY)

    ranks = [SEVERITY_RANK[w.severity] for w in warnings]
    assert ranks == sorted(ranks)
    assert warnings[0].id == 'overdue-p1'


def test_master_deadline_and_hours_fixes(calm_state):
    extended, result = apply_fix(calm_state, ExtendDeadline(date(2025, 4, 30)), today=TODAY)
    assert result.success
    assert result.new_deadline == extended.master_deadline == date(2025, 4, 30)
    assert result.message == "Deadline extended to Apr 30, 2025"

    more, result = apply_fix(calm_state, SetWeeklyHours(12), today=TODAY)
    assert result.success
    assert more.weekly_hours_budget == 12
    assert result.message == "Weekly hours increased to 12h"


@pytest.mark.parametrize('action, message', [
    (ExtendDeadline(date(2025, 3, 31)), "Deadline unchanged"),
    (SetWeeklyHours(0), "Weekly hours must be positive"),
    (SetWeeklyHours(10), "Weekly hours unchanged"),
    (ShiftMilestones('nope', 2), "Project not found"),
    (ShiftMilestones('p1', 0), "No change in dates"),
    (ShiftMilestones('p1', 2, ('nope',)), "Milestone not found"),
    (ExtendSession('nope', 3), "Milestone not found"),
    (ConsolidateMilestone('m1', date(2025, 1, 6)), "No change in deadline"),
    (CompleteMilestone('nope'), "Milestone not found"),
    (DismissRisk('nope'), "Risk not found"),
    (ScaleEstimates(0), "Scale factor must be positive"),
])
def test_failed_fixes_leave_state_untouched(calm_state, action, message):
    new_state, result = apply_fix(calm_state, action, today=TODAY)
    assert not result.success
    assert result.message == message
    assert new_state is calm_state


def test_keep_schedule(calm_state):
    new_state, result = apply_fix(calm_state, KeepSchedule(), today=TODAY)
    assert result.success
    assert new_state is calm_state


def test_scale_polish_estimates(make_milestone, make_project, make_state):
    project = make_project(milestones=[
        make_milestone(id='a', name="Final Polish", hours=4),
        make_milestone(id='b', name="First Draft", hours=4),
    ])

    scaled, result = apply_fix(make_state([project]), ScaleEstimates(0.5, (Phase.POLISH,)), today=TODAY)

    assert result.success
    assert scaled.find_milestone('a').estimated_hours == 2
    assert scaled.find_milestone('b').estimated_hours == 4


def test_unknown_action_type_is_a_programming_error(calm_state):
    with pytest.raises(TypeError):
        apply_fix(calm_state, object(), today=TODAY)


def test_scenarios_for_impossible_deadline(make_milestone, make_project, make_state):
    state = make_state(
        [make_project(milestones=[make_milestone(hours=30)])],
        master_deadline=date(2025, 1, 20),
        weekly_hours_budget=5,
    )
    warnings = analyze_schedule_warnings(state, today=TODAY)

    scenarios = generate_optimization_scenarios(state, warnings, today=TODAY)

    assert [s.id for s in scenarios] == ['extend-deadline', 'increase-hours', 'balanced']
    assert scenarios[0].recommended
    assert scenarios[0].actions == [ExtendDeadline(date(2025, 2, 24))]
    assert scenarios[1].actions == [SetWeeklyHours(15)]
    assert scenarios[2].actions == [ExtendDeadline(date(2025, 2, 7)), SetWeeklyHours(7)]


def test_sequence_scenario_recommended_without_deadline_trouble(make_milestone, make_project, make_state):
    state = make_state([
        make_project('p1', [make_milestone(id='a', project_id='p1', deadline=date(2025, 1, 10))]),
        make_project('p2', [make_milestone(id='b', project_id='p2', start=date(2025, 1, 8),
                                           deadline=date(2025, 1, 12))]),
    ])
    warnings = analyze_schedule_warnings(state, today=TODAY)

    [scenario] = generate_optimization_scenarios(state, warnings, today=TODAY)

    assert scenario.id == 'sequence-drafts'
    assert scenario.recommended
    assert scenario.to_dict()['actions'] == [{'kind': 'SequenceDrafts'}]

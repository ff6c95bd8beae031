"""Tests for the data models: shifts, employees, requests, assignment sets and runs."""
from datetime import date, time, timedelta

import pytest

from models.employee import Employee, EmployeeConstraint, EmployeeConstraintType
from models.errors import InternalInconsistency, InvalidRequest
from models.request import (
    OptimizationSettings,
    SafetyPriority,
    ScheduleRequest,
    SearchStrategyType,
)
from models.run import RunState, ScheduleRun
from models.schedule import Assignment, AssignmentSet
from models.shift import ShiftSlot, ShiftType

MONDAY = date(2025, 3, 3)


# =============================================================================
# SHIFTS
# =============================================================================

def test_shift_codes_round_trip():
    """One-letter codes and full names both parse."""
    assert ShiftType.from_code("N") == ShiftType.NIGHT
    assert ShiftType.from_code(" evening ") == ShiftType.EVENING
    assert ShiftType.DAY.code == "D"
    with pytest.raises(ValueError):
        ShiftType.from_code("X")


def test_night_slot_is_overnight():
    slot = ShiftSlot.create(MONDAY, ShiftType.NIGHT)
    assert slot.is_overnight
    assert slot.hours == 8
    assert slot.end_datetime().date() == MONDAY + timedelta(days=1)


def test_rest_hours_between_slots():
    """Evening → next-day day leaves 8h; night → next-day day leaves none."""
    evening = ShiftSlot.create(MONDAY, ShiftType.EVENING)
    night = ShiftSlot.create(MONDAY, ShiftType.NIGHT)
    next_day = ShiftSlot.create(MONDAY + timedelta(days=1), ShiftType.DAY)
    assert evening.rest_hours_before(next_day) == 8
    assert night.rest_hours_before(next_day) == 0


def test_custom_shift_times():
    times = {ShiftType.DAY: (time(6, 0), time(18, 0))}
    slot = ShiftSlot.create(MONDAY, ShiftType.DAY, times)
    assert slot.hours == 12


def test_weekend_flag():
    assert ShiftSlot.create(MONDAY + timedelta(days=5), ShiftType.DAY).is_weekend
    assert not ShiftSlot.create(MONDAY, ShiftType.DAY).is_weekend


# =============================================================================
# EMPLOYEES
# =============================================================================

def test_employee_rejects_out_of_range_preference():
    with pytest.raises(InvalidRequest) as exc:
        Employee(id="E1", name="A", shift_preferences={ShiftType.NIGHT: 11})
    assert exc.value.field == "shift_preferences"


def test_employee_rejects_level_zero():
    with pytest.raises(InvalidRequest):
        Employee(id="E1", name="A", level=0)


def test_employee_eligibility_reasons():
    """Level, no-night and time off each block a slot."""
    employee = Employee(
        id="E1",
        name="A",
        level=1,
        constraints=[
            EmployeeConstraint(EmployeeConstraintType.NO_NIGHT, reason="no nights"),
            EmployeeConstraint(
                EmployeeConstraintType.TIME_OFF,
                {"start_date": MONDAY + timedelta(days=2), "end_date": MONDAY + timedelta(days=3)},
                reason="holiday",
            ),
        ],
    )
    day = ShiftSlot.create(MONDAY, ShiftType.DAY)
    assert employee.is_eligible(day)
    assert "below required 2" in employee.blocked_reason(day, min_level=2)
    assert employee.blocked_reason(ShiftSlot.create(MONDAY, ShiftType.NIGHT)) == "no nights"
    assert employee.blocked_reason(ShiftSlot.create(MONDAY + timedelta(days=3), ShiftType.DAY)) == "holiday"
    assert employee.is_on_leave(MONDAY + timedelta(days=2))


def test_max_consecutive_days_takes_smallest_cap():
    employee = Employee(id="E1", name="A", constraints=[
        EmployeeConstraint(EmployeeConstraintType.MAX_CONSECUTIVE, {"days": 5}),
        EmployeeConstraint(EmployeeConstraintType.MAX_CONSECUTIVE, {"days": 4}),
    ])
    assert employee.max_consecutive_days == 4
    assert Employee(id="E2", name="B").max_consecutive_days is None


def test_fixed_day_only_flags_other_shift_types():
    fixed = EmployeeConstraint(
        EmployeeConstraintType.FIXED_DAY, {"day_of_week": 0, "shift_type": ShiftType.DAY}
    )
    assert not fixed.prefers_other_shift(ShiftSlot.create(MONDAY, ShiftType.DAY))
    assert fixed.prefers_other_shift(ShiftSlot.create(MONDAY, ShiftType.NIGHT))
    assert not fixed.prefers_other_shift(ShiftSlot.create(MONDAY + timedelta(days=1), ShiftType.NIGHT))


def test_constraint_type_from_string():
    assert EmployeeConstraintType.from_string("time-off") == EmployeeConstraintType.TIME_OFF
    with pytest.raises(InvalidRequest):
        EmployeeConstraintType.from_string("nap")


# =============================================================================
# REQUESTS
# =============================================================================

def test_strategy_from_string_accepts_upper_case():
    assert SearchStrategyType.from_string("SIMULATED_ANNEALING") == SearchStrategyType.SIMULATED_ANNEALING
    assert SearchStrategyType.from_string("tabu-search") == SearchStrategyType.TABU_SEARCH
    with pytest.raises(InvalidRequest):
        SearchStrategyType.from_string("brute_force")


@pytest.mark.parametrize("overrides, field", [
    ({"fairness_target": 0.05}, "fairness_target"),
    ({"fairness_target": 0.6}, "fairness_target"),
    ({"restarts": 0}, "restarts"),
    ({"timeout_seconds": 0}, "timeout_seconds"),
    ({"stall_window": 0}, "stall_window"),
    ({"workers": 0}, "workers"),
])
def test_optimization_settings_validation(overrides, field):
    with pytest.raises(InvalidRequest) as exc:
        OptimizationSettings(**overrides).validate()
    assert exc.value.field == field


def test_request_from_dict():
    """The JSON payload shape maps onto the request dataclasses."""
    request = ScheduleRequest.from_dict({
        "schedule_name": "March",
        "date_range": {"start_date": "2025-03-03", "end_date": "2025-03-09"},
        "team_ids": ["T1"],
        "coverage_requirements": [
            {"date": "2025-03-03", "shift_type": "NIGHT", "required_count": 3,
             "minimum_experience_level": 2},
        ],
        "generation_options": {"enforce_mentorship_pairing": True, "unknown_key": 1},
        "optimization_settings": {"strategy": "TABU_SEARCH", "safety_priority": "strict",
                                  "max_iterations": 50},
        "legal_limits": {"max_weekly_hours": 48},
    })
    assert request.schedule_name == "March"
    assert len(request.dates()) == 7
    requirement = request.coverage_requirements[0]
    assert requirement.shift_type == ShiftType.NIGHT
    assert requirement.min_experience_level == 2
    assert request.generation_options.enforce_mentorship_pairing
    assert request.optimization_settings.strategy == SearchStrategyType.TABU_SEARCH
    assert request.optimization_settings.safety_priority == SafetyPriority.STRICT
    assert request.legal_limits.max_weekly_hours == 48
    assert request.team_ids == ["T1"]


def test_request_from_dict_top_level_dates():
    request = ScheduleRequest.from_dict({"start_date": "2025-03-03", "end_date": "2025-03-04"})
    assert request.dates() == [MONDAY, MONDAY + timedelta(days=1)]


def test_request_from_dict_malformed():
    with pytest.raises(InvalidRequest):
        ScheduleRequest.from_dict({"date_range": {"start_date": "2025-03-03"}})


def test_request_from_dict_casts_option_strings():
    request = ScheduleRequest.from_dict({
        "start_date": "2025-03-03",
        "end_date": "2025-03-04",
        "generation_options": {"mentorship_priority": "8", "enforce_mentorship_pairing": "true"},
        "optimization_settings": {"max_iterations": "100", "timeout_seconds": "2.5", "workers": None},
        "legal_limits": {"max_weekly_hours": 48},
    })
    assert request.generation_options.mentorship_priority == 8
    assert request.generation_options.enforce_mentorship_pairing is True
    assert request.optimization_settings.max_iterations == 100
    assert request.optimization_settings.timeout_seconds == 2.5
    assert request.optimization_settings.workers is None
    assert request.legal_limits.max_weekly_hours == 48.0


@pytest.mark.parametrize("section, values, field", [
    ("generation_options", {"mentorship_priority": "high"}, "mentorship_priority"),
    ("generation_options", {"balance_workload": "maybe"}, "balance_workload"),
    ("optimization_settings", {"max_iterations": None}, "max_iterations"),
    ("optimization_settings", {"fairness_target": [0.2]}, "fairness_target"),
    ("legal_limits", {"min_rest_hours": "eleven"}, "min_rest_hours"),
    ("legal_limits", "strict", "LegalLimits"),
])
def test_request_from_dict_rejects_bad_option_values(section, values, field):
    payload = {"start_date": "2025-03-03", "end_date": "2025-03-04", section: values}
    with pytest.raises(InvalidRequest) as excinfo:
        ScheduleRequest.from_dict(payload)
    assert excinfo.value.field == field


def test_empty_range_has_no_dates():
    request = ScheduleRequest("x", MONDAY, MONDAY - timedelta(days=1))
    assert request.dates() == []


# =============================================================================
# ASSIGNMENT SET
# =============================================================================

def test_one_shift_per_date():
    """Assigning a second slot on the same date is an internal inconsistency."""
    assignments = AssignmentSet()
    assignments.assign("E1", ShiftSlot.create(MONDAY, ShiftType.DAY))
    with pytest.raises(InternalInconsistency):
        assignments.assign("E1", ShiftSlot.create(MONDAY, ShiftType.NIGHT))


def test_unassign_missing_raises():
    with pytest.raises(InternalInconsistency):
        AssignmentSet().unassign("E1", MONDAY)


def test_indexes_stay_in_sync():
    day = ShiftSlot.create(MONDAY, ShiftType.DAY)
    night = ShiftSlot.create(MONDAY, ShiftType.NIGHT)
    assignments = AssignmentSet([Assignment("E1", day), Assignment("E2", day), Assignment("E3", night)])

    assert assignments.headcount(day) == 2
    assert assignments.employees_on(day) == {"E1", "E2"}
    assert assignments.shift_on("E3", MONDAY) == night
    assert assignments.hours_for("E1") == 8

    assignments.unassign("E1", MONDAY)
    assert assignments.headcount(day) == 1
    assert assignments.is_free("E1", MONDAY)
    assert assignments.employee_ids() == ["E2", "E3"]
    assert len(assignments) == 2


def test_copy_is_independent():
    slot = ShiftSlot.create(MONDAY, ShiftType.DAY)
    original = AssignmentSet([Assignment("E1", slot)])
    clone = original.copy()
    clone.unassign("E1", MONDAY)

    assert len(original) == 1
    assert len(clone) == 0
    assert original != clone


def test_clear_date_and_day_assignments():
    tuesday = MONDAY + timedelta(days=1)
    assignments = AssignmentSet([
        Assignment("E2", ShiftSlot.create(MONDAY, ShiftType.NIGHT)),
        Assignment("E1", ShiftSlot.create(MONDAY, ShiftType.DAY)),
        Assignment("E1", ShiftSlot.create(tuesday, ShiftType.DAY)),
    ])
    day = assignments.day_assignments(MONDAY)
    assert [a.employee_id for a in day] == ["E1", "E2"]

    removed = assignments.clear_date(MONDAY)
    assert len(removed) == 2
    assert len(assignments) == 1
    assert assignments.summary()["date_range"] == f"{tuesday} to {tuesday}"


def test_summary_of_empty_set():
    assert AssignmentSet().summary() == {
        "total_assignments": 0,
        "unique_employees": 0,
        "total_hours": 0,
        "date_range": "empty",
    }


# =============================================================================
# RUN STATE MACHINE
# =============================================================================

def _request():
    return ScheduleRequest("x", MONDAY, MONDAY)


def test_run_walks_the_happy_path():
    run = ScheduleRun(_request())
    for state in (RunState.MODELING, RunState.SEARCHING, RunState.VALIDATING,
                  RunState.FINALIZING, RunState.COMPLETED):
        run.transition(state)
    assert run.is_finalized
    assert run.state_history() == [
        "pending", "modeling", "searching", "validating", "finalizing", "completed",
    ]


def test_run_rejects_skipped_states():
    run = ScheduleRun(_request())
    with pytest.raises(InternalInconsistency):
        run.transition(RunState.SEARCHING)


def test_finalized_run_is_read_only():
    run = ScheduleRun(_request())
    for state in (RunState.MODELING, RunState.SEARCHING, RunState.VALIDATING,
                  RunState.FINALIZING, RunState.INFEASIBLE):
        run.transition(state)
    with pytest.raises(InternalInconsistency):
        run.record_best(AssignmentSet(), 0.0)
    with pytest.raises(InternalInconsistency):
        run.transition(RunState.COMPLETED)


def test_record_best_and_iterations():
    run = ScheduleRun(_request())
    assignments = AssignmentSet()
    run.record_best(assignments, 12.5)
    run.record_iterations(40, "converged")
    assert run.best is assignments
    assert run.best_cost == 12.5
    assert run.iterations == 40
    assert run.stop_reason == "converged"

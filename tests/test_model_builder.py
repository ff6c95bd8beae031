"""Tests for the constraint model builder."""
from datetime import date, timedelta

import pytest

from models.constraints import ConstraintType
from models.employee import EmployeeConstraint, EmployeeConstraintType
from models.errors import InvalidRequest
from models.request import CoverageRequirement, GenerationOptions, LegalLimits, SafetyPriority
from models.shift import ShiftType
from optimizer.model import ConstraintModelBuilder

START = date(2025, 3, 3)


def test_model_shape(request_factory, roster, build_model):
    model = build_model(request_factory(days=7), roster)
    summary = model.summary()

    assert summary["dates"] == 7
    assert summary["employees"] == 12
    assert summary["slots"] == 21
    assert summary["required_heads"] == 42
    assert model.employee_ids == sorted(e.id for e in roster)
    assert model.demanded_shift_types() == list(ShiftType)


def test_roster_is_a_snapshot(request_factory, roster, build_model):
    """Changing the directory after building does not change the model."""
    model = build_model(request_factory(days=7), roster)
    roster[0].level = 9
    assert model.employee(roster[0].id).level != 9


# =============================================================================
# REJECTED REQUESTS
# =============================================================================

def test_empty_date_range_is_rejected(request_factory, roster, build_model):
    request = request_factory(days=7)
    request.end_date = request.start_date - timedelta(days=1)
    with pytest.raises(InvalidRequest) as exc:
        build_model(request, roster)
    assert exc.value.field == "date_range"


def test_overlong_range_is_rejected(request_factory, roster, build_model):
    with pytest.raises(InvalidRequest) as exc:
        build_model(request_factory(days=91, counts=(1, 1, 1)), roster)
    assert "exceeds 90" in str(exc.value)


def test_missing_coverage_is_rejected(request_factory, roster, build_model):
    with pytest.raises(InvalidRequest) as exc:
        build_model(request_factory(coverage=[]), roster)
    assert exc.value.field == "coverage_requirements"


def test_duplicate_coverage_is_rejected(request_factory, roster, build_model):
    item = CoverageRequirement(START, ShiftType.DAY, 1)
    with pytest.raises(InvalidRequest) as exc:
        build_model(request_factory(days=1, coverage=[item, item]), roster)
    assert "duplicate" in str(exc.value)


def test_coverage_outside_range_is_rejected(request_factory, roster, build_model):
    item = CoverageRequirement(START + timedelta(days=30), ShiftType.DAY, 1)
    with pytest.raises(InvalidRequest):
        build_model(request_factory(days=7, coverage=[item]), roster)


def test_negative_headcount_is_rejected(request_factory, roster, build_model):
    item = CoverageRequirement(START, ShiftType.DAY, -1)
    with pytest.raises(InvalidRequest):
        build_model(request_factory(days=1, coverage=[item]), roster)


def test_headcount_above_roster_is_rejected(request_factory, roster, build_model):
    with pytest.raises(InvalidRequest) as exc:
        build_model(request_factory(days=1, counts=(13, 0, 0)), roster)
    assert "only 12" in str(exc.value)


def test_duplicate_employee_is_rejected(request_factory, roster, build_model):
    with pytest.raises(InvalidRequest):
        build_model(request_factory(days=1), roster + [roster[0]])


def test_self_mentor_is_rejected(request_factory, employee_factory, roster, build_model):
    loner = employee_factory("E99", mentor_id="E99")
    with pytest.raises(InvalidRequest) as exc:
        build_model(request_factory(days=1), roster + [loner])
    assert exc.value.field == "mentor_id"


def test_unknown_team_leaves_empty_roster(request_factory, roster, build_model):
    with pytest.raises(InvalidRequest) as exc:
        build_model(request_factory(days=1, team_ids=["T9"]), roster)
    assert exc.value.field == "team_ids"


def test_invalid_legal_limits_are_rejected(request_factory, roster, build_model):
    with pytest.raises(InvalidRequest):
        build_model(request_factory(days=1, limits=LegalLimits(max_consecutive_nights=6)), roster)


# =============================================================================
# DERIVED STRUCTURE
# =============================================================================

def test_team_filter(request_factory, roster, build_model):
    model = build_model(request_factory(days=1, counts=(1, 1, 1), team_ids=["T1"]), roster)
    assert {e.team_id for e in model.employees} == {"T1"}
    assert len(model.employees) == 6


def test_eligibility_uses_level_and_personal_constraints(request_factory, employee_factory, build_model):
    employees = [
        employee_factory("A", level=3),
        employee_factory("B", level=1, constraints=[
            EmployeeConstraint(EmployeeConstraintType.NO_NIGHT),
        ]),
        employee_factory("C", level=2, constraints=[
            EmployeeConstraint(EmployeeConstraintType.TIME_OFF,
                               {"start_date": START, "end_date": START}),
        ]),
    ]
    coverage = [
        CoverageRequirement(START, ShiftType.DAY, 1, min_experience_level=2),
        CoverageRequirement(START, ShiftType.NIGHT, 1),
    ]
    model = build_model(request_factory(days=1, coverage=coverage), employees)

    day = model.slot_for(START, ShiftType.DAY)
    night = model.slot_for(START, ShiftType.NIGHT)
    assert model.eligible[day] == ("A",)
    assert model.eligible[night] == ("A",)
    assert model.slot_for(START, ShiftType.EVENING) is None


def test_min_staff_raises_positive_requirements(request_factory, roster, build_model):
    coverage = [
        CoverageRequirement(START, ShiftType.DAY, 1),
        CoverageRequirement(START, ShiftType.EVENING, 0),
    ]
    request = request_factory(days=1, coverage=coverage, limits=LegalLimits(min_staff_per_shift=2))
    model = build_model(request, roster)

    assert model.required[model.slot_for(START, ShiftType.DAY)] == 2
    assert model.required[model.slot_for(START, ShiftType.EVENING)] == 0


def test_mentor_pairs_inside_roster_only(request_factory, employee_factory, build_model):
    employees = [
        employee_factory("M"),
        employee_factory("S", mentor_id="M"),
        employee_factory("X", mentor_id="GONE"),
    ]
    model = build_model(request_factory(days=1, counts=(1, 1, 1)), employees)

    assert model.mentor_pairs == [("M", "S")]
    assert model.mentor_of == {"S": "M"}
    assert sorted(model.partners_of("M")) == ["S"]
    assert model.partners_of("X") == []


def test_weights_follow_generation_options(request_factory, roster, build_model):
    options = GenerationOptions(
        respect_preferences=False,
        minimize_consecutive_nights=False,
        balance_workload=False,
        avoid_dangerous_patterns=False,
        enforce_mentorship_pairing=True,
        mentorship_priority=4,
    )
    model = build_model(request_factory(days=1, options=options), roster)
    weights = model.weights

    assert weights.preference == 0
    assert weights.night_cluster == 0
    assert weights.fairness == 0
    assert weights.safety == 0
    assert weights.mentorship == pytest.approx(3.0 * 4)
    assert ConstraintType.DANGEROUS_PATTERN not in {c.constraint_type for c in model.hard_constraints}


def test_hard_weight_follows_safety_priority(request_factory, roster):
    builder = ConstraintModelBuilder()
    strict = builder.build(request_factory(days=1, safety_priority=SafetyPriority.STRICT), roster)
    relaxed = builder.build(request_factory(days=1, safety_priority=SafetyPriority.RELAXED), roster)
    assert strict.weights.hard > relaxed.weights.hard > 0


def test_week_index_counts_from_start(request_factory, roster, build_model):
    model = build_model(request_factory(days=14), roster)
    assert model.week_index(START) == 0
    assert model.week_index(START + timedelta(days=6)) == 0
    assert model.week_index(START + timedelta(days=7)) == 1

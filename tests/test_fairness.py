"""Tests for the Gini coefficient and the fairness evaluator."""
import pytest

from models.schedule import AssignmentSet
from models.shift import ShiftType
from optimizer.fairness import (
    FairnessEvaluator,
    distribution_balance,
    fairness_grade,
    fairness_score,
    gini_coefficient,
)
from optimizer.seeding import RotationSeeder


# =============================================================================
# GINI
# =============================================================================

@pytest.mark.parametrize("values", [[], [0, 0, 0], [8, 8, 8, 8]])
def test_gini_is_zero_for_degenerate_or_equal_distributions(values):
    assert gini_coefficient(values) == 0.0


def test_gini_single_worker_takes_everything():
    """One non-zero value among n gives (n - 1) / n."""
    assert gini_coefficient([0, 0, 0, 10]) == pytest.approx(0.75)


def test_gini_matches_pairwise_definition():
    values = [1, 2, 3, 4]
    n = len(values)
    pairwise = sum(abs(a - b) for a in values for b in values) / (2 * n * sum(values))
    assert gini_coefficient(values) == pytest.approx(pairwise)
    assert gini_coefficient(values) == pytest.approx(0.25)


def test_gini_ignores_order():
    assert gini_coefficient([40, 0, 16, 24]) == gini_coefficient([0, 16, 24, 40])


def test_gini_accepts_generators():
    assert gini_coefficient(x for x in [1, 2, 3, 4]) == pytest.approx(0.25)


# =============================================================================
# SCORES
# =============================================================================

def test_fairness_score_is_full_at_or_below_target():
    assert fairness_score(0.1, 0.3) == 100.0
    assert fairness_score(0.3, 0.3) == 100.0


def test_fairness_score_falls_linearly_to_zero():
    assert fairness_score(0.65, 0.3) == pytest.approx(50.0)
    assert fairness_score(1.0, 0.3) == pytest.approx(0.0)


@pytest.mark.parametrize("score, grade", [
    (95, "excellent"), (85, "good"), (70, "fair"), (45, "poor"), (10, "unacceptable"),
])
def test_fairness_grade(score, grade):
    assert fairness_grade(score) == grade


def test_distribution_balance():
    demanded = list(ShiftType)
    even = {ShiftType.DAY: 2, ShiftType.EVENING: 2, ShiftType.NIGHT: 2}
    skewed = {ShiftType.DAY: 6, ShiftType.EVENING: 0, ShiftType.NIGHT: 0}
    assert distribution_balance(even, demanded) == 1.0
    assert distribution_balance(skewed, demanded) == 0.0
    assert distribution_balance({}, demanded) == 1.0


# =============================================================================
# EVALUATOR
# =============================================================================

def test_evaluator_counts_employees_without_shifts(request_factory, roster, build_model):
    """An empty schedule has zero Gini and every employee at zero hours."""
    model = build_model(request_factory(days=7), roster)
    report = FairnessEvaluator(model).evaluate(AssignmentSet())

    assert report.gini == 0.0
    assert len(report.workloads) == len(roster)
    assert report.hours_max == 0
    assert report.meets_target


def test_evaluator_is_deterministic(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    assignments = RotationSeeder(model).seed()
    evaluator = FairnessEvaluator(model)

    assert evaluator.evaluate(assignments) == evaluator.evaluate(assignments)


def test_rotation_seed_is_fair(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    report = FairnessEvaluator(model).evaluate(RotationSeeder(model).seed())

    assert report.gini < 0.1
    assert report.meets_target
    assert report.grade == "excellent"
    assert set(report.team_gini) == {"T1", "T2"}
    assert report.hours_min > 0


def test_evaluator_flags_concentrated_workload(request_factory, roster, build_model):
    """One employee working every shift is far above any target."""
    model = build_model(request_factory(days=7), roster)
    assignments = AssignmentSet()
    for shift_date in model.dates:
        assignments.assign("E01", model.slot_for(shift_date, ShiftType.DAY))

    report = FairnessEvaluator(model).evaluate(assignments)
    assert report.gini == pytest.approx(11 / 12)
    assert not report.meets_target
    assert report.gap == pytest.approx(report.gini - 0.3)
    assert report.to_dict()["hours"]["max"] == 56

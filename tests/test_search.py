"""Tests for the search strategies, restarts and cancellation."""
import signal

import pytest

from models.request import SearchStrategyType
from models.schedule import AssignmentSet
from optimizer.cost import CostFunction
from optimizer.search import (
    CancellationToken,
    ignore_interrupts,
    merge_outcomes,
    resolve_workers,
    run_restart,
    run_search,
)
from optimizer.seeding import RotationSeeder
from optimizer.strategies import (
    STOP_CANCELLED,
    STOP_CONVERGED,
    STOP_DISABLED,
    STOP_MAX_ITERATIONS,
    STOP_TIMEOUT,
    STRATEGIES,
    SearchOutcome,
    create_strategy,
)
from optimizer.validation import ScheduleValidator


def seed_cost(model):
    return CostFunction(model).evaluate(RotationSeeder(model).seed()).total


def outcome(cost, restart_index, stop_reason=STOP_MAX_ITERATIONS, iterations=5):
    return SearchOutcome(AssignmentSet(), cost, iterations, stop_reason, restart_index, 1)


def test_every_strategy_is_registered():
    assert set(STRATEGIES) == set(SearchStrategyType)


@pytest.mark.parametrize("strategy", list(SearchStrategyType))
def test_strategy_never_worsens_the_seed(strategy, request_factory, roster, build_model):
    model = build_model(request_factory(strategy=strategy, max_iterations=8), roster)
    result = run_search(model, seed=11, workers=1)

    assert result.cost <= seed_cost(model) + 1e-9
    assert result.iterations >= 1
    assert result.stop_reason in (STOP_MAX_ITERATIONS, STOP_CONVERGED)
    assert ScheduleValidator(model).validate(result.assignment_set).is_feasible


def test_best_cost_matches_full_evaluation(request_factory, roster, build_model):
    model = build_model(request_factory(strategy=SearchStrategyType.SIMULATED_ANNEALING), roster)
    result = run_search(model, seed=3, workers=1)
    assert result.cost == pytest.approx(CostFunction(model).evaluate(result.assignment_set).total)


def test_same_seed_is_reproducible(request_factory, roster, build_model):
    model = build_model(request_factory(strategy=SearchStrategyType.TABU_SEARCH, max_iterations=5), roster)
    first = run_search(model, seed=5, workers=1)
    again = run_search(model, seed=5, workers=1)

    assert first.assignment_set == again.assignment_set
    assert first.cost == again.cost


def test_more_iterations_never_hurt(request_factory, roster, build_model, with_settings):
    """With convergence disabled a longer run extends the shorter one."""
    short = build_model(with_settings(request_factory(), max_iterations=3, convergence_threshold=0.0), roster)
    longer = build_model(with_settings(request_factory(), max_iterations=15, convergence_threshold=0.0), roster)

    assert run_search(longer, seed=2, workers=1).cost <= run_search(short, seed=2, workers=1).cost


def test_convergence_stops_a_stalled_search(request_factory, roster, build_model):
    model = build_model(request_factory(max_iterations=500, stall_window=2, convergence_threshold=0.5), roster)
    result = run_search(model, seed=1, workers=1)
    assert result.stop_reason == STOP_CONVERGED
    assert result.iterations < 500


# =============================================================================
# CANCELLATION
# =============================================================================

def test_cancelled_token_returns_the_seed(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    token = CancellationToken()
    token.cancel()

    result = run_search(model, token, seed=1, workers=1)
    assert result.stop_reason == STOP_CANCELLED
    assert result.iterations == 0
    assert result.assignment_set == RotationSeeder(model).seed()
    assert token.reason == STOP_CANCELLED


def test_expired_deadline_is_a_timeout(request_factory, roster, build_model):
    model = build_model(request_factory(), roster)
    token = CancellationToken.with_timeout(1e-6)

    result = run_search(model, token, seed=1, workers=1)
    assert result.stop_reason == STOP_TIMEOUT
    assert result.assignment_set is not None


def test_token_without_deadline_is_live():
    token = CancellationToken.with_timeout(None)
    assert not token.is_cancelled()
    assert token.reason is None


def test_disabled_optimization_returns_the_seed(request_factory, roster, build_model):
    model = build_model(request_factory(enabled=False, restarts=4), roster)
    result = run_search(model, seed=1, workers=1)

    assert result.stop_reason == STOP_DISABLED
    assert result.iterations == 0
    assert result.cost == pytest.approx(seed_cost(model))


def test_restart_zero_uses_the_plain_rotation(request_factory, roster, build_model):
    model = build_model(request_factory(max_iterations=0), roster)
    result = run_restart(model, 0, seed=9, token=CancellationToken())
    assert result.assignment_set == RotationSeeder(model).seed()
    assert result.restart_index == 0
    assert result.seed == 9


def test_create_strategy_follows_settings(request_factory, roster, build_model):
    model = build_model(request_factory(strategy=SearchStrategyType.GENETIC_ALGORITHM), roster)
    strategy = create_strategy(model, rng=None)
    assert strategy.strategy_type == SearchStrategyType.GENETIC_ALGORITHM


# =============================================================================
# RESTARTS
# =============================================================================

def test_merge_picks_lowest_cost():
    merged = merge_outcomes([outcome(10.0, 0), outcome(4.0, 1), outcome(7.0, 2)])
    assert merged.restart_index == 1
    assert merged.cost == 4.0
    assert merged.iterations == 15


def test_merge_ties_go_to_lowest_restart():
    merged = merge_outcomes([outcome(4.0, 2), outcome(4.0, 0), outcome(4.0, 1)])
    assert merged.restart_index == 0


def test_merge_reports_interruption():
    merged = merge_outcomes([outcome(3.0, 0), outcome(9.0, 1, stop_reason=STOP_TIMEOUT)])
    assert merged.restart_index == 0
    assert merged.stop_reason == STOP_TIMEOUT


def test_inline_restarts_are_merged(request_factory, roster, build_model):
    model = build_model(request_factory(restarts=3, max_iterations=3), roster)
    result = run_search(model, seed=4, workers=1)
    assert result.restart_index in (0, 1, 2)
    assert result.seed == 4
    assert result.cost <= seed_cost(model) + 1e-9


@pytest.mark.parametrize("requested, restarts, expected", [
    (4, 2, 2),
    (1, 8, 1),
    (3, 8, 3),
])
def test_resolve_workers(requested, restarts, expected):
    assert resolve_workers(requested, restarts) == expected


def test_resolve_workers_defaults_to_cpu_count():
    assert 1 <= resolve_workers(None, 64) <= 64


# =============================================================================
# PROCESS POOL
# =============================================================================

def test_pooled_restarts_merge_like_inline_ones(request_factory, roster, build_model):
    model = build_model(request_factory(restarts=3, workers=2, max_iterations=5), roster)
    inline = [run_restart(model, i, 4, CancellationToken()) for i in range(3)]
    best = min(inline, key=lambda o: (o.cost, o.restart_index))

    result = run_search(model, seed=4, workers=2)

    assert result.iterations == sum(o.iterations for o in inline)
    assert result.cost == pytest.approx(best.cost)
    assert result.restart_index == best.restart_index
    assert result.assignment_set == best.assignment_set


def test_cancelled_pool_returns_seed_candidates(request_factory, roster, build_model):
    model = build_model(request_factory(restarts=3, workers=2, max_iterations=1000), roster)
    token = CancellationToken()
    token.cancel()

    result = run_search(model, token, seed=4, workers=2)

    assert result.stop_reason == STOP_CANCELLED
    assert result.iterations == 0
    assert len(result.assignment_set) > 0


def test_pool_processes_ignore_ctrl_c():
    previous = signal.getsignal(signal.SIGINT)
    try:
        ignore_interrupts()
        assert signal.getsignal(signal.SIGINT) == signal.SIG_IGN
    finally:
        signal.signal(signal.SIGINT, previous)

"""
Search strategies.

All strategies share the SearchStrategy interface and are dispatched by
the STRATEGIES table. One outer iteration is a batch of
moves_per_iteration proposals (one generation for the genetic
algorithm); cancellation is polled once per outer iteration.
"""
import logging
import math
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple, Type

from models.request import SearchStrategyType
from models.schedule import AssignmentSet
from models.shift import ShiftSlot

from .cost import CostFunction, CostState
from .moves import Move, Neighborhood

logger = logging.getLogger("ShiftOptimizer.search")

EPSILON = 1e-9

STOP_MAX_ITERATIONS = "max_iterations"
STOP_CONVERGED = "converged"
STOP_TIMEOUT = "timeout"
STOP_CANCELLED = "cancelled"
STOP_DISABLED = "optimization_disabled"


@dataclass
class SearchOutcome:
    """Best candidate found by one restart."""
    assignment_set: AssignmentSet
    cost: float
    iterations: int
    stop_reason: str
    restart_index: int = 0
    seed: Optional[int] = None

    @property
    def interrupted(self) -> bool:
        return self.stop_reason in (STOP_TIMEOUT, STOP_CANCELLED)


class SearchStrategy(ABC):
    """
    Base class for metaheuristics.

    Subclasses implement iterate(); the base class owns the outer loop,
    best tracking, convergence and cancellation.
    """

    strategy_type: SearchStrategyType

    def __init__(self, model, rng, cost_function: Optional[CostFunction] = None):
        self.model = model
        self.rng = rng
        self.settings = model.settings
        self.tuning = model.tuning
        self.cost_function = cost_function or CostFunction(model)
        self.neighborhood = Neighborhood(model, rng)
        self.best: Optional[AssignmentSet] = None
        self.best_cost = math.inf

    def _consider(self, state: CostState) -> None:
        """Record the state as best only on a strict improvement."""
        if state.total < self.best_cost - EPSILON:
            self.best = state.assignments.copy()
            self.best_cost = state.total

    @abstractmethod
    def start(self, initial: AssignmentSet) -> None:
        """Prepare search state from the initial assignment set."""

    @abstractmethod
    def iterate(self) -> None:
        """Run one outer iteration."""

    def end_iteration(self) -> None:
        """Hook run after every outer iteration."""

    def search(self, initial: AssignmentSet, token) -> SearchOutcome:
        """
        Run the search loop.

        Args:
            initial: Starting assignment set (not mutated)
            token: Cancellation token polled once per outer iteration

        Returns:
            SearchOutcome with the best assignment set found
        """
        self.best = None
        self.best_cost = math.inf
        self.start(initial.copy())

        window = self.settings.stall_window
        threshold = self.settings.convergence_threshold
        trace: Deque[float] = deque([self.best_cost], maxlen=window + 1)
        stop_reason = STOP_MAX_ITERATIONS
        iterations = 0

        for _ in range(self.settings.max_iterations):
            if token.is_cancelled():
                stop_reason = token.reason or STOP_CANCELLED
                break
            self.iterate()
            self.end_iteration()
            iterations += 1
            trace.append(self.best_cost)

            if len(trace) == window + 1:
                start = trace[0]
                improvement = (start - self.best_cost) / max(1.0, abs(start))
                if improvement < threshold:
                    stop_reason = STOP_CONVERGED
                    break

        logger.debug(
            f"{self.strategy_type.value}: {iterations} iterations, "
            f"best cost {self.best_cost:.2f} ({stop_reason})"
        )
        return SearchOutcome(
            assignment_set=self.best,
            cost=self.best_cost,
            iterations=iterations,
            stop_reason=stop_reason,
        )


class LocalSearchStrategy(SearchStrategy):
    """Single-trajectory strategies: one CostState walked by moves."""

    def start(self, initial: AssignmentSet) -> None:
        self.state = CostState(self.cost_function, initial)
        self._consider(self.state)

    def iterate(self) -> None:
        for _ in range(self.tuning.moves_per_iteration):
            move = self.neighborhood.propose(self.state.assignments)
            if move is None:
                return
            if self.step(move):
                self._consider(self.state)

    @abstractmethod
    def step(self, move: Move) -> bool:
        """Try one move; return True if it was kept."""


class HillClimbing(LocalSearchStrategy):
    """Accept only strict improvements."""

    strategy_type = SearchStrategyType.HILL_CLIMBING

    def step(self, move: Move) -> bool:
        delta = self.state.apply(move)
        if delta < -EPSILON:
            return True
        self.state.undo()
        return False


class SimulatedAnnealing(LocalSearchStrategy):
    """
    Accept worsening moves with probability exp(-delta / T).

    T starts at initial_temperature and is multiplied by cooling_rate after
    every outer iteration, never dropping below min_temperature.
    """

    strategy_type = SearchStrategyType.SIMULATED_ANNEALING

    def start(self, initial: AssignmentSet) -> None:
        super().start(initial)
        self.temperature = self.tuning.initial_temperature

    def step(self, move: Move) -> bool:
        delta = self.state.apply(move)
        if delta <= 0 or self.rng.random() < math.exp(-delta / self.temperature):
            return True
        self.state.undo()
        return False

    def end_iteration(self) -> None:
        self.temperature = max(self.tuning.min_temperature,
                               self.temperature * self.tuning.cooling_rate)


class TabuSearch(SearchStrategy):
    """
    Move to the best admissible neighbour of a sampled neighbourhood.

    Recently removed (employee, slot) attributes may not be re-added for
    tabu_tenure moves, unless the move beats the best cost so far.
    """

    strategy_type = SearchStrategyType.TABU_SEARCH

    def start(self, initial: AssignmentSet) -> None:
        self.state = CostState(self.cost_function, initial)
        self._consider(self.state)
        self.tabu: Deque[Tuple[str, ShiftSlot]] = deque(maxlen=self.tuning.tabu_tenure)

    def _is_tabu(self, move: Move) -> bool:
        return any(attribute in self.tabu for attribute in move.added())

    def iterate(self) -> None:
        for _ in range(self.tuning.moves_per_iteration):
            chosen = self._best_admissible()
            if chosen is None:
                return
            self.state.apply(chosen)
            self.tabu.extend(chosen.removed())
            self._consider(self.state)

    def _best_admissible(self) -> Optional[Move]:
        best_move, best_delta = None, math.inf
        for _ in range(self.tuning.tabu_sample_size):
            move = self.neighborhood.propose(self.state.assignments)
            if move is None:
                break
            delta = self.state.apply(move)
            resulting = self.state.total
            self.state.undo()
            if self._is_tabu(move) and resulting >= self.best_cost - EPSILON:
                continue
            if delta < best_delta:
                best_move, best_delta = move, delta
        return best_move


class GeneticAlgorithm(SearchStrategy):
    """
    Population search with tournament selection, date-range crossover,
    move-based mutation and elitist survival.
    """

    strategy_type = SearchStrategyType.GENETIC_ALGORITHM

    def start(self, initial: AssignmentSet) -> None:
        first = CostState(self.cost_function, initial)
        self.population: List[CostState] = [first]
        while len(self.population) < self.tuning.population_size:
            member = first.copy()
            self._mutate(member)
            self.population.append(member)
        for member in self.population:
            self._consider(member)

    def _mutate(self, member: CostState) -> None:
        for _ in range(self.tuning.mutation_moves):
            move = self.neighborhood.propose(member.assignments)
            if move is None:
                return
            member.apply(move)

    def _tournament(self) -> CostState:
        size = min(self.tuning.tournament_size, len(self.population))
        contenders = self.rng.sample(range(len(self.population)), size)
        return self.population[min(contenders, key=lambda i: (self.population[i].total, i))]

    def _crossover(self, first: CostState, second: CostState) -> CostState:
        dates = self.model.dates
        a = self.rng.randrange(len(dates))
        b = self.rng.randrange(a, len(dates))
        child = first.assignments.copy()
        for shift_date in dates[a:b + 1]:
            child.clear_date(shift_date)
            for assignment in second.assignments.day_assignments(shift_date):
                child.assign(assignment.employee_id, assignment.slot)
        return CostState(self.cost_function, child)

    def iterate(self) -> None:
        children = []
        for _ in range(self.tuning.population_size):
            child = self._crossover(self._tournament(), self._tournament())
            if self.rng.random() < self.tuning.mutation_rate:
                self._mutate(child)
            children.append(child)
            self._consider(child)

        ranked = sorted(enumerate(self.population + children), key=lambda pair: (pair[1].total, pair[0]))
        self.population = [member for _, member in ranked[:self.tuning.population_size]]


STRATEGIES: Dict[SearchStrategyType, Type[SearchStrategy]] = {
    SearchStrategyType.HILL_CLIMBING: HillClimbing,
    SearchStrategyType.SIMULATED_ANNEALING: SimulatedAnnealing,
    SearchStrategyType.TABU_SEARCH: TabuSearch,
    SearchStrategyType.GENETIC_ALGORITHM: GeneticAlgorithm,
}


def create_strategy(model, rng, cost_function: Optional[CostFunction] = None) -> SearchStrategy:
    """Instantiate the strategy selected in the model's settings."""
    return STRATEGIES[model.settings.strategy](model, rng, cost_function)

"""
Optimizer core for the Shift Safety Scheduling Optimizer.

Pure algorithmic components with no console output:
- model: ConstraintModel and its builder
- patterns: dangerous-pattern detection and safety scoring
- fairness: Gini-based workload fairness
- validation: hard-constraint checks
- cost, moves, seeding, strategies, search: the optimization engine
"""
from .cost import CostBreakdown, CostFunction, CostState
from .fairness import FairnessEvaluator, gini_coefficient
from .model import (
    ConstraintModel,
    ConstraintModelBuilder,
    SoftWeights,
    default_pattern_rules,
)
from .moves import Change, Move, MoveKind, Neighborhood
from .patterns import PatternSafetyAnalyzer
from .search import CancellationToken, run_restart, run_search
from .seeding import RotationSeeder
from .strategies import (
    STRATEGIES,
    GeneticAlgorithm,
    HillClimbing,
    SearchOutcome,
    SearchStrategy,
    SimulatedAnnealing,
    TabuSearch,
    create_strategy,
)
from .validation import ScheduleValidator

__all__ = [
    "CostBreakdown",
    "CostFunction",
    "CostState",
    "FairnessEvaluator",
    "gini_coefficient",
    "ConstraintModel",
    "ConstraintModelBuilder",
    "SoftWeights",
    "default_pattern_rules",
    "Change",
    "Move",
    "MoveKind",
    "Neighborhood",
    "PatternSafetyAnalyzer",
    "CancellationToken",
    "run_restart",
    "run_search",
    "RotationSeeder",
    "STRATEGIES",
    "GeneticAlgorithm",
    "HillClimbing",
    "SearchOutcome",
    "SearchStrategy",
    "SimulatedAnnealing",
    "TabuSearch",
    "create_strategy",
    "ScheduleValidator",
]

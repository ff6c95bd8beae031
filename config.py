"""
Configuration file for the Shift Safety Scheduling Optimizer.

This file contains legal-limit defaults, search tuning parameters and
application settings. Values that vary per deployment are read from
environment variables in AppConfig.load().
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logging.warning(f"⚠️  Ignoring {name}={value!r}: not an integer")
        return None


# =============================================================================
# SCHEDULING CONFIGURATION
# =============================================================================

@dataclass
class SchedulingConfig:
    """Configuration for scheduling parameters."""

    # Legal limit defaults (overridable per request)
    min_rest_hours: float = 11.0
    max_consecutive_nights: int = 3
    max_weekly_hours: float = 52.0
    min_staff_per_shift: int = 1

    # Request bounds
    max_range_days: int = 90

    # Fatigue thresholds used by the pattern safety analyzer
    standard_weekly_hours: float = 40.0
    overtime_medium_hours: float = 48.0
    fatigue_streak_days: int = 7
    weekend_overload_run: int = 3
    max_shift_changes_per_week: int = 2


# =============================================================================
# OPTIMIZER CONFIGURATION
# =============================================================================

@dataclass
class OptimizerConfig:
    """Search tuning parameters shared by all strategies."""

    max_iterations: int = 500
    moves_per_iteration: int = 12
    stall_window: int = 50

    # Simulated annealing: T <- T * cooling_rate after each outer iteration
    initial_temperature: float = 20.0
    cooling_rate: float = 0.95
    min_temperature: float = 0.01

    # Tabu search
    tabu_tenure: int = 25
    tabu_sample_size: int = 20

    # Genetic algorithm
    population_size: int = 12
    tournament_size: int = 3
    mutation_rate: float = 0.3
    mutation_moves: int = 3

    # Hard-violation weight per safety priority (never zero)
    hard_weights: Dict[str, float] = field(default_factory=lambda: {
        "strict": 1000.0,
        "balanced": 200.0,
        "relaxed": 25.0,
    })

    # Soft weights (zeroed when the matching generation option is off)
    fairness_weight: float = 1.0        # per 0.01 of Gini above target
    safety_weight: float = 0.5          # per safety-score point
    preference_weight: float = 1.0      # per unmet preference unit
    night_cluster_weight: float = 0.5   # per extra consecutive night
    mentorship_weight: float = 3.0      # per separated day, times priority
    overstaffing_weight: float = 2.0    # per surplus head
    shortfall_weight: float = 20.0      # per missing head on allow_shortfall slots


# =============================================================================
# MAIN APPLICATION CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Main application configuration."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)

    # Output settings
    output_dir: str = "output"
    verbose: bool = True
    log_to_file: bool = True

    # Performance settings
    workers: Optional[int] = None

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment and defaults."""
        return cls(
            output_dir=os.environ.get("SHIFT_OPTIMIZER_OUTPUT_DIR", "output"),
            verbose=_env_bool("SHIFT_OPTIMIZER_VERBOSE", True),
            log_to_file=_env_bool("SHIFT_OPTIMIZER_LOG_TO_FILE", True),
            workers=_env_int("SHIFT_OPTIMIZER_WORKERS"),
        )


# Global configuration instance
config = AppConfig.load()

"""
Agents of the Shift Safety Scheduling Optimizer.

Each agent wraps one part of the optimizer core and talks to the others
over the message bus; the coordinator runs them in phases.
"""
from .base_agent import AgentState, BaseAgent
from .coordinator import CoordinatorAgent
from .data_loader import DataLoaderAgent
from .fairness_evaluator import FairnessEvaluatorAgent
from .model_builder import ModelBuilderAgent
from .optimization_engine import OptimizationEngineAgent
from .pattern_safety import PatternSafetyAgent
from .result_reporter import ResultReporterAgent
from .roster_exporter import RosterExporterAgent
from .schedule_validator import ScheduleValidatorAgent

__all__ = [
    "AgentState",
    "BaseAgent",
    "CoordinatorAgent",
    "DataLoaderAgent",
    "FairnessEvaluatorAgent",
    "ModelBuilderAgent",
    "OptimizationEngineAgent",
    "PatternSafetyAgent",
    "ResultReporterAgent",
    "RosterExporterAgent",
    "ScheduleValidatorAgent",
]

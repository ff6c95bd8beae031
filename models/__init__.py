"""
Data models for the scheduling system.
"""
from .errors import SchedulingError, InvalidRequest, InternalInconsistency
from .employee import Employee, EmployeeConstraint, EmployeeConstraintType
from .shift import ShiftSlot, ShiftType, DEFAULT_SHIFT_TIMES
from .schedule import Assignment, AssignmentSet
from .request import (
    CoverageRequirement,
    FairnessTarget,
    GenerationOptions,
    LegalLimits,
    OptimizationSettings,
    SafetyPriority,
    ScheduleRequest,
    SearchStrategyType,
)
from .constraints import (
    Constraint,
    ConstraintType,
    DangerousPatternRule,
    PatternDetection,
    PatternType,
    Severity,
    ValidatorReport,
    Violation,
)
from .reports import (
    EmployeeSafety,
    EmployeeWorkload,
    FairnessReport,
    PatternSafetyReport,
    TeamSafety,
)
from .run import RunMetadata, RunState, ScheduleRun, ScheduleRunResult

__all__ = [
    "SchedulingError", "InvalidRequest", "InternalInconsistency",
    "Employee", "EmployeeConstraint", "EmployeeConstraintType",
    "ShiftSlot", "ShiftType", "DEFAULT_SHIFT_TIMES",
    "Assignment", "AssignmentSet",
    "CoverageRequirement", "FairnessTarget", "GenerationOptions", "LegalLimits",
    "OptimizationSettings", "SafetyPriority", "ScheduleRequest", "SearchStrategyType",
    "Constraint", "ConstraintType", "DangerousPatternRule", "PatternDetection",
    "PatternType", "Severity", "ValidatorReport", "Violation",
    "EmployeeSafety", "EmployeeWorkload", "FairnessReport", "PatternSafetyReport", "TeamSafety",
    "RunMetadata", "RunState", "ScheduleRun", "ScheduleRunResult",
]

"""
Error taxonomy for the scheduling core.

Only two conditions are exceptions:
- InvalidRequest: malformed or empty input, rejected before search starts
- InternalInconsistency: a broken invariant, always fatal

Infeasible and TimedOut outcomes are terminal run states (see models.run),
not exceptions.
"""
from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling errors."""


class InvalidRequest(SchedulingError, ValueError):
    """
    Raised when a schedule request cannot be modeled.

    Attributes:
        field: Name of the offending request field (if known)
        reason: Human-readable reason
    """

    def __init__(self, reason: str, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field else reason
        super().__init__(message)


class InternalInconsistency(SchedulingError, RuntimeError):
    """Raised when an invariant of the scheduling core is broken."""

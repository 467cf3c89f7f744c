"""Exceptions raised by the factorization engine."""


class ALSJoinError(Exception):
    """Base class for all alsjoin errors."""


class ConfigurationError(ALSJoinError, ValueError):
    """Raised when ALS parameters are rejected before any computation."""


class NumericSolveError(ALSJoinError, ArithmeticError):
    """Raised when an entity's regularized normal equations cannot be solved."""


class InputSchemaError(ALSJoinError, ValueError):
    """Raised when a ratings file has none of the recognized column layouts."""

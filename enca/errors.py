"""Exceptions raised by the NCA kernel and executors."""


class EncaError(Exception):
    """Base class for all kernel and executor errors."""


class ConfigurationError(EncaError, ValueError):
    """Buffer shape or constants disagree between producer and consumer."""


class BoundsError(EncaError, ValueError):
    """Requested grid does not fit in a single kernel invocation."""


class NumericDivergence(EncaError, ArithmeticError):
    """Backend output drifted from the sequential reference beyond tolerance."""

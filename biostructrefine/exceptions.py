"""Exceptions raised by the alignment refinement code."""


class SuperpositionError(ValueError):
    """Superposition could not produce a valid rigid transform."""


class InvariantViolationError(RuntimeError):
    """Alignment or free-pool bookkeeping is inconsistent."""

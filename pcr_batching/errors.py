"""Exception types raised by the PCR batcher."""
from __future__ import annotations


class BatchingError(Exception):
    """Base class for every error raised by the batcher."""


class InvalidInputError(BatchingError, ValueError):
    """The operation list cannot be batched (empty, non-numeric, non-finite)."""


class ConfigurationError(BatchingError, ValueError):
    """Thermocycler or threshold settings are inconsistent or unparseable."""


class InternalInvariantViolation(BatchingError, RuntimeError):
    """The clustering engine corrupted its own state.

    Raised by the representation checker and by the merge loop. This is a
    bug in the engine, never a problem with the caller's input, so nothing
    inside the package catches it.
    """

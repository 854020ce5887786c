"""Gradient PCR batching by constrained hierarchical clustering."""
from pcr_batching.batcher import BatchingResult, PcrBatcher, batch_operations
from pcr_batching.config import BatcherSettings, ThermocyclerSettings, get_batcher_settings
from pcr_batching.errors import (
    BatchingError,
    ConfigurationError,
    InternalInvariantViolation,
    InvalidInputError,
)
from pcr_batching.models import PcrOperation

__all__ = [
    "BatchingResult",
    "PcrBatcher",
    "batch_operations",
    "BatcherSettings",
    "ThermocyclerSettings",
    "get_batcher_settings",
    "BatchingError",
    "ConfigurationError",
    "InternalInvariantViolation",
    "InvalidInputError",
    "PcrOperation",
]

"""Data model for a single PCR reaction."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Hashable, Iterable, List, Optional

from pcr_batching.errors import InvalidInputError


@dataclass(frozen=True)
class PcrOperation:
    """One PCR reaction waiting to be placed on a thermocycler.

    The batcher never mutates an operation; relabeling produces copies with
    the group fields filled in.
    """

    extension_time: float  # seconds, clustered per thermocycler
    anneal_temp: float  # degrees C, clustered per thermocycler row
    unique_id: Hashable = None
    extension_group: Optional[int] = None
    tanneal_group: Optional[int] = None

    @property
    def primary_value(self) -> float:
        return self.extension_time

    @property
    def secondary_value(self) -> float:
        return self.anneal_temp

    def with_groups(self, extension_group: int, tanneal_group: int) -> PcrOperation:
        """Return a copy labeled with its thermocycler and row group."""
        return replace(self, extension_group=extension_group, tanneal_group=tanneal_group)


def extension_time_of(operation: PcrOperation) -> float:
    return operation.extension_time


def anneal_temp_of(operation: PcrOperation) -> float:
    return operation.anneal_temp


def build_operation(
    extension_time: Any,
    anneal_temp: Any,
    unique_id: Hashable = None,
) -> PcrOperation:
    """Coerce raw values into a PcrOperation, rejecting non-finite numbers."""
    try:
        ext = float(extension_time)
        temp = float(anneal_temp)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(
            f"Operation {unique_id!r} has non-numeric values: "
            f"extension_time={extension_time!r}, anneal_temp={anneal_temp!r}"
        ) from exc
    if not (math.isfinite(ext) and math.isfinite(temp)):
        raise InvalidInputError(
            f"Operation {unique_id!r} has non-finite values: "
            f"extension_time={ext}, anneal_temp={temp}"
        )
    return PcrOperation(extension_time=ext, anneal_temp=temp, unique_id=unique_id)


def operations_from_dicts(rows: Iterable[Dict[str, Any]]) -> List[PcrOperation]:
    """Build operations from ``{extension_time, anneal_temp, unique_id}`` dicts."""
    operations: List[PcrOperation] = []
    for idx, row in enumerate(rows):
        try:
            ext = row["extension_time"]
            temp = row["anneal_temp"]
        except KeyError as exc:
            raise InvalidInputError(f"Operation #{idx} is missing field {exc.args[0]!r}") from exc
        operations.append(build_operation(ext, temp, row.get("unique_id", idx)))
    return operations

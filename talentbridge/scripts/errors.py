"""Outcome and failure kinds shared by the resolver and the matcher.

Misses are values (``NotFound``) because callers hit them routinely; faults
are exceptions because nothing in the core can recover from them.
"""
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class NotFound:
    """Typed miss: ``family`` under ``ref`` does not exist in either id space."""

    family: str
    ref: Any

    def __bool__(self) -> bool:
        return False

    @property
    def detail(self) -> str:
        return f"{self.family}_not_found"


class StorageFault(Exception):
    """The backing store failed to answer (timeout, connection loss, bad data)."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"storage_fault op={operation}: {cause}")


class InconsistentTaxonomy(Exception):
    """Parent/child links disagree between the legacy and native id spaces."""

    def __init__(self, family: str, node_id: str, reason: str):
        self.family = family
        self.node_id = node_id
        self.reason = reason
        super().__init__(f"inconsistent {family} taxonomy at {node_id}: {reason}")


class InvalidReference(ValueError):
    """An id string that is neither a native id nor a legacy id form."""

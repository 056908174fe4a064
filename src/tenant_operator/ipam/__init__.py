"""Subnet allocation from shared pools."""

from .allocator import allocate, overlaps_any
from .checker import AllocationChecker
from .store import AllocationEntity, AllocationRecord, AllocationStore

__all__ = [
    "allocate",
    "overlaps_any",
    "AllocationChecker",
    "AllocationEntity",
    "AllocationRecord",
    "AllocationStore",
]

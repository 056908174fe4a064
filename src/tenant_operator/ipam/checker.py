"""Allocation checks for one kind of allocation entity."""

from __future__ import annotations

from .store import AllocationEntity, AllocationStore


class AllocationChecker:
    """Decide whether an entity still needs a subnet."""

    def __init__(self, store: AllocationStore, plural: str) -> None:
        self.store = store
        self.plural = plural

    def needs_allocation(self, namespace: str, name: str) -> bool:
        # An entity that already tracks a subnet must never be reallocated,
        # not even speculatively.
        entity = AllocationEntity(self.plural, namespace, name)
        return self.store.lookup(entity) is None

"""Allocation records persisted as annotations on custom objects."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

from ..constants import ANNOTATION_SUBNET
from ..errors import AllocationConflictError, InvalidCustomObjectError
from ..key import subnet_from_annotations
from ..services.k8s.client import K8sClients, is_conflict, is_invalid, is_not_found

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationEntity:
    """A custom object that owns at most one subnet."""

    plural: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.plural}/{self.namespace}/{self.name}"


@dataclass(frozen=True)
class AllocationRecord:
    subnet: ipaddress.IPv4Network
    owner: AllocationEntity


@dataclass(frozen=True)
class EntitySnapshot:
    """Fresh read of an entity's allocation and the version it was read at."""

    subnet: ipaddress.IPv4Network | None
    resource_version: str


class AllocationStore:
    """Read and write subnet annotations of allocation entities.

    There is no lock around the pool. Every write is conditioned on the
    entity's resourceVersion, so concurrent writers for the same entity
    cannot overwrite one another.
    """

    def __init__(self, k8s: K8sClients, plurals: tuple[str, ...]) -> None:
        self.k8s = k8s
        self.plurals = plurals

    def read(self, entity: AllocationEntity) -> EntitySnapshot:
        obj = self.k8s.get_custom_object(entity.plural, entity.namespace, entity.name)
        meta = obj.get("metadata") or {}
        value = subnet_from_annotations(meta.get("annotations"))
        subnet = None
        if value is not None:
            try:
                subnet = ipaddress.IPv4Network(value)
            except ValueError as e:
                raise InvalidCustomObjectError(f"annotation {ANNOTATION_SUBNET} of {entity} is not a CIDR: {value}") from e
        return EntitySnapshot(subnet=subnet, resource_version=str(meta.get("resourceVersion", "")))

    def lookup(self, entity: AllocationEntity) -> ipaddress.IPv4Network | None:
        """Return the subnet committed for an entity, or None."""
        return self.read(entity).subnet

    def list_allocations(self) -> list[AllocationRecord]:
        """Return every committed allocation across all entity kinds."""
        records: list[AllocationRecord] = []
        for plural in self.plurals:
            for obj in self.k8s.list_custom_objects(plural):
                meta = obj.get("metadata") or {}
                value = subnet_from_annotations(meta.get("annotations"))
                if value is None:
                    continue
                owner = AllocationEntity(plural, meta.get("namespace", "default"), meta.get("name", ""))
                try:
                    subnet = ipaddress.IPv4Network(value)
                except ValueError:
                    logger.warning(f"Ignoring invalid subnet annotation {value!r} on {owner}")
                    continue
                records.append(AllocationRecord(subnet=subnet, owner=owner))
        return records

    def commit(self, entity: AllocationEntity, subnet: ipaddress.IPv4Network, resource_version: str) -> None:
        """Persist an allocation on its owner.

        Args:
            entity: Owner of the allocation
            subnet: Allocated subnet
            resource_version: Version of the owner the allocation was computed against

        Raises:
            AllocationConflictError: If the owner changed since it was read
        """
        body = {
            "metadata": {
                "resourceVersion": resource_version,
                "annotations": {ANNOTATION_SUBNET: str(subnet)},
            },
        }
        try:
            self.k8s.patch_custom_object(entity.plural, entity.namespace, entity.name, body)
        except Exception as e:
            if is_conflict(e):
                raise AllocationConflictError(
                    f"{entity} changed since version {resource_version}, discarding candidate {subnet}"
                ) from e
            raise

    def retract(self, entity: AllocationEntity, subnet: ipaddress.IPv4Network) -> None:
        """Remove an allocation from its owner if it still holds ``subnet``.

        The patch tests the annotation value first, so an allocation that was
        replaced in the meantime is left alone.
        """
        path = "/metadata/annotations/" + ANNOTATION_SUBNET.replace("~", "~0").replace("/", "~1")
        body = [
            {"op": "test", "path": path, "value": str(subnet)},
            {"op": "remove", "path": path},
        ]
        try:
            self.k8s.patch_custom_object(entity.plural, entity.namespace, entity.name, body)
        except Exception as e:
            if is_conflict(e) or is_invalid(e) or is_not_found(e):
                logger.warning(f"Allocation {subnet} of {entity} changed before it could be retracted: {e}")
                return
            raise
        logger.info(f"Retracted allocation {subnet} of {entity}")

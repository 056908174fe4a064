"""Handler allocating a subnet for clusters and node pools.

Allocation is racy: many passes for different objects draw from the same
pool at once, without a lock. Correctness rests on three rules.

1. An entity that already carries a subnet is never reallocated.
2. Candidates are chosen deterministically from the committed allocations.
3. Commits are conditioned on the owner's resourceVersion, and a commit that
   turns out to overlap another owner's record is retracted by its owner.

Any lost race ends the pass as transient. The next pass recomputes the
existing allocations from scratch and never reuses the rejected candidate.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from .. import metrics
from ..constants import PLURAL_CLUSTERS, PLURAL_MACHINE_DEPLOYMENTS
from ..controllercontext import ControllerContext
from ..errors import AllocationConflictError
from ..ipam import AllocationChecker, AllocationEntity, AllocationStore, allocate
from ..key import CustomObject
from ..utils.events import emit_subnet_allocated
from .base import BaseHandler, Delta


@dataclass(frozen=True)
class SubnetAllocation:
    subnet: ipaddress.IPv4Network
    owner: AllocationEntity


def entity_of(obj: CustomObject) -> AllocationEntity:
    return AllocationEntity(obj.plural, obj.namespace, obj.name)


class IPAMHandler(BaseHandler):
    """Allocates and commits one subnet per entity."""

    def __init__(self, plurals: tuple[str, ...] = (PLURAL_CLUSTERS, PLURAL_MACHINE_DEPLOYMENTS)) -> None:
        super().__init__("ipam")
        self.plurals = plurals

    def store(self, ctx: ControllerContext) -> AllocationStore:
        return AllocationStore(ctx.clients.k8s, self.plurals)

    def get_current_state(self, ctx: ControllerContext, obj: CustomObject) -> SubnetAllocation | None:
        entity = entity_of(obj)
        snapshot = self.store(ctx).read(entity)
        ctx.status["ipam_resource_version"] = snapshot.resource_version

        if snapshot.subnet is None:
            self.log_debug(obj, "no subnet allocated")
            return None

        ctx.status["subnet"] = str(snapshot.subnet)
        self.log_debug(obj, f"found allocated subnet {snapshot.subnet}")
        return SubnetAllocation(subnet=snapshot.subnet, owner=entity)

    def get_desired_state(self, ctx: ControllerContext, obj: CustomObject) -> SubnetAllocation | None:
        if obj.deleting:
            return None

        entity = entity_of(obj)
        store = self.store(ctx)
        checker = AllocationChecker(store, obj.plural)

        if not checker.needs_allocation(obj.namespace, obj.name):
            subnet = ctx.status.get("subnet")
            if subnet is None:
                # Someone committed a subnet after the current state was read.
                self.cancel(ctx, obj, "subnet allocated concurrently")
                return None
            return SubnetAllocation(subnet=ipaddress.IPv4Network(subnet), owner=entity)

        existing = [record.subnet for record in store.list_allocations() if record.owner != entity]
        subnet = allocate(obj.subnet_pool, existing, obj.subnet_prefix)
        self.log_debug(obj, f"selected free subnet {subnet}", existing=len(existing))
        return SubnetAllocation(subnet=subnet, owner=entity)

    def new_delta(
        self,
        obj: CustomObject,
        current: SubnetAllocation | None,
        desired: SubnetAllocation | None,
    ) -> Delta:
        # Records are only ever created here. Their owners remove them
        # together with themselves.
        if current is None and desired is not None:
            return Delta(create=desired)
        return Delta()

    def apply_create(self, ctx: ControllerContext, obj: CustomObject, change: SubnetAllocation) -> None:
        store = self.store(ctx)
        resource_version = ctx.status.get("ipam_resource_version", "")

        self.log_info(obj, f"committing subnet {change.subnet}", reason="SubnetAllocating")
        try:
            store.commit(change.owner, change.subnet, resource_version)
        except AllocationConflictError:
            metrics.subnet_allocations_total.labels(kind=obj.kind, result="conflict").inc()
            raise

        clashes = [
            record for record in store.list_allocations()
            if record.owner != change.owner and record.subnet.overlaps(change.subnet)
        ]
        if clashes:
            store.retract(change.owner, change.subnet)
            metrics.subnet_allocations_total.labels(kind=obj.kind, result="conflict").inc()
            raise AllocationConflictError(
                f"subnet {change.subnet} of {change.owner} overlaps {clashes[0].subnet} of {clashes[0].owner}"
            )

        ctx.status["subnet"] = str(change.subnet)
        metrics.subnet_allocations_total.labels(kind=obj.kind, result="success").inc()
        self.log_info(obj, f"allocated subnet {change.subnet}", reason="SubnetAllocated")
        emit_subnet_allocated(obj.body, str(change.subnet))

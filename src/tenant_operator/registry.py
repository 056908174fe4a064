"""Versioned registry of handler pipelines."""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import UnknownVersionError
from .handlers import EndpointsHandler, Handler, IPAMHandler, S3ObjectHandler, StackHandler

logger = logging.getLogger(__name__)


class PipelineRegistry:
    """Maps an operator version label to the ordered handlers of its pipeline.

    Custom objects carry the version of the operator that created them, so
    older objects keep being reconciled by the pipeline they were built with.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._pipelines: dict[str, tuple[Handler, ...]] = {}

    def register(self, version: str, handlers: Sequence[Handler]) -> None:
        if version in self._pipelines:
            raise ValueError(f"{self.kind} pipeline for version '{version}' already registered")
        self._pipelines[version] = tuple(handlers)
        logger.debug(f"Registered {self.kind} pipeline {version}: {[h.name for h in handlers]}")

    def resolve(self, version: str) -> list[Handler]:
        """Return the handlers for a version.

        Raises:
            UnknownVersionError: If no pipeline is registered for the version
        """
        try:
            return list(self._pipelines[version])
        except KeyError:
            raise UnknownVersionError(version, self.versions()) from None

    def versions(self) -> list[str]:
        return sorted(self._pipelines)


def cluster_registry() -> PipelineRegistry:
    registry = PipelineRegistry("Cluster")
    # 1.0.0 buckets are created outside the operator. Endpoints must not wait
    # for them.
    registry.register("1.0.0", [EndpointsHandler(), S3ObjectHandler()])
    registry.register("2.0.0", [IPAMHandler(), StackHandler(), S3ObjectHandler(), EndpointsHandler()])
    return registry


def machine_deployment_registry() -> PipelineRegistry:
    registry = PipelineRegistry("MachineDeployment")
    registry.register("2.0.0", [IPAMHandler()])
    return registry

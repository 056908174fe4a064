"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.exceptions import ApiException

from tenant_operator.config import OperatorConfig
from tenant_operator.constants import (
    ANNOTATION_SUBNET,
    API_GROUP_VERSION,
    KIND_CLUSTER,
    KIND_MACHINE_DEPLOYMENT,
    LABEL_CLUSTER,
    LABEL_OPERATOR_VERSION,
    LABEL_ORGANIZATION,
    PLURAL_CLUSTERS,
    PLURAL_MACHINE_DEPLOYMENTS,
)
from tenant_operator.controllercontext import ContextClients, ControllerContext
from tenant_operator.key import to_custom_object

KINDS = {
    PLURAL_CLUSTERS: KIND_CLUSTER,
    PLURAL_MACHINE_DEPLOYMENTS: KIND_MACHINE_DEPLOYMENT,
}


class FakeCustomObjects:
    """In-memory stand-in for the custom object calls of K8sClients.

    Merge patches honour a ``metadata.resourceVersion`` precondition and JSON
    patches honour ``test`` operations, like the API server does.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._version = 100

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add(self, plural: str, namespace: str, name: str, subnet: str | None = None) -> dict[str, Any]:
        body = {
            "apiVersion": API_GROUP_VERSION,
            "kind": KINDS[plural],
            "metadata": {
                "name": name,
                "namespace": namespace,
                "resourceVersion": self._next_version(),
                "annotations": {ANNOTATION_SUBNET: subnet} if subnet else {},
            },
        }
        self.objects[(plural, namespace, name)] = body
        return body

    def touch(self, plural: str, namespace: str, name: str) -> None:
        """Simulate an unrelated write bumping the resourceVersion."""
        self.objects[(plural, namespace, name)]["metadata"]["resourceVersion"] = self._next_version()

    def subnet_of(self, plural: str, namespace: str, name: str) -> str | None:
        annotations = self.objects[(plural, namespace, name)]["metadata"].get("annotations") or {}
        return annotations.get(ANNOTATION_SUBNET)

    def get_custom_object(self, plural: str, namespace: str, name: str) -> dict[str, Any]:
        try:
            return copy.deepcopy(self.objects[(plural, namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def list_custom_objects(self, plural: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(body) for (p, _, _), body in self.objects.items() if p == plural]

    def patch_custom_object(self, plural: str, namespace: str, name: str, body: Any) -> dict[str, Any]:
        obj = self.objects.get((plural, namespace, name))
        if obj is None:
            raise ApiException(status=404, reason="Not Found")
        meta = obj["metadata"]

        if isinstance(body, list):
            for op in body:
                annotation = op["path"].rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")
                annotations = meta.setdefault("annotations", {})
                if op["op"] == "test" and annotations.get(annotation) != op["value"]:
                    raise ApiException(status=422, reason="Unprocessable Entity")
                if op["op"] == "remove":
                    annotations.pop(annotation, None)
        else:
            patch_meta = body.get("metadata", {})
            expected = patch_meta.get("resourceVersion")
            if expected is not None and expected != meta["resourceVersion"]:
                raise ApiException(status=409, reason="Conflict")
            meta.setdefault("annotations", {}).update(patch_meta.get("annotations", {}))

        meta["resourceVersion"] = self._next_version()
        return copy.deepcopy(obj)


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Kubernetes events can only be posted from inside a running operator."""
    with patch("tenant_operator.utils.events.kopf.event") as mock_event:
        yield mock_event


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(region="eu-central-1", network_range=("10.0.0.0/16",))


def make_cluster_body(
    name: str = "abc12",
    version: str = "2.0.0",
    subnet: str | None = None,
    deleting: bool = False,
    **spec: Any,
) -> dict[str, Any]:
    """Build a Cluster body as kopf delivers it."""
    body: dict[str, Any] = {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_CLUSTER,
        "metadata": {
            "name": name,
            "namespace": "default",
            "uid": f"uid-{name}",
            "resourceVersion": "100",
            "generation": 1,
            "labels": {
                LABEL_CLUSTER: name,
                LABEL_ORGANIZATION: "acme",
                LABEL_OPERATOR_VERSION: version,
            },
            "annotations": {ANNOTATION_SUBNET: subnet} if subnet else {},
        },
        "spec": {"dns": {"baseDomain": "example.com"}, **spec},
    }
    if deleting:
        body["metadata"]["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    return body


def make_machine_deployment_body(name: str = "np001", cluster: str = "abc12", version: str = "2.0.0") -> dict[str, Any]:
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_MACHINE_DEPLOYMENT,
        "metadata": {
            "name": name,
            "namespace": "default",
            "uid": f"uid-{name}",
            "resourceVersion": "100",
            "labels": {
                LABEL_CLUSTER: cluster,
                LABEL_ORGANIZATION: "acme",
                LABEL_OPERATOR_VERSION: version,
            },
        },
        "spec": {},
    }


@pytest.fixture
def cluster(config: OperatorConfig):
    return to_custom_object(make_cluster_body(), config)


@pytest.fixture
def make_ctx(config: OperatorConfig):
    """Build controller contexts around mocked transport clients."""

    def factory(k8s: Any = None, aws: Any = None) -> ControllerContext:
        aws = aws or MagicMock()
        aws.get_account_id.return_value = "123456789012"
        return ControllerContext(
            config=config,
            clients=ContextClients(
                control_plane_aws=MagicMock(),
                tenant_cluster_aws=aws,
                k8s=k8s or MagicMock(),
            ),
        )

    return factory

"""Kubernetes clients for the control plane cluster."""

from __future__ import annotations

from typing import Any

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from ...constants import API_GROUP, API_VERSION, FIELD_MANAGER
from .. import call_api


def is_not_found(error: BaseException) -> bool:
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: BaseException) -> bool:
    return isinstance(error, ApiException) and error.status == 409


def is_invalid(error: BaseException) -> bool:
    return isinstance(error, ApiException) and error.status == 422


def load_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class K8sClients:
    """Typed wrappers over the Kubernetes API groups the handlers need."""

    def __init__(
        self,
        core: client.CoreV1Api | None = None,
        custom: client.CustomObjectsApi | None = None,
    ) -> None:
        self.core = core or client.CoreV1Api()
        self.custom = custom or client.CustomObjectsApi()

    def read_endpoints(self, namespace: str, name: str) -> client.V1Endpoints:
        return call_api("k8s", "read_endpoints", self.core.read_namespaced_endpoints, name=name, namespace=namespace)

    def create_endpoints(self, namespace: str, body: client.V1Endpoints) -> None:
        call_api(
            "k8s", "create_endpoints", self.core.create_namespaced_endpoints,
            namespace=namespace, body=body, field_manager=FIELD_MANAGER,
        )

    def replace_endpoints(self, namespace: str, name: str, body: client.V1Endpoints) -> None:
        call_api(
            "k8s", "replace_endpoints", self.core.replace_namespaced_endpoints,
            name=name, namespace=namespace, body=body, field_manager=FIELD_MANAGER,
        )

    def delete_endpoints(self, namespace: str, name: str) -> None:
        call_api("k8s", "delete_endpoints", self.core.delete_namespaced_endpoints, name=name, namespace=namespace)

    def get_custom_object(self, plural: str, namespace: str, name: str) -> dict[str, Any]:
        return call_api(
            "k8s", f"get_{plural}", self.custom.get_namespaced_custom_object,
            group=API_GROUP, version=API_VERSION, namespace=namespace, plural=plural, name=name,
        )

    def list_custom_objects(self, plural: str) -> list[dict[str, Any]]:
        """List custom objects of one plural across all namespaces."""
        response = call_api(
            "k8s", f"list_{plural}", self.custom.list_cluster_custom_object,
            group=API_GROUP, version=API_VERSION, plural=plural,
        )
        return response.get("items", [])

    def patch_custom_object(
        self, plural: str, namespace: str, name: str, body: dict[str, Any] | list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Patch a custom object.

        Dict bodies are sent as merge patches, list bodies as JSON patches.
        A ``metadata.resourceVersion`` in the body acts as a precondition; the
        API server answers 409 Conflict when the object changed meanwhile.
        """
        return call_api(
            "k8s", f"patch_{plural}", self.custom.patch_namespaced_custom_object,
            group=API_GROUP, version=API_VERSION, namespace=namespace, plural=plural, name=name,
            body=body, field_manager=FIELD_MANAGER,
        )

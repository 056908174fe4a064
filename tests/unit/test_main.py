"""Tests for the kopf entry points."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import kopf
import pytest
from botocore.exceptions import ClientError
from conftest import make_cluster_body
from kubernetes.client.exceptions import ApiException

from tenant_operator import health, main
from tenant_operator.controller import Controller
from tenant_operator.pipeline import PassOutcome, PassResult
from tenant_operator.registry import cluster_registry


@pytest.fixture
def memo() -> kopf.Memo:
    memo = kopf.Memo()
    memo.controller = MagicMock()
    return memo


class TestStartup:
    """Test operator startup."""

    @patch("tenant_operator.main.initialize_tracing")
    @patch("tenant_operator.main.health.start_health_server")
    @patch("tenant_operator.main.load_config")
    @patch("tenant_operator.main.K8sClients")
    @patch("tenant_operator.main.AWSClients")
    def test_configure(self, mock_aws, mock_k8s, mock_load_config, mock_server, mock_tracing, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "eu-central-1")
        monkeypatch.setenv("METRICS_PORT", "9090")
        settings = kopf.OperatorSettings()
        memo = kopf.Memo()

        try:
            main.configure(settings=settings, memo=memo)

            assert isinstance(memo.controller, Controller)
            assert set(memo.controller.registries) == {"Cluster", "MachineDeployment"}
            mock_aws.assert_called_once_with("eu-central-1")
            mock_server.assert_called_once_with(9090)
            mock_load_config.assert_called_once()
            assert health.is_ready() is True
        finally:
            health.set_ready(False)


class TestHandlers:
    """Test the kopf handler functions."""

    def test_reconcile_cluster(self, memo):
        body = make_cluster_body()
        patch_ = kopf.Patch()

        main.reconcile_cluster(body=body, patch=patch_, memo=memo)

        memo.controller.run_pass.assert_called_once_with(body, patch_)

    def test_teardown_succeeded(self, memo):
        memo.controller.run_pass.return_value = PassResult(PassOutcome.SUCCEEDED)
        body = make_cluster_body(deleting=True)
        patch_ = kopf.Patch()

        main.teardown_cluster(body=body, patch=patch_, memo=memo)

        memo.controller.run_pass.assert_called_once_with(body, patch_, deleting=True)

    @pytest.mark.parametrize("outcome", [PassOutcome.CANCELLED, PassOutcome.TRANSIENT])
    def test_teardown_not_finished_keeps_finalizer(self, memo, outcome):
        """Test that unfinished teardowns are retried instead of releasing the object."""
        memo.controller.run_pass.return_value = PassResult(outcome, handler="stack")

        with pytest.raises(kopf.TemporaryError, match="stack"):
            main.teardown_cluster(body=make_cluster_body(deleting=True), patch=kopf.Patch(), memo=memo)

    def test_teardown_fatal_error_keeps_finalizer(self, memo):
        """Test that fatal teardown errors are retried after the resync interval."""
        memo.controller.run_pass.side_effect = kopf.PermanentError("Rate exceeded")

        with pytest.raises(kopf.TemporaryError, match="Rate exceeded") as exc_info:
            main.teardown_cluster(body=make_cluster_body(deleting=True), patch=kopf.Patch(), memo=memo)

        assert exc_info.value.delay == main.RESYNC_INTERVAL_SECONDS


class TestTeardownScenario:
    """Test teardown through the real controller and handlers."""

    def test_stack_delete_throttled(self, config, mock_kopf_event):
        aws = MagicMock()
        aws.region = config.region
        aws.get_account_id.return_value = "123456789012"
        aws.list_object_keys.return_value = []
        aws.describe_stack.return_value = {"StackStatus": "CREATE_COMPLETE"}
        aws.get_stack_template.return_value = "{}"
        aws.delete_stack.side_effect = ClientError(
            {"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "DeleteStack",
        )
        k8s = MagicMock()
        k8s.read_endpoints.side_effect = ApiException(status=404, reason="Not Found")
        memo = kopf.Memo()
        memo.controller = Controller(
            config=config, control_plane_aws=aws, k8s=k8s, registries={"Cluster": cluster_registry()},
        )
        patch_ = kopf.Patch()

        with pytest.raises(kopf.TemporaryError, match="Throttling"):
            main.teardown_cluster(body=make_cluster_body(deleting=True), patch=patch_, memo=memo)

        conditions = {c["type"]: c["status"] for c in patch_.status["conditions"]}
        assert conditions == {"Ready": "False", "ReconcileFailed": "True"}
        assert mock_kopf_event.call_args.kwargs["type"] == "Warning"

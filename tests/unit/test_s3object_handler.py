"""Tests for the cloud config bucket object handler."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from conftest import make_cluster_body

from tenant_operator import pipeline
from tenant_operator.handlers import S3ObjectHandler
from tenant_operator.key import to_custom_object
from tenant_operator.pipeline import PassOutcome
from tenant_operator.template import render_cloud_configs

BUCKET = "123456789012-g8s-abc12"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def aws() -> MagicMock:
    aws = MagicMock()
    aws.bucket_exists.return_value = True
    aws.list_object_keys.return_value = []
    return aws


class TestS3ObjectCurrentState:
    """Test reading bucket objects."""

    def test_missing_bucket_is_empty(self, make_ctx, cluster, aws) -> None:
        """Test that a missing bucket means no objects, not an error."""
        aws.list_object_keys.side_effect = client_error("NoSuchBucket", "ListObjectsV2")

        current = S3ObjectHandler().get_current_state(make_ctx(aws=aws), cluster)

        assert current == {}
        aws.list_object_keys.assert_called_once_with(BUCKET)

    def test_object_vanishing_between_list_and_get(self, make_ctx, cluster, aws) -> None:
        """Test that an object deleted after listing is treated as absent."""
        aws.list_object_keys.return_value = ["a", "b"]
        aws.get_object_body.side_effect = [client_error("NoSuchKey", "GetObject"), "body-b"]

        current = S3ObjectHandler().get_current_state(make_ctx(aws=aws), cluster)

        assert list(current) == ["b"]
        assert current["b"].body == "body-b"

    def test_other_errors_propagate(self, make_ctx, cluster, aws) -> None:
        aws.list_object_keys.side_effect = client_error("AccessDenied", "ListObjectsV2")

        with pytest.raises(ClientError):
            S3ObjectHandler().get_current_state(make_ctx(aws=aws), cluster)


class TestS3ObjectHandler:
    """Test converging bucket contents."""

    def test_uploads_missing_objects(self, make_ctx, cluster, aws) -> None:
        """Test that every rendered cloud config is uploaded."""
        result = pipeline.run(make_ctx(aws=aws), [S3ObjectHandler()], cluster)

        assert result.outcome is PassOutcome.SUCCEEDED
        uploaded = {call.args[1]: call.args[2] for call in aws.put_object.call_args_list}
        assert uploaded == render_cloud_configs(cluster)
        assert {call.args[0] for call in aws.put_object.call_args_list} == {BUCKET}

    def test_converged_bucket_is_untouched(self, make_ctx, cluster, aws) -> None:
        """Test idempotence against a bucket already holding the configs."""
        configs = render_cloud_configs(cluster)
        aws.list_object_keys.return_value = list(configs)
        aws.get_object_body.side_effect = lambda bucket, key: configs[key]

        pipeline.run(make_ctx(aws=aws), [S3ObjectHandler()], cluster)

        aws.put_object.assert_not_called()
        aws.delete_object.assert_not_called()

    def test_updates_changed_and_deletes_stale_objects(self, make_ctx, cluster, aws) -> None:
        configs = render_cloud_configs(cluster)
        stored = dict(configs)
        changed_key = next(iter(stored))
        stored[changed_key] = "outdated"
        stored["version/0.9.0/cloudconfig/master"] = "stale"
        aws.list_object_keys.return_value = list(stored)
        aws.get_object_body.side_effect = lambda bucket, key: stored[key]

        pipeline.run(make_ctx(aws=aws), [S3ObjectHandler()], cluster)

        aws.put_object.assert_called_once_with(BUCKET, changed_key, configs[changed_key])
        aws.delete_object.assert_called_once_with(BUCKET, "version/0.9.0/cloudconfig/master")

    def test_missing_bucket_cancels(self, make_ctx, cluster, aws) -> None:
        """Test that uploads wait for the bucket to exist."""
        aws.list_object_keys.side_effect = client_error("NoSuchBucket", "ListObjectsV2")
        aws.bucket_exists.return_value = False

        result = pipeline.run(make_ctx(aws=aws), [S3ObjectHandler()], cluster)

        assert result.outcome is PassOutcome.CANCELLED
        assert result.handler == "s3object"
        aws.put_object.assert_not_called()

    def test_teardown_empties_bucket(self, make_ctx, config, aws) -> None:
        aws.list_object_keys.return_value = ["a"]
        aws.get_object_body.return_value = "body"
        deleting = to_custom_object(make_cluster_body(deleting=True), config)

        result = pipeline.run(make_ctx(aws=aws), [S3ObjectHandler()], deleting)

        assert result.outcome is PassOutcome.SUCCEEDED
        aws.delete_object.assert_called_once_with(BUCKET, "a")
        aws.bucket_exists.assert_not_called()

    def test_teardown_tolerates_deleted_bucket(self, make_ctx, config, aws) -> None:
        aws.list_object_keys.return_value = ["a"]
        aws.get_object_body.return_value = "body"
        aws.delete_object.side_effect = client_error("NoSuchBucket", "DeleteObject")
        deleting = to_custom_object(make_cluster_body(deleting=True), config)

        result = pipeline.run(make_ctx(aws=aws), [S3ObjectHandler()], deleting)

        assert result.outcome is PassOutcome.SUCCEEDED

"""Handler for the cloud config objects in a tenant cluster's bucket."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .. import key
from ..controllercontext import ControllerContext
from ..key import CustomObject
from ..services.aws.client import error_code
from ..template import render_cloud_configs
from .base import BaseHandler, Delta, diff_maps


@dataclass(frozen=True)
class BucketObjectState:
    bucket: str
    key: str
    body: str


BucketObjectMap = dict[str, BucketObjectState]


def is_bucket_not_found(error: BaseException) -> bool:
    return error_code(error) == "NoSuchBucket"


def is_object_not_found(error: BaseException) -> bool:
    return error_code(error) in ("NoSuchKey", "404", "NotFound")


class S3ObjectHandler(BaseHandler):
    """Keeps the bucket contents in line with the rendered cloud configs."""

    def __init__(self, renderer: Callable[[CustomObject], dict[str, str]] = render_cloud_configs) -> None:
        super().__init__("s3object")
        self.renderer = renderer

    def get_current_state(self, ctx: ControllerContext, obj: CustomObject) -> BucketObjectMap:
        output: BucketObjectMap = {}
        bucket = key.bucket_name(obj, ctx.tenant_account_id())
        aws = ctx.clients.tenant_cluster_aws

        self.log_debug(obj, "looking for S3 objects", bucket=bucket)
        try:
            keys = aws.list_object_keys(bucket)
        except Exception as e:
            # The bucket may already be deleted together with its objects.
            if is_bucket_not_found(e):
                self.log_debug(obj, "S3 object's bucket not found, no current objects present", bucket=bucket)
                return output
            raise

        self.log_debug(obj, f"found {len(keys)} S3 objects", bucket=bucket)
        for object_key in keys:
            body = self._get_object_body(ctx, obj, bucket, object_key)
            if body is None:
                continue
            output[object_key] = BucketObjectState(bucket=bucket, key=object_key, body=body)

        return output

    def _get_object_body(self, ctx: ControllerContext, obj: CustomObject, bucket: str, object_key: str) -> str | None:
        try:
            return ctx.clients.tenant_cluster_aws.get_object_body(bucket, object_key)
        except Exception as e:
            # Deleted between listing and fetching.
            if is_object_not_found(e) or is_bucket_not_found(e):
                self.log_info(obj, f"did not find S3 object '{object_key}'", bucket=bucket)
                return None
            raise

    def get_desired_state(self, ctx: ControllerContext, obj: CustomObject) -> BucketObjectMap | None:
        if obj.deleting:
            return {}

        bucket = key.bucket_name(obj, ctx.tenant_account_id())
        if not ctx.clients.tenant_cluster_aws.bucket_exists(bucket):
            self.cancel(ctx, obj, f"bucket {bucket} not created yet")
            return None

        return {
            object_key: BucketObjectState(bucket=bucket, key=object_key, body=body)
            for object_key, body in self.renderer(obj).items()
        }

    def new_delta(self, obj: CustomObject, current: BucketObjectMap, desired: BucketObjectMap | None) -> Delta:
        if desired is None:
            return Delta()
        return diff_maps(current, desired, equal=lambda a, b: a.body == b.body)

    def apply_create(self, ctx: ControllerContext, obj: CustomObject, change: BucketObjectMap) -> None:
        for state in change.values():
            self.log_info(obj, f"creating S3 object '{state.key}'", reason="ObjectCreated", bucket=state.bucket)
            ctx.clients.tenant_cluster_aws.put_object(state.bucket, state.key, state.body)

    def apply_update(self, ctx: ControllerContext, obj: CustomObject, change: BucketObjectMap) -> None:
        for state in change.values():
            self.log_info(obj, f"updating S3 object '{state.key}'", reason="ObjectUpdated", bucket=state.bucket)
            ctx.clients.tenant_cluster_aws.put_object(state.bucket, state.key, state.body)

    def apply_delete(self, ctx: ControllerContext, obj: CustomObject, change: BucketObjectMap) -> None:
        for state in change.values():
            self.log_info(obj, f"deleting S3 object '{state.key}'", reason="ObjectDeleted", bucket=state.bucket)
            try:
                ctx.clients.tenant_cluster_aws.delete_object(state.bucket, state.key)
            except Exception as e:
                if not is_bucket_not_found(e):
                    raise

"""Handler for the tenant cluster control plane CloudFormation stack."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .. import key
from ..constants import LABEL_CLUSTER, LABEL_ORGANIZATION
from ..controllercontext import ControllerContext
from ..key import CustomObject
from ..services.aws.client import error_code
from ..template import StackTemplateContext, new_stack_template_context, render_stack_template
from ..utils.events import emit_stack_created, emit_stack_deleted, emit_stack_updated
from .base import BaseHandler, Delta

# Statuses of stacks that no longer exist
_GONE_STATUSES = ("DELETE_COMPLETE",)


@dataclass(frozen=True)
class StackState:
    name: str
    template_body: str
    status: str | None = field(default=None, compare=False)


def is_stack_not_found(error: BaseException) -> bool:
    return error_code(error) == "ValidationError" and "does not exist" in str(error)


def is_no_update(error: BaseException) -> bool:
    return error_code(error) == "ValidationError" and "No updates are to be performed" in str(error)


class StackHandler(BaseHandler):
    """Keeps the control plane stack in line with its rendered template."""

    def __init__(self, renderer: Callable[[StackTemplateContext], str] = render_stack_template) -> None:
        super().__init__("stack")
        self.renderer = renderer

    def get_current_state(self, ctx: ControllerContext, obj: CustomObject) -> StackState | None:
        name = key.stack_name(obj)
        aws = ctx.clients.tenant_cluster_aws

        self.log_debug(obj, "looking for stack", stack=name)
        try:
            stack = aws.describe_stack(name)
        except Exception as e:
            if is_stack_not_found(e):
                self.log_debug(obj, "did not find stack", stack=name)
                return None
            raise

        status = stack.get("StackStatus", "")
        if status in _GONE_STATUSES:
            return None
        if status.endswith("_IN_PROGRESS"):
            # Stacks cannot be changed while an operation is running. The
            # next resync picks up once CloudFormation is done.
            self.cancel(ctx, obj, f"stack {name} is in status {status}")
            return StackState(name=name, template_body="", status=status)

        self.log_debug(obj, "found stack", stack=name, status=status)
        return StackState(name=name, template_body=aws.get_stack_template(name), status=status)

    def get_desired_state(self, ctx: ControllerContext, obj: CustomObject) -> StackState | None:
        if obj.deleting:
            return None

        subnet = ctx.status.get("subnet") or obj.subnet
        if not subnet:
            self.cancel(ctx, obj, "subnet not allocated yet")
            return None

        template_ctx = new_stack_template_context(obj, ctx.tenant_account_id(), subnet)
        return StackState(name=key.stack_name(obj), template_body=self.renderer(template_ctx))

    def new_delta(self, obj: CustomObject, current: StackState | None, desired: StackState | None) -> Delta:
        if desired is None:
            if obj.deleting and current is not None:
                return Delta(delete=current)
            return Delta()
        if current is None:
            return Delta(create=desired)
        if current.template_body != desired.template_body:
            return Delta(update=desired)
        return Delta()

    def apply_create(self, ctx: ControllerContext, obj: CustomObject, change: StackState) -> None:
        self.log_info(obj, "creating stack", reason="StackCreated", stack=change.name)
        tags = {
            LABEL_CLUSTER: obj.cluster_id,
            LABEL_ORGANIZATION: obj.organization_id,
        }
        ctx.clients.tenant_cluster_aws.create_stack(change.name, change.template_body, tags)
        emit_stack_created(obj.body, change.name)

    def apply_update(self, ctx: ControllerContext, obj: CustomObject, change: StackState) -> None:
        self.log_info(obj, "updating stack", reason="StackUpdated", stack=change.name)
        try:
            ctx.clients.tenant_cluster_aws.update_stack(change.name, change.template_body)
        except Exception as e:
            if not is_no_update(e):
                raise
            self.log_debug(obj, "stack already up to date", stack=change.name)
            return
        emit_stack_updated(obj.body, change.name)

    def apply_delete(self, ctx: ControllerContext, obj: CustomObject, change: StackState) -> None:
        self.log_info(obj, "deleting stack", reason="StackDeleted", stack=change.name)
        ctx.clients.tenant_cluster_aws.delete_stack(change.name)
        emit_stack_deleted(obj.body, change.name)
        # Deletion runs asynchronously; keep the teardown pass open until the
        # stack is gone.
        self.cancel(ctx, obj, f"waiting for stack {change.name} to be deleted")

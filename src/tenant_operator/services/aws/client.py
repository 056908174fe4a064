"""AWS clients for the control plane and tenant cluster accounts."""

from __future__ import annotations

import json
import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .. import call_api

logger = logging.getLogger(__name__)

_BOTO_CONFIG = Config(
    retries={"max_attempts": 1, "mode": "standard"},
    connect_timeout=10,
    read_timeout=30,
)

# EC2 instance states that still own a private address
_LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped"]


def error_code(error: BaseException) -> str:
    """Return the AWS error code of a ClientError, or an empty string."""
    if isinstance(error, ClientError):
        return str(error.response.get("Error", {}).get("Code", ""))
    return ""


class AWSClients:
    """Typed wrappers over the boto3 clients the handlers need."""

    def __init__(self, region: str, session: boto3.session.Session | None = None) -> None:
        """Initialize AWS clients.

        Args:
            region: AWS region
            session: Optional session carrying non-default credentials
        """
        self.region = region
        self.session = session or boto3.session.Session(region_name=region)

        self.ec2 = self.session.client("ec2", region_name=region, config=_BOTO_CONFIG)
        self.s3 = self.session.client("s3", region_name=region, config=_BOTO_CONFIG)
        self.sts = self.session.client("sts", region_name=region, config=_BOTO_CONFIG)
        self.cloudformation = self.session.client("cloudformation", region_name=region, config=_BOTO_CONFIG)

    def assume_role(self, role_arn: str, session_name: str, region: str | None = None) -> AWSClients:
        """Create clients for another account by assuming a role.

        Args:
            role_arn: ARN of the role to assume
            session_name: Session name recorded in CloudTrail
            region: Region of the new clients (defaults to this region)

        Returns:
            Clients authenticated with the temporary credentials
        """
        response = call_api(
            "aws", "assume_role", self.sts.assume_role,
            RoleArn=role_arn, RoleSessionName=session_name[:64],
        )
        credentials = response["Credentials"]
        region = region or self.region
        session = boto3.session.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=region,
        )
        return AWSClients(region, session=session)

    def get_account_id(self) -> str:
        response = call_api("aws", "get_caller_identity", self.sts.get_caller_identity)
        return response["Account"]

    def find_instance(self, name: str) -> dict[str, Any] | None:
        """Find a live EC2 instance by its Name tag.

        Args:
            name: Value of the Name tag

        Returns:
            Instance description, or None if no live instance carries the name
        """
        response = call_api(
            "aws", "describe_instances", self.ec2.describe_instances,
            Filters=[
                {"Name": "tag:Name", "Values": [name]},
                {"Name": "instance-state-name", "Values": _LIVE_INSTANCE_STATES},
            ],
        )
        instances = [
            instance
            for reservation in response.get("Reservations", [])
            for instance in reservation.get("Instances", [])
        ]
        if not instances:
            return None
        if len(instances) > 1:
            logger.warning(f"Found {len(instances)} instances named {name}, using the first one")
        return instances[0]

    def bucket_exists(self, bucket: str) -> bool:
        try:
            call_api("aws", "head_bucket", self.s3.head_bucket, Bucket=bucket)
            return True
        except ClientError as e:
            if error_code(e) in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise

    def list_object_keys(self, bucket: str) -> list[str]:
        """List all object keys in a bucket.

        Raises:
            ClientError: NoSuchBucket if the bucket does not exist
        """
        keys: list[str] = []
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in call_api("aws", "list_objects_v2", lambda: list(paginator.paginate(Bucket=bucket))):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def get_object_body(self, bucket: str, key: str) -> str:
        response = call_api("aws", "get_object", self.s3.get_object, Bucket=bucket, Key=key)
        return response["Body"].read().decode("utf-8")

    def put_object(self, bucket: str, key: str, body: str) -> None:
        call_api(
            "aws", "put_object", self.s3.put_object,
            Bucket=bucket, Key=key, Body=body.encode("utf-8"), ServerSideEncryption="AES256",
        )

    def delete_object(self, bucket: str, key: str) -> None:
        call_api("aws", "delete_object", self.s3.delete_object, Bucket=bucket, Key=key)

    def describe_stack(self, name: str) -> dict[str, Any]:
        """Describe a CloudFormation stack.

        Raises:
            ClientError: ValidationError if the stack does not exist
        """
        response = call_api("aws", "describe_stacks", self.cloudformation.describe_stacks, StackName=name)
        return response["Stacks"][0]

    def get_stack_template(self, name: str) -> str:
        response = call_api("aws", "get_template", self.cloudformation.get_template, StackName=name)
        body = response["TemplateBody"]
        # Templates submitted as JSON come back parsed
        if not isinstance(body, str):
            body = json.dumps(body, indent=2, sort_keys=True)
        return body

    def create_stack(self, name: str, template_body: str, tags: dict[str, str]) -> None:
        call_api(
            "aws", "create_stack", self.cloudformation.create_stack,
            StackName=name,
            TemplateBody=template_body,
            Capabilities=["CAPABILITY_NAMED_IAM"],
            EnableTerminationProtection=False,
            Tags=[{"Key": k, "Value": v} for k, v in sorted(tags.items())],
        )

    def update_stack(self, name: str, template_body: str) -> None:
        call_api(
            "aws", "update_stack", self.cloudformation.update_stack,
            StackName=name,
            TemplateBody=template_body,
            Capabilities=["CAPABILITY_NAMED_IAM"],
        )

    def delete_stack(self, name: str) -> None:
        call_api("aws", "delete_stack", self.cloudformation.delete_stack, StackName=name)

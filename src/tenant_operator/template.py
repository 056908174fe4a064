"""Static document rendering for stacks and cloud configs.

Renderers are pure functions of their context object. The output format is
stable (sorted keys, fixed indentation) so that a rendered document compares
equal to the same document read back from AWS.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from . import key
from .key import CustomObject

CLOUD_CONFIG_ROLES = ("master", "worker")


@dataclass(frozen=True)
class StackTemplateContext:
    cluster_id: str
    organization_id: str
    bucket_name: str
    subnet: str
    region: str
    api_domain: str
    internal_api_domain: str
    etcd_domain: str
    ingress_domain: str
    cluster_base_domain: str


def new_stack_template_context(obj: CustomObject, account_id: str, subnet: str) -> StackTemplateContext:
    return StackTemplateContext(
        cluster_id=obj.cluster_id,
        organization_id=obj.organization_id,
        bucket_name=key.bucket_name(obj, account_id),
        subnet=subnet,
        region=obj.region,
        api_domain=key.api_domain(obj),
        internal_api_domain=key.internal_api_domain(obj),
        etcd_domain=key.etcd_domain(obj),
        ingress_domain=key.ingress_domain(obj),
        cluster_base_domain=key.cluster_base_domain(obj),
    )


def _alias_record(name: str, zone: str, load_balancer: str) -> dict[str, Any]:
    return {
        "Type": "AWS::Route53::RecordSet",
        "Properties": {
            "AliasTarget": {
                "DNSName": {"Fn::GetAtt": [load_balancer, "DNSName"]},
                "HostedZoneId": {"Fn::GetAtt": [load_balancer, "CanonicalHostedZoneID"]},
                "EvaluateTargetHealth": False,
            },
            "Name": f"{name}.",
            "HostedZoneId": {"Ref": zone},
            "Type": "A",
        },
    }


def _load_balancer(scheme: str, subnet: str) -> dict[str, Any]:
    return {
        "Type": "AWS::ElasticLoadBalancingV2::LoadBalancer",
        "Properties": {
            "Scheme": scheme,
            "Type": "network",
            "Subnets": [{"Ref": "Subnet"}],
            "Tags": [{"Key": "subnet", "Value": subnet}],
        },
    }


def render_stack_template(ctx: StackTemplateContext) -> str:
    """Render the tenant cluster control plane stack.

    The stack owns the VPC subnet allocated for the cluster, the cloud config
    bucket, load balancers and the hosted zones with the API, etcd and
    ingress record sets.
    """
    zone_name = f"{ctx.cluster_base_domain}."
    resources: dict[str, Any] = {
        "VPC": {
            "Type": "AWS::EC2::VPC",
            "Properties": {
                "CidrBlock": ctx.subnet,
                "EnableDnsHostnames": True,
                "EnableDnsSupport": True,
                "Tags": [{"Key": "Name", "Value": ctx.cluster_id}],
            },
        },
        "Subnet": {
            "Type": "AWS::EC2::Subnet",
            "Properties": {
                "CidrBlock": ctx.subnet,
                "VpcId": {"Ref": "VPC"},
                "Tags": [{"Key": "Name", "Value": f"{ctx.cluster_id}-private"}],
            },
        },
        "CloudConfigBucket": {
            "Type": "AWS::S3::Bucket",
            "Properties": {"BucketName": ctx.bucket_name},
        },
        "ApiLoadBalancer": _load_balancer("internet-facing", ctx.subnet),
        "ApiInternalLoadBalancer": _load_balancer("internal", ctx.subnet),
        "EtcdLoadBalancer": _load_balancer("internal", ctx.subnet),
        "IngressLoadBalancer": _load_balancer("internet-facing", ctx.subnet),
        "HostedZone": {
            "Type": "AWS::Route53::HostedZone",
            "Properties": {"Name": zone_name},
        },
        "InternalHostedZone": {
            "Type": "AWS::Route53::HostedZone",
            "Properties": {
                "Name": zone_name,
                "HostedZoneConfig": {"Comment": "Internal hosted zone for internal network"},
                "VPCs": [{"VPCId": {"Ref": "VPC"}, "VPCRegion": ctx.region}],
            },
        },
        "ApiRecordSet": _alias_record(ctx.api_domain, "HostedZone", "ApiLoadBalancer"),
        "ApiPublicInternalRecordSet": _alias_record(
            ctx.internal_api_domain, "HostedZone", "ApiInternalLoadBalancer"
        ),
        "ApiPrivateInternalRecordSet": _alias_record(
            ctx.api_domain, "InternalHostedZone", "ApiInternalLoadBalancer"
        ),
        "EtcdInternalRecordSet": _alias_record(ctx.etcd_domain, "InternalHostedZone", "EtcdLoadBalancer"),
        "EtcdRecordSet": _alias_record(ctx.etcd_domain, "HostedZone", "EtcdLoadBalancer"),
        "IngressRecordSet": _alias_record(ctx.ingress_domain, "HostedZone", "IngressLoadBalancer"),
        "IngressWildcardRecordSet": {
            "Type": "AWS::Route53::RecordSet",
            "Properties": {
                "Name": f"*.{ctx.cluster_base_domain}.",
                "HostedZoneId": {"Ref": "HostedZone"},
                "TTL": "300",
                "Type": "CNAME",
                "ResourceRecords": [{"Ref": "IngressRecordSet"}],
            },
        },
    }

    template = {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Description": f"Tenant cluster control plane for {ctx.cluster_id}",
        "Resources": resources,
        "Outputs": {
            "VPCID": {"Value": {"Ref": "VPC"}},
            "SubnetCIDR": {"Value": ctx.subnet},
        },
    }
    return json.dumps(template, indent=2, sort_keys=True)


def render_cloud_configs(obj: CustomObject) -> dict[str, str]:
    """Render the cloud configs nodes of a tenant cluster boot from.

    Returns:
        Mapping of bucket object key to document body
    """
    configs = {}
    for role in CLOUD_CONFIG_ROLES:
        document = {
            "role": role,
            "cluster": obj.cluster_id,
            "organization": obj.organization_id,
            "version": obj.version,
            "apiServer": f"https://{key.api_domain(obj)}",
            "etcdServer": f"https://{key.etcd_domain(obj)}:2379",
        }
        configs[key.bucket_object_key(obj, role)] = json.dumps(document, indent=2, sort_keys=True)
    return configs

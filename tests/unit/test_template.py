"""Tests for stack template and cloud config rendering."""

from __future__ import annotations

import json

from tenant_operator.template import (
    CLOUD_CONFIG_ROLES,
    new_stack_template_context,
    render_cloud_configs,
    render_stack_template,
)


class TestRenderStackTemplate:
    """Test the control plane stack template."""

    def test_deterministic(self, cluster):
        ctx = new_stack_template_context(cluster, "123456789012", "10.0.0.0/24")

        assert render_stack_template(ctx) == render_stack_template(ctx)

    def test_network_and_bucket(self, cluster):
        ctx = new_stack_template_context(cluster, "123456789012", "10.0.0.0/24")

        resources = json.loads(render_stack_template(ctx))["Resources"]

        assert resources["VPC"]["Properties"]["CidrBlock"] == "10.0.0.0/24"
        assert resources["Subnet"]["Properties"]["CidrBlock"] == "10.0.0.0/24"
        assert resources["CloudConfigBucket"]["Properties"]["BucketName"] == "123456789012-g8s-abc12"

    def test_record_sets(self, cluster):
        """Test that API, etcd and ingress names are published."""
        ctx = new_stack_template_context(cluster, "123456789012", "10.0.0.0/24")

        resources = json.loads(render_stack_template(ctx))["Resources"]
        names = {
            resource["Properties"]["Name"]
            for resource in resources.values()
            if resource["Type"] == "AWS::Route53::RecordSet"
        }

        assert names == {
            "api.abc12.k8s.example.com.",
            "internal-api.abc12.k8s.example.com.",
            "etcd.abc12.k8s.example.com.",
            "ingress.abc12.k8s.example.com.",
            "*.abc12.k8s.example.com.",
        }
        assert resources["InternalHostedZone"]["Properties"]["VPCs"][0]["VPCRegion"] == "eu-central-1"


class TestRenderCloudConfigs:
    def test_one_config_per_role(self, cluster):
        configs = render_cloud_configs(cluster)

        assert sorted(configs) == sorted(f"version/2.0.0/cloudconfig/{role}" for role in CLOUD_CONFIG_ROLES)
        master = json.loads(configs["version/2.0.0/cloudconfig/master"])
        assert master["apiServer"] == "https://api.abc12.k8s.example.com"
        assert master["role"] == "master"

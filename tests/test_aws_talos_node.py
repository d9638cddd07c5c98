"""Tests for the Talos EC2 node component."""

from unittest.mock import MagicMock, patch

import pulumi
import pytest

import homelab
from homelab.pulumi_resources.aws_talos_node import (
    AwsTalosNode,
    _build_ami_filters,
    _build_egress_rules,
    _build_ingress_rules,
)

from conftest import TALOS_AMI_ID


def _make_node_mock(name: str = "talos-homelab") -> MagicMock:
    m = MagicMock()
    m.name = name
    m.tags = homelab.required_tags(name)
    m.allowed_cidrs = ["203.0.113.10/32"]
    m.instance_type = "t3a.medium"
    m.root_volume_size = 20
    m.talos_version = "v1.12"
    m.instance_profile = MagicMock(spec=pulumi.CustomResource)
    m.instance_profile.name = f"{name}-instance-profile"
    return m


def test_ingress_rules_open_talos_and_kubernetes_apis_only() -> None:
    rules = _build_ingress_rules(["203.0.113.10/32", "198.51.100.0/24"])

    assert len(rules) == 2
    assert {r["from_port"] for r in rules} == {50000, 6443}
    for rule in rules:
        assert rule["protocol"] == "tcp"
        assert rule["from_port"] == rule["to_port"]
        assert rule["cidr_blocks"] == ["203.0.113.10/32", "198.51.100.0/24"]


def test_ingress_rules_require_cidrs() -> None:
    with pytest.raises(ValueError, match="allowed_cidrs must not be empty"):
        _build_ingress_rules([])


def test_egress_rules_allow_everything() -> None:
    rules = _build_egress_rules()

    assert len(rules) == 1
    assert rules[0]["protocol"] == "-1"
    assert rules[0]["cidr_blocks"] == ["0.0.0.0/0"]


def test_ami_filters() -> None:
    filters = {f.name: f.values for f in _build_ami_filters()}

    assert filters == {"architecture": ["x86_64"], "virtualization-type": ["hvm"]}


def test_ami_lookup_is_owned_by_sidero_labs() -> None:
    mock = _make_node_mock()
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_ami(mock)

        _, kwargs = mock_aws.ec2.get_ami_output.call_args
        assert kwargs["owners"] == ["540036508848"]
        assert kwargs["most_recent"] is True
        assert kwargs["opts"].parent is mock
        mock_aws.ec2.GetAmiFilterArgs.assert_any_call(name="name", values=["talos-v1.12*"])


def test_security_group_uses_allowed_cidrs() -> None:
    mock = _make_node_mock()
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_security_group(mock)

        assert mock_aws.ec2.SecurityGroupIngressArgs.call_count == 2
        for c in mock_aws.ec2.SecurityGroupIngressArgs.call_args_list:
            assert c.kwargs["cidr_blocks"] == ["203.0.113.10/32"]
        assert mock_aws.ec2.SecurityGroupEgressArgs.call_count == 1


def test_instance_requires_imdsv2() -> None:
    mock = _make_node_mock()
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_instance(mock)

        mock_aws.ec2.InstanceMetadataOptionsArgs.assert_called_once_with(
            http_tokens="required",
            http_endpoint="enabled",
        )


def test_instance_root_volume() -> None:
    mock = _make_node_mock()
    mock.root_volume_size = 40
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_instance(mock)

        _, kwargs = mock_aws.ec2.InstanceRootBlockDeviceArgs.call_args
        assert kwargs["volume_size"] == 40
        assert kwargs["volume_type"] == "gp3"
        assert kwargs["delete_on_termination"] is True


def test_instance_waits_for_instance_profile() -> None:
    mock = _make_node_mock()
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_instance(mock)

        _, kwargs = mock_aws.ec2.Instance.call_args
        assert kwargs["opts"].depends_on == [mock.instance_profile]


def test_eip_is_associated_with_instance() -> None:
    mock = _make_node_mock()
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_instance(mock)

        _, kwargs = mock_aws.ec2.EipAssociation.call_args
        assert kwargs["instance_id"] == mock_aws.ec2.Instance.return_value.id
        assert kwargs["allocation_id"] == mock_aws.ec2.Eip.return_value.id


def test_node_role_policies() -> None:
    mock = _make_node_mock()
    with patch("homelab.pulumi_resources.aws_talos_node.aws") as mock_aws:
        AwsTalosNode._define_iam(mock)

        names = [c.args[0] for c in mock_aws.iam.RolePolicy.call_args_list]
        assert names == ["talos-homelab-ebs-csi-policy", "talos-homelab-cloudwatch-logs-policy"]
        assert mock_aws.iam.InstanceProfile.call_count == 1


@pulumi.runtime.test
def test_talos_node(pulumi_mocks):
    pulumi.runtime.set_mocks(pulumi_mocks(), preview=False)

    node = AwsTalosNode(
        "talos-homelab",
        vpc_id="vpc-1234",
        subnet_id="subnet-1234",
        instance_type="t3a.medium",
        root_volume_size=20,
        allowed_cidrs=["203.0.113.10/32"],
        talos_version="v1.12",
        tags=homelab.required_tags("talos-homelab"),
    )

    def check(args):
        ami, instance_type, subnet_id, sg_name, tags = args
        assert ami == TALOS_AMI_ID
        assert instance_type == "t3a.medium"
        assert subnet_id == "subnet-1234"
        assert sg_name == "talos-homelab-sg"
        assert tags["Name"] == "talos-homelab-node"
        assert tags["ManagedBy"] == "pulumi"

    pulumi.Output.all(
        node.instance.ami,
        node.instance.instance_type,
        node.instance.subnet_id,
        node.security_group.name,
        node.instance.tags,
    ).apply(check)

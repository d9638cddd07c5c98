import json
import typing

import pulumi
import pulumi_aws as aws

import homelab
import homelab.aws_iam

INGRESS_PORTS: dict[int, str] = {
    homelab.TALOS_API_PORT: "Talos API (talosctl)",
    homelab.KUBERNETES_API_PORT: "Kubernetes API",
}


def _build_ingress_rules(allowed_cidrs: typing.Sequence[str]) -> list[dict[str, typing.Any]]:
    if len(allowed_cidrs) == 0:
        msg = "allowed_cidrs must not be empty"
        raise ValueError(msg)

    return [
        {
            "description": description,
            "protocol": "tcp",
            "from_port": port,
            "to_port": port,
            "cidr_blocks": list(allowed_cidrs),
        }
        for port, description in INGRESS_PORTS.items()
    ]


def _build_egress_rules() -> list[dict[str, typing.Any]]:
    return [
        {
            "description": "All outbound",
            "protocol": "-1",
            "from_port": 0,
            "to_port": 0,
            "cidr_blocks": [homelab.OPEN_CIDR],
        }
    ]


def _build_ami_filters() -> list[aws.ec2.GetAmiFilterArgs]:
    return [
        aws.ec2.GetAmiFilterArgs(name="architecture", values=["x86_64"]),
        aws.ec2.GetAmiFilterArgs(name="virtualization-type", values=["hvm"]),
    ]


class AwsTalosNode(pulumi.ComponentResource):
    """The single Talos Linux EC2 node, its security group, IAM and Elastic IP."""

    tags: dict[str, str]
    name: str
    vpc_id: str | pulumi.Output[str]
    subnet_id: str | pulumi.Output[str]
    instance_type: str
    root_volume_size: int
    allowed_cidrs: list[str]
    talos_version: str

    ami: pulumi.Output[aws.ec2.GetAmiResult]
    security_group: aws.ec2.SecurityGroup
    role: aws.iam.Role
    instance_profile: aws.iam.InstanceProfile
    eip: aws.ec2.Eip
    instance: aws.ec2.Instance
    eip_association: aws.ec2.EipAssociation

    def __init__(
        self,
        name: str,
        vpc_id: str | pulumi.Output[str],
        subnet_id: str | pulumi.Output[str],
        instance_type: str,
        root_volume_size: int,
        allowed_cidrs: list[str],
        talos_version: str,
        tags: dict[str, str],
        *args,
        **kwargs,
    ):
        super().__init__(
            f"homelab:{self.__class__.__name__}",
            name,
            *args,
            **kwargs,
        )

        self.tags = tags
        self.name = name
        self.vpc_id = vpc_id
        self.subnet_id = subnet_id
        self.instance_type = instance_type
        self.root_volume_size = root_volume_size
        self.allowed_cidrs = allowed_cidrs
        self.talos_version = talos_version

        self._define_ami()
        self._define_security_group()
        self._define_iam()
        self._define_instance()

        self.register_outputs(
            {
                "instance_id": self.instance.id,
                "private_ip": self.instance.private_ip,
                "public_ip": self.eip.public_ip,
            }
        )

    @property
    def public_ip(self) -> pulumi.Output[str]:
        """The Elastic IP; what clients connect to."""
        return self.eip.public_ip

    @property
    def private_ip(self) -> pulumi.Output[str]:
        """The VPC address; what the Talos node recognises as itself."""
        return self.instance.private_ip

    def _define_ami(self):
        self.ami = aws.ec2.get_ami_output(
            most_recent=True,
            owners=[homelab.SIDERO_LABS_ACCOUNT_ID],
            filters=[
                aws.ec2.GetAmiFilterArgs(name="name", values=[f"talos-{self.talos_version}*"]),
                *_build_ami_filters(),
            ],
            opts=pulumi.InvokeOptions(parent=self),
        )

    def _define_security_group(self):
        self.security_group = aws.ec2.SecurityGroup(
            f"{self.name}-sg",
            name=f"{self.name}-sg",
            vpc_id=self.vpc_id,
            description="Talos single-node cluster",
            ingress=[aws.ec2.SecurityGroupIngressArgs(**rule) for rule in _build_ingress_rules(self.allowed_cidrs)],
            egress=[aws.ec2.SecurityGroupEgressArgs(**rule) for rule in _build_egress_rules()],
            tags=homelab.name_tags(self.tags, f"{self.name}-sg"),
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_iam(self):
        self.role = aws.iam.Role(
            f"{self.name}-instance-role",
            assume_role_policy=json.dumps(homelab.aws_iam.ec2_assume_role_policy()),
            tags=homelab.name_tags(self.tags, f"{self.name}-instance-role"),
            opts=pulumi.ResourceOptions(parent=self),
        )

        aws.iam.RolePolicy(
            f"{self.name}-ebs-csi-policy",
            role=self.role.id,
            policy=json.dumps(homelab.aws_iam.ebs_csi_policy()),
            opts=pulumi.ResourceOptions(parent=self.role),
        )

        # Fluent Bit ships node logs to CloudWatch with the instance credentials.
        aws.iam.RolePolicy(
            f"{self.name}-cloudwatch-logs-policy",
            role=self.role.id,
            policy=json.dumps(homelab.aws_iam.cloudwatch_logs_policy()),
            opts=pulumi.ResourceOptions(parent=self.role),
        )

        self.instance_profile = aws.iam.InstanceProfile(
            f"{self.name}-instance-profile",
            role=self.role.name,
            tags=homelab.name_tags(self.tags, f"{self.name}-instance-profile"),
            opts=pulumi.ResourceOptions(parent=self.role),
        )

    def _define_instance(self):
        self.eip = aws.ec2.Eip(
            f"{self.name}-eip",
            domain="vpc",
            tags=homelab.name_tags(self.tags, f"{self.name}-eip"),
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.instance = aws.ec2.Instance(
            f"{self.name}-node",
            aws.ec2.InstanceArgs(
                ami=self.ami.id,
                instance_type=self.instance_type,
                subnet_id=self.subnet_id,
                vpc_security_group_ids=[self.security_group.id],
                iam_instance_profile=self.instance_profile.name,
                root_block_device=aws.ec2.InstanceRootBlockDeviceArgs(
                    volume_size=self.root_volume_size,
                    volume_type="gp3",
                    delete_on_termination=True,
                    tags=homelab.name_tags(self.tags, f"{self.name}-root"),
                ),
                metadata_options=aws.ec2.InstanceMetadataOptionsArgs(
                    http_tokens="required",
                    http_endpoint="enabled",
                ),
                tags=homelab.name_tags(self.tags, f"{self.name}-node"),
            ),
            opts=pulumi.ResourceOptions(parent=self, depends_on=[self.instance_profile]),
        )

        self.eip_association = aws.ec2.EipAssociation(
            f"{self.name}-eip-assoc",
            instance_id=self.instance.id,
            allocation_id=self.eip.id,
            opts=pulumi.ResourceOptions(parent=self.eip),
        )

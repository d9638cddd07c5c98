from __future__ import annotations

import typing

import homelab

IAM_POLICY_VERSION = "2012-10-17"

EBS_CSI_ACTIONS = (
    "ec2:CreateSnapshot",
    "ec2:AttachVolume",
    "ec2:DetachVolume",
    "ec2:ModifyVolume",
    "ec2:DescribeAvailabilityZones",
    "ec2:DescribeInstances",
    "ec2:DescribeSnapshots",
    "ec2:DescribeTags",
    "ec2:DescribeVolumes",
    "ec2:DescribeVolumesModifications",
    "ec2:CreateVolume",
    "ec2:DeleteVolume",
    "ec2:DeleteSnapshot",
    "ec2:CreateTags",
    "ec2:DeleteTags",
)

BACKUP_BUCKET_ACTIONS = (
    "s3:PutObject",
    "s3:GetObject",
    "s3:ListBucket",
)

CLOUDWATCH_LOGS_ACTIONS = (
    "logs:CreateLogGroup",
    "logs:CreateLogStream",
    "logs:PutLogEvents",
    "logs:DescribeLogGroups",
    "logs:DescribeLogStreams",
)


def _policy(*statements: dict[str, typing.Any]) -> dict[str, typing.Any]:
    return {"Version": IAM_POLICY_VERSION, "Statement": list(statements)}


def ec2_assume_role_policy() -> dict[str, typing.Any]:
    return _policy(
        {
            "Effect": "Allow",
            "Principal": {"Service": "ec2.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    )


def ebs_csi_policy() -> dict[str, typing.Any]:
    """Volume lifecycle permissions the EBS CSI driver needs on the node role."""
    return _policy(
        {
            "Effect": "Allow",
            "Action": list(EBS_CSI_ACTIONS),
            "Resource": "*",
        }
    )


def bucket_arn(bucket_name: str) -> str:
    return f"arn:aws:s3:::{bucket_name}"


def backup_bucket_policy(bucket_name: str) -> dict[str, typing.Any]:
    return _policy(
        {
            "Effect": "Allow",
            "Action": list(BACKUP_BUCKET_ACTIONS),
            "Resource": [
                bucket_arn(bucket_name),
                f"{bucket_arn(bucket_name)}/*",
            ],
        }
    )


def log_group_arn(
    prefix: str = homelab.LOG_GROUP_PREFIX,
    region: str = homelab.AWS_REGION,
) -> str:
    # Example: arn:aws:logs:us-east-1:*:log-group:/talos-homelab/*
    return f"arn:aws:logs:{region}:*:log-group:{prefix.rstrip('/')}/*"


def cloudwatch_logs_policy(
    prefix: str = homelab.LOG_GROUP_PREFIX,
    region: str = homelab.AWS_REGION,
) -> dict[str, typing.Any]:
    return _policy(
        {
            "Effect": "Allow",
            "Action": list(CLOUDWATCH_LOGS_ACTIONS),
            "Resource": log_group_arn(prefix, region),
        }
    )

import homelab.aws_iam


def test_ec2_assume_role_policy() -> None:
    policy = homelab.aws_iam.ec2_assume_role_policy()

    assert policy["Version"] == "2012-10-17"
    assert len(policy["Statement"]) == 1
    assert policy["Statement"][0]["Principal"] == {"Service": "ec2.amazonaws.com"}
    assert policy["Statement"][0]["Action"] == "sts:AssumeRole"


def test_ebs_csi_policy_covers_volume_lifecycle() -> None:
    statement = homelab.aws_iam.ebs_csi_policy()["Statement"][0]

    assert statement["Resource"] == "*"
    for action in ("ec2:CreateVolume", "ec2:AttachVolume", "ec2:DetachVolume", "ec2:DeleteVolume"):
        assert action in statement["Action"]
    assert len(statement["Action"]) == len(set(statement["Action"]))


def test_backup_bucket_policy_is_scoped_to_bucket() -> None:
    statement = homelab.aws_iam.backup_bucket_policy("talos-homelab-etcd-backups")["Statement"][0]

    assert sorted(statement["Action"]) == ["s3:GetObject", "s3:ListBucket", "s3:PutObject"]
    assert statement["Resource"] == [
        "arn:aws:s3:::talos-homelab-etcd-backups",
        "arn:aws:s3:::talos-homelab-etcd-backups/*",
    ]


def test_log_group_arn() -> None:
    assert homelab.aws_iam.log_group_arn() == "arn:aws:logs:us-east-1:*:log-group:/talos-homelab/*"
    assert homelab.aws_iam.log_group_arn("/other/", "us-west-2") == "arn:aws:logs:us-west-2:*:log-group:/other/*"


def test_cloudwatch_logs_policy() -> None:
    statement = homelab.aws_iam.cloudwatch_logs_policy()["Statement"][0]

    assert statement["Resource"] == homelab.aws_iam.log_group_arn()
    assert "logs:PutLogEvents" in statement["Action"]
    assert "logs:CreateLogStream" in statement["Action"]

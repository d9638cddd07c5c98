from __future__ import annotations

import json

import pulumi
import pulumi_aws as aws

import homelab
import homelab.aws_iam

BACKUP_EXPIRATION_DAYS = 30
NONCURRENT_VERSION_EXPIRATION_DAYS = 7


class AwsBackupBucket(pulumi.ComponentResource):
    """Versioned, encrypted, private S3 bucket for etcd snapshots.

    The hardening resources are declared unconditionally; nothing in the
    cluster config can turn them off.
    """

    name: str
    bucket_name: str
    tags: dict[str, str]

    bucket: aws.s3.BucketV2
    versioning: aws.s3.BucketVersioningV2
    lifecycle: aws.s3.BucketLifecycleConfigurationV2
    encryption: aws.s3.BucketServerSideEncryptionConfigurationV2
    public_access_block: aws.s3.BucketPublicAccessBlock

    def __init__(
        self,
        name: str,
        bucket_name: str,
        tags: dict[str, str],
        *args,
        **kwargs,
    ):
        super().__init__(f"homelab:{self.__class__.__name__}", name, *args, **kwargs)

        self.name = name
        self.bucket_name = bucket_name
        self.tags = tags

        self._define_bucket()
        self._define_versioning()
        self._define_lifecycle()
        self._define_encryption()
        self._define_public_access_block()

        self.register_outputs({"bucket": self.bucket.bucket})

    def _define_bucket(self):
        self.bucket = aws.s3.BucketV2(
            f"{self.name}-bucket",
            bucket=self.bucket_name,
            tags=homelab.name_tags(self.tags, self.bucket_name),
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_versioning(self):
        self.versioning = aws.s3.BucketVersioningV2(
            f"{self.name}-versioning",
            bucket=self.bucket.id,
            versioning_configuration=aws.s3.BucketVersioningV2VersioningConfigurationArgs(
                status="Enabled",
            ),
            opts=pulumi.ResourceOptions(parent=self.bucket),
        )

    def _define_lifecycle(self):
        self.lifecycle = aws.s3.BucketLifecycleConfigurationV2(
            f"{self.name}-lifecycle",
            bucket=self.bucket.id,
            rules=[
                aws.s3.BucketLifecycleConfigurationV2RuleArgs(
                    id="expire-old-backups",
                    status="Enabled",
                    expiration=aws.s3.BucketLifecycleConfigurationV2RuleExpirationArgs(
                        days=BACKUP_EXPIRATION_DAYS,
                    ),
                    noncurrent_version_expiration=aws.s3.BucketLifecycleConfigurationV2RuleNoncurrentVersionExpirationArgs(
                        noncurrent_days=NONCURRENT_VERSION_EXPIRATION_DAYS,
                    ),
                )
            ],
            opts=pulumi.ResourceOptions(parent=self.bucket, depends_on=[self.versioning]),
        )

    def _define_encryption(self):
        self.encryption = aws.s3.BucketServerSideEncryptionConfigurationV2(
            f"{self.name}-sse",
            bucket=self.bucket.id,
            rules=[
                aws.s3.BucketServerSideEncryptionConfigurationV2RuleArgs(
                    apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationV2RuleApplyServerSideEncryptionByDefaultArgs(
                        sse_algorithm="AES256",
                    ),
                )
            ],
            opts=pulumi.ResourceOptions(parent=self.bucket),
        )

    def _define_public_access_block(self):
        self.public_access_block = aws.s3.BucketPublicAccessBlock(
            f"{self.name}-public-access",
            bucket=self.bucket.id,
            block_public_acls=True,
            block_public_policy=True,
            ignore_public_acls=True,
            restrict_public_buckets=True,
            opts=pulumi.ResourceOptions(parent=self.bucket),
        )

    def grant_read_write(self, role: aws.iam.Role, opts: pulumi.ResourceOptions | None = None) -> aws.iam.RolePolicy:
        """Let ``role`` put, get and list objects in this bucket and nowhere else."""
        return define_bucket_role_policy(f"{self.name}-policy", self.bucket, role, opts=opts)


def define_bucket_role_policy(
    name: str,
    bucket: aws.s3.BucketV2,
    role: aws.iam.Role,
    opts: pulumi.ResourceOptions | None = None,
) -> aws.iam.RolePolicy:
    if opts is None:
        opts = pulumi.ResourceOptions()

    return aws.iam.RolePolicy(
        name,
        role=role.id,
        policy=bucket.bucket.apply(lambda b: json.dumps(homelab.aws_iam.backup_bucket_policy(b))),
        opts=pulumi.ResourceOptions.merge(opts, pulumi.ResourceOptions(parent=bucket)),
    )

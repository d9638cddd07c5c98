from __future__ import annotations

import enum

AWS_REGION = "us-east-1"
AWS_AVAILABILITY_ZONE = "us-east-1a"

DEFAULT_CLUSTER_NAME = "talos-homelab"
DEFAULT_INSTANCE_TYPE = "t3a.medium"
DEFAULT_ROOT_VOLUME_SIZE = 20
DEFAULT_TALOS_VERSION = "v1.12"
DEFAULT_REPO_CREDS_URL = "https://github.com/faulty-technology"
OPEN_CIDR = "0.0.0.0/0"

VPC_CIDR = "10.0.0.0/16"
PUBLIC_SUBNET_CIDR = "10.0.1.0/24"

# Sidero Labs publishes the official Talos AMIs from this account.
SIDERO_LABS_ACCOUNT_ID = "540036508848"

TALOS_API_PORT = 50000
KUBERNETES_API_PORT = 6443
KUBEPRISM_PORT = 7445
AWS_TIME_SERVER = "169.254.169.123"

BOOTSTRAP_TIMEOUT = "10m"
ARGOCD_HELM_TIMEOUT_SECONDS = 300

ARGOCD_NAMESPACE = "argocd"
CLOUDFLARED_NAMESPACE = "cloudflared"
LOGGING_NAMESPACE = "logging"
NEWRELIC_NAMESPACE = "newrelic"

ARGOCD_CHART = "argo-cd"
ARGOCD_CHART_REPO = "https://argoproj.github.io/argo-helm"
ARGOCD_INITIAL_ADMIN_SECRET = "argocd-initial-admin-secret"  # noqa: S105

LOG_GROUP_PREFIX = "/talos-homelab"

POD_SECURITY_ENFORCE_LABEL = "pod-security.kubernetes.io/enforce"
ARGOCD_SECRET_TYPE_LABEL = "argocd.argoproj.io/secret-type"  # noqa: S105


class TagKeys(enum.StrEnum):
    MANAGED_BY = "ManagedBy"
    NAME = "Name"
    PROJECT = "Project"


class MachineType(enum.StrEnum):
    CONTROLPLANE = "controlplane"


class PodSecurityLevel(enum.StrEnum):
    PRIVILEGED = "privileged"


def required_tags(cluster_name: str) -> dict[str, str]:
    return {
        str(TagKeys.PROJECT): cluster_name,
        str(TagKeys.MANAGED_BY): "pulumi",
    }


def name_tags(tags: dict[str, str], name: str) -> dict[str, str]:
    return tags | {str(TagKeys.NAME): name}

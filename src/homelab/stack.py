from __future__ import annotations

import pulumi

import homelab
import homelab.config
import homelab.paths
import homelab.pulumi_resources
import homelab.pulumi_resources.aws_bucket
import homelab.pulumi_resources.aws_talos_node
import homelab.pulumi_resources.aws_vpc
import homelab.pulumi_resources.kubernetes_bootstrap
import homelab.pulumi_resources.local_config
import homelab.pulumi_resources.talos_cluster


class HomelabStack(pulumi.ComponentResource):
    """The whole single-node cluster, in dependency order.

    AWS network and node, then the Talos bootstrap sequence against the node,
    then Kubernetes bootstrap against the retrieved kubeconfig. The backup
    bucket only depends on the node role and is created alongside the node.
    """

    cfg: homelab.config.HomelabConfig
    paths: homelab.paths.Paths

    network: homelab.pulumi_resources.aws_vpc.AwsVpc
    node: homelab.pulumi_resources.aws_talos_node.AwsTalosNode
    backup_bucket: homelab.pulumi_resources.aws_bucket.AwsBackupBucket
    talos: homelab.pulumi_resources.talos_cluster.TalosCluster
    kubernetes: homelab.pulumi_resources.kubernetes_bootstrap.KubernetesBootstrap
    local_config: homelab.pulumi_resources.local_config.LocalConfigFiles

    @classmethod
    def autoload(cls) -> HomelabStack:
        return cls(cfg=homelab.config.load_config())

    def __init__(
        self,
        cfg: homelab.config.HomelabConfig,
        paths: homelab.paths.Paths | None = None,
        *args,
        **kwargs,
    ):
        super().__init__(
            f"homelab:{self.__class__.__name__}",
            cfg.cluster_name,
            *args,
            **kwargs,
        )

        self.cfg = cfg
        self.paths = paths or homelab.paths.Paths()

        pulumi.log.info(
            f"Declaring {cfg.cluster_name}: {cfg.instance_type} node, {cfg.root_volume_size}GB root volume, "
            f"API access from {', '.join(cfg.allowed_cidrs)}"
        )

        self._define_network()
        self._define_node()
        self._define_backup_bucket()
        self._define_talos()
        self._define_kubernetes()
        self._define_local_config()

        self.register_outputs(self.outputs)

    @property
    def outputs(self) -> dict[str, pulumi.Input[str]]:
        return {
            "nodePublicIp": self.node.public_ip,
            "nodePrivateIp": self.node.private_ip,
            "nodeInstanceId": self.node.instance.id,
            "vpcId": self.network.vpc.id,
            "subnetId": self.network.subnet.id,
            "securityGroupId": self.node.security_group.id,
            "talosAmiId": self.node.ami.id,
            "talosAmiName": self.node.ami.name,
            "etcdBackupBucketName": self.backup_bucket.bucket.bucket,
            "region": homelab.AWS_REGION,
            "availabilityZone": homelab.AWS_AVAILABILITY_ZONE,
            "argocdAdminPassword": self.kubernetes.argocd.admin_password,
        }

    def _define_network(self):
        self.network = homelab.pulumi_resources.aws_vpc.AwsVpc(
            self.cfg.cluster_name,
            tags=self.cfg.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_node(self):
        self.node = homelab.pulumi_resources.aws_talos_node.AwsTalosNode(
            self.cfg.cluster_name,
            vpc_id=self.network.vpc.id,
            subnet_id=self.network.subnet.id,
            instance_type=self.cfg.instance_type,
            root_volume_size=self.cfg.root_volume_size,
            allowed_cidrs=self.cfg.allowed_cidrs,
            talos_version=self.cfg.talos_version,
            tags=self.cfg.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_backup_bucket(self):
        self.backup_bucket = homelab.pulumi_resources.aws_bucket.AwsBackupBucket(
            f"{self.cfg.cluster_name}-etcd-backup",
            bucket_name=self.cfg.backup_bucket_name,
            tags=self.cfg.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )
        self.backup_bucket.grant_read_write(self.node.role)

    def _define_talos(self):
        # Talos is only reachable on the Elastic IP once it is associated.
        self.talos = homelab.pulumi_resources.talos_cluster.TalosCluster(
            f"{self.cfg.cluster_name}-talos",
            cluster_name=self.cfg.cluster_name,
            talos_version=self.cfg.talos_version,
            public_ip=homelab.pulumi_resources.after(self.node.eip_association, self.node.public_ip),
            private_ip=self.node.private_ip,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_kubernetes(self):
        self.kubernetes = homelab.pulumi_resources.kubernetes_bootstrap.KubernetesBootstrap(
            f"{self.cfg.cluster_name}-k8s",
            kubeconfig=self.talos.kubeconfig_raw,
            credentials=self.cfg.credentials,
            repo_creds_url=self.cfg.repo_creds_url,
            argocd_chart_version=self.cfg.argocd_chart_version,
            paths=self.paths,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_local_config(self):
        self.local_config = homelab.pulumi_resources.local_config.LocalConfigFiles(
            f"{self.cfg.cluster_name}-local-config",
            talosconfig=self.talos.talosconfig,
            kubeconfig=self.talos.kubeconfig_raw,
            paths=self.paths,
            opts=pulumi.ResourceOptions(parent=self),
        )

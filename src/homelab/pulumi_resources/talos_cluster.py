import typing

import pulumi
import pulumiverse_talos as talos
import yaml

import homelab


def cluster_endpoint(public_ip: str) -> str:
    return f"https://{public_ip}:{homelab.KUBERNETES_API_PORT}"


def build_config_patch(public_ip: str) -> dict[str, typing.Any]:
    """Single-node machine config overlay.

    Workloads may schedule on the control plane, the Elastic IP is a valid
    API server SAN, time comes from the Amazon Time Sync Service, and
    KubePrism fronts the API server locally.
    """
    return {
        "cluster": {
            "allowSchedulingOnControlPlanes": True,
        },
        "machine": {
            "certSANs": [public_ip],
            "time": {
                "servers": [homelab.AWS_TIME_SERVER],
            },
            "features": {
                "kubePrism": {
                    "enabled": True,
                    "port": homelab.KUBEPRISM_PORT,
                },
            },
        },
    }


def render_config_patch(public_ip: str) -> str:
    return yaml.safe_dump(build_config_patch(public_ip), sort_keys=False)


class TalosCluster(pulumi.ComponentResource):
    """Bootstraps a single Talos control-plane node.

    Every stage consumes the previous one: secrets feed all later calls, the
    applied config gates bootstrap, bootstrap gates the health check, and the
    health check's endpoint feeds kubeconfig retrieval. Nothing is retried; a
    failed stage fails the run and the next ``pulumi up`` resumes from state.

    Talos is addressed with two different values: ``endpoint`` is the public
    Elastic IP we connect to, ``node`` is the private IP the node knows itself
    by.
    """

    name: str
    cluster_name: str
    talos_version: str
    public_ip: pulumi.Output[str]
    private_ip: pulumi.Output[str]

    secrets: talos.machine.Secrets
    config_patch: pulumi.Output[str]
    machine_configuration: pulumi.Output[talos.machine.GetConfigurationResult]
    configuration_apply: talos.machine.ConfigurationApply
    bootstrap: talos.machine.Bootstrap
    health: pulumi.Output[talos.cluster.GetHealthResult]
    kubeconfig: talos.cluster.Kubeconfig
    client_configuration: pulumi.Output[talos.client.GetConfigurationResult]

    def __init__(
        self,
        name: str,
        cluster_name: str,
        talos_version: str,
        public_ip: pulumi.Input[str],
        private_ip: pulumi.Input[str],
        *args,
        **kwargs,
    ):
        super().__init__(
            f"homelab:{self.__class__.__name__}",
            name,
            *args,
            **kwargs,
        )

        self.name = name
        self.cluster_name = cluster_name
        self.talos_version = talos_version
        self.public_ip = pulumi.Output.from_input(public_ip)
        self.private_ip = pulumi.Output.from_input(private_ip)

        self._define_secrets()
        self._define_machine_configuration()
        self._define_configuration_apply()
        self._define_bootstrap()
        self._define_health()
        self._define_kubeconfig()
        self._define_client_configuration()

        self.register_outputs({})

    @property
    def kubeconfig_raw(self) -> pulumi.Output[str]:
        return self.kubeconfig.kubeconfig_raw

    @property
    def talosconfig(self) -> pulumi.Output[str]:
        return self.client_configuration.talos_config

    def _define_secrets(self):
        self.secrets = talos.machine.Secrets(
            f"{self.name}-secrets",
            talos_version=self.talos_version,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_machine_configuration(self):
        self.config_patch = self.public_ip.apply(render_config_patch)

        self.machine_configuration = talos.machine.get_configuration_output(
            cluster_name=self.cluster_name,
            cluster_endpoint=self.public_ip.apply(cluster_endpoint),
            machine_secrets=self.secrets.machine_secrets,
            machine_type=str(homelab.MachineType.CONTROLPLANE),
            config_patches=[self.config_patch],
            docs=False,
            examples=False,
            opts=pulumi.InvokeOptions(parent=self),
        )

    def _define_configuration_apply(self):
        # on_destroy is left unset: terminating the EC2 instance wipes the node,
        # and there is no second node to drain workloads to.
        self.configuration_apply = talos.machine.ConfigurationApply(
            f"{self.name}-config-apply",
            client_configuration=self.secrets.client_configuration,
            machine_configuration_input=self.machine_configuration.machine_configuration,
            endpoint=self.public_ip,
            node=self.private_ip,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_bootstrap(self):
        self.bootstrap = talos.machine.Bootstrap(
            f"{self.name}-bootstrap",
            client_configuration=self.secrets.client_configuration,
            endpoint=self.public_ip,
            node=self.private_ip,
            opts=pulumi.ResourceOptions(
                parent=self,
                depends_on=[self.configuration_apply],
                custom_timeouts=pulumi.CustomTimeouts(create=homelab.BOOTSTRAP_TIMEOUT),
            ),
        )

    def _define_health(self):
        cc = self.secrets.client_configuration

        # API server, etcd and kubelet must all report ready before kubeconfig is
        # fetched. The check takes no input from bootstrap, so it waits on it explicitly.
        self.health = talos.cluster.get_health_output(
            client_configuration=talos.cluster.GetHealthClientConfigurationArgs(
                ca_certificate=cc.ca_certificate,
                client_certificate=cc.client_certificate,
                client_key=cc.client_key,
            ),
            control_plane_nodes=[self.private_ip],
            endpoints=[self.public_ip],
            opts=pulumi.InvokeOutputOptions(parent=self, depends_on=[self.bootstrap]),
        )

    def _define_kubeconfig(self):
        self.kubeconfig = talos.cluster.Kubeconfig(
            f"{self.name}-kubeconfig",
            client_configuration=self.secrets.client_configuration,
            endpoint=self.health.endpoints[0],
            node=self.private_ip,
            opts=pulumi.ResourceOptions(parent=self, depends_on=[self.bootstrap]),
        )

    def _define_client_configuration(self):
        cc = self.secrets.client_configuration

        self.client_configuration = talos.client.get_configuration_output(
            cluster_name=self.cluster_name,
            client_configuration=talos.client.GetConfigurationClientConfigurationArgs(
                ca_certificate=cc.ca_certificate,
                client_certificate=cc.client_certificate,
                client_key=cc.client_key,
            ),
            endpoints=[self.public_ip],
            nodes=[self.private_ip],
            opts=pulumi.InvokeOptions(parent=self),
        )

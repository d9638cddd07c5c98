from __future__ import annotations

import typing

import pulumi
import pulumi_kubernetes as k8s

import homelab
import homelab.junkdrawer
import homelab.paths

if typing.TYPE_CHECKING:
    import homelab.config

GITHUB_PRIVATE_KEY_ITEM = "github-privateKey"


def github_notifier_service(app_id: str, installation_id: str) -> str:
    return f"appID: {app_id}\ninstallationID: {installation_id}\nprivateKey: ${GITHUB_PRIVATE_KEY_ITEM}\n"


def build_notifications_values(
    github_app: homelab.config.GitHubAppCredentials | None,
) -> dict[str, typing.Any]:
    """Helm values layered over argocd-values.yaml.

    The notifications controller authenticates to GitHub as the App; with no
    App configured nothing is layered and the static values apply unchanged.
    """
    if github_app is None:
        return {}

    return {
        "notifications": {
            "secret": {
                "items": {
                    GITHUB_PRIVATE_KEY_ITEM: github_app.private_key,
                },
            },
            "notifiers": {
                "service.github": pulumi.Output.all(github_app.app_id, github_app.installation_id).apply(
                    lambda args: github_notifier_service(str(args[0]), str(args[1]))
                ),
            },
        },
    }


class ArgoCD(pulumi.ComponentResource):
    name: str
    provider: k8s.Provider
    namespace: k8s.core.v1.Namespace
    github_app: homelab.config.GitHubAppCredentials | None
    chart_version: str | None

    helm_release: k8s.helm.v3.Release
    root_app: k8s.yaml.ConfigFile
    admin_secret: k8s.core.v1.Secret
    admin_password: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        provider: k8s.Provider,
        namespace: k8s.core.v1.Namespace,
        github_app: homelab.config.GitHubAppCredentials | None = None,
        chart_version: str | None = None,
        paths: homelab.paths.Paths | None = None,
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
        self.provider = provider
        self.namespace = namespace
        self.github_app = github_app
        self.chart_version = chart_version
        self.paths = paths or homelab.paths.Paths()

        self._define_helm_release()
        self._define_root_app()
        self._define_admin_password()

        self.register_outputs({"admin_password": self.admin_password})

    def _define_helm_release(self):
        self.helm_release = k8s.helm.v3.Release(
            self.name,
            name="argocd",
            namespace=homelab.ARGOCD_NAMESPACE,
            chart=homelab.ARGOCD_CHART,
            version=self.chart_version,
            repository_opts=k8s.helm.v3.RepositoryOptsArgs(
                repo=homelab.ARGOCD_CHART_REPO,
            ),
            value_yaml_files=[pulumi.FileAsset(str(self.paths.argocd_values))],
            values=build_notifications_values(self.github_app),
            timeout=homelab.ARGOCD_HELM_TIMEOUT_SECONDS,
            wait_for_jobs=True,
            opts=pulumi.ResourceOptions(parent=self, provider=self.provider, depends_on=[self.namespace]),
        )

    def _define_root_app(self):
        # Depends on the Helm release only. The Application CRD ships with the
        # chart; CRDs the app tree needs later (Traefik IngressRoute) are
        # registered by ArgoCD itself, which keeps retrying until they exist.
        self.root_app = k8s.yaml.ConfigFile(
            f"{self.name}-root-app",
            file=str(self.paths.argocd_root_app),
            opts=pulumi.ResourceOptions(parent=self, provider=self.provider, depends_on=[self.helm_release]),
        )

    def _define_admin_password(self):
        # The chart generates this secret on each install.
        self.admin_secret = k8s.core.v1.Secret.get(
            homelab.ARGOCD_INITIAL_ADMIN_SECRET,
            f"{homelab.ARGOCD_NAMESPACE}/{homelab.ARGOCD_INITIAL_ADMIN_SECRET}",
            opts=pulumi.ResourceOptions(parent=self, provider=self.provider, depends_on=[self.helm_release]),
        )

        self.admin_password = pulumi.Output.secret(
            self.admin_secret.data.apply(lambda data: homelab.junkdrawer.decode_secret_field(data, "password"))
        )

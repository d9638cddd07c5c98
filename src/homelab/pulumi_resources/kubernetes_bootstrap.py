from __future__ import annotations

import typing

import pulumi
import pulumi_kubernetes as k8s

import homelab
import homelab.config
import homelab.paths
import homelab.pulumi_resources.argocd

if typing.TYPE_CHECKING:
    from homelab.pulumi_resources import SecretInput

NEWRELIC_LICENSE_SECRET = "newrelic-license-key"  # noqa: S105
CLOUDFLARED_TOKEN_SECRET = "cloudflared-token"  # noqa: S105
GITHUB_APP_REPO_CREDS_SECRET = "argocd-repo-github-app"  # noqa: S105

# nri-infrastructure and Fluent Bit run as privileged DaemonSets, so their
# namespaces are created here with the privileged pod security level.
NAMESPACE_LABELS: dict[str, dict[str, str]] = {
    homelab.CLOUDFLARED_NAMESPACE: {},
    homelab.ARGOCD_NAMESPACE: {},
    homelab.NEWRELIC_NAMESPACE: {
        homelab.POD_SECURITY_ENFORCE_LABEL: str(homelab.PodSecurityLevel.PRIVILEGED),
    },
    homelab.LOGGING_NAMESPACE: {
        homelab.POD_SECURITY_ENFORCE_LABEL: str(homelab.PodSecurityLevel.PRIVILEGED),
    },
}


def _build_repo_creds_string_data(
    github_app: homelab.config.GitHubAppCredentials,
    url: str,
) -> dict[str, SecretInput]:
    return {
        "type": "git",
        "url": url,
        "githubAppID": github_app.app_id,
        "githubAppInstallationID": github_app.installation_id,
        "githubAppPrivateKey": github_app.private_key,
    }


class KubernetesBootstrap(pulumi.ComponentResource):
    """Namespaces, credential secrets and ArgoCD on a freshly booted cluster.

    ArgoCD's root application takes over every other workload from here.
    """

    name: str
    credentials: homelab.config.Credentials
    repo_creds_url: str
    argocd_chart_version: str | None

    provider: k8s.Provider
    namespaces: dict[str, k8s.core.v1.Namespace]
    secrets: dict[str, k8s.core.v1.Secret]
    argocd: homelab.pulumi_resources.argocd.ArgoCD

    def __init__(
        self,
        name: str,
        kubeconfig: pulumi.Input[str],
        credentials: homelab.config.Credentials,
        repo_creds_url: str = homelab.DEFAULT_REPO_CREDS_URL,
        argocd_chart_version: str | None = None,
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
        self.credentials = credentials
        self.repo_creds_url = repo_creds_url
        self.argocd_chart_version = argocd_chart_version
        self.paths = paths or homelab.paths.Paths()
        self.namespaces = {}
        self.secrets = {}

        self._define_provider(kubeconfig)
        self._define_namespaces()
        self._define_cloudflared_secret()
        self._define_github_app_secret()
        self._define_newrelic_secrets()
        self._define_argocd()

        self.register_outputs({})

    def _define_provider(self, kubeconfig: pulumi.Input[str]):
        self.provider = k8s.Provider(
            f"{self.name}-provider",
            kubeconfig=kubeconfig,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _define_namespaces(self):
        for ns, labels in NAMESPACE_LABELS.items():
            self.namespaces[ns] = k8s.core.v1.Namespace(
                f"{self.name}-{ns}-ns",
                metadata=k8s.meta.v1.ObjectMetaArgs(
                    name=ns,
                    labels=labels or None,
                ),
                opts=pulumi.ResourceOptions(parent=self, provider=self.provider),
            )

    def _define_secret(
        self,
        resource_name: str,
        secret_name: str,
        namespace: str,
        string_data: typing.Mapping[str, SecretInput],
        labels: dict[str, str] | None = None,
    ) -> k8s.core.v1.Secret:
        secret = k8s.core.v1.Secret(
            resource_name,
            metadata=k8s.meta.v1.ObjectMetaArgs(
                name=secret_name,
                namespace=namespace,
                labels=labels,
            ),
            string_data=string_data,
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=self.provider,
                depends_on=[self.namespaces[namespace]],
            ),
        )
        self.secrets[resource_name] = secret
        return secret

    def _define_cloudflared_secret(self):
        creds = self.credentials.cloudflare_tunnel
        if creds is None:
            return

        self._define_secret(
            f"{self.name}-{CLOUDFLARED_TOKEN_SECRET}",
            CLOUDFLARED_TOKEN_SECRET,
            homelab.CLOUDFLARED_NAMESPACE,
            {"token": creds.token},
        )

    def _define_github_app_secret(self):
        creds = self.credentials.github_app
        if creds is None:
            return

        self._define_secret(
            f"{self.name}-{GITHUB_APP_REPO_CREDS_SECRET}",
            GITHUB_APP_REPO_CREDS_SECRET,
            homelab.ARGOCD_NAMESPACE,
            _build_repo_creds_string_data(creds, self.repo_creds_url),
            labels={homelab.ARGOCD_SECRET_TYPE_LABEL: "repo-creds"},
        )

    def _define_newrelic_secrets(self):
        creds = self.credentials.new_relic
        if creds is None:
            return

        # Secrets are namespace-scoped: one copy for nri-bundle, one for Fluent Bit.
        for ns in (homelab.NEWRELIC_NAMESPACE, homelab.LOGGING_NAMESPACE):
            self._define_secret(
                f"{self.name}-{NEWRELIC_LICENSE_SECRET}-{ns}",
                NEWRELIC_LICENSE_SECRET,
                ns,
                {"licenseKey": creds.license_key},
            )

    def _define_argocd(self):
        self.argocd = homelab.pulumi_resources.argocd.ArgoCD(
            f"{self.name}-argocd",
            provider=self.provider,
            namespace=self.namespaces[homelab.ARGOCD_NAMESPACE],
            github_app=self.credentials.github_app,
            chart_version=self.argocd_chart_version,
            paths=self.paths,
            opts=pulumi.ResourceOptions(parent=self),
        )

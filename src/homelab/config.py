from __future__ import annotations

import dataclasses
import ipaddress
import typing

import deepmerge  # type: ignore
import pulumi

import homelab
import homelab.junkdrawer
import homelab.secrecy

if typing.TYPE_CHECKING:
    from homelab.pulumi_resources import SecretInput

# Lists from stack config replace the defaults instead of being appended to them.
config_merger = deepmerge.Merger(
    [(list, ["override"]), (dict, ["merge"]), (set, ["union"])],
    ["override"],
    ["override"],
)

STRING_KEYS = (
    "clusterName",
    "instanceType",
    "talosVersion",
    "argocdChartVersion",
    "repoCredsUrl",
    "credentialsSecretId",
)


def _present(value: typing.Any) -> bool:
    return value is not None and value != ""


@dataclasses.dataclass(frozen=True)
class CloudflareTunnelCredentials:
    token: SecretInput

    @classmethod
    def from_values(cls, token: SecretInput | None) -> CloudflareTunnelCredentials | None:
        if not _present(token):
            return None

        return cls(token=typing.cast("SecretInput", token))


@dataclasses.dataclass(frozen=True)
class GitHubAppCredentials:
    app_id: SecretInput
    installation_id: SecretInput
    private_key: SecretInput

    @classmethod
    def from_values(
        cls,
        app_id: SecretInput | None,
        installation_id: SecretInput | None,
        private_key: SecretInput | None,
    ) -> GitHubAppCredentials | None:
        """Return the bundle only when all three values are configured.

        A partially configured GitHub App is treated the same as an absent one.
        """
        if not all(_present(v) for v in (app_id, installation_id, private_key)):
            return None

        return cls(
            app_id=typing.cast("SecretInput", app_id),
            installation_id=typing.cast("SecretInput", installation_id),
            private_key=typing.cast("SecretInput", private_key),
        )


@dataclasses.dataclass(frozen=True)
class NewRelicCredentials:
    license_key: SecretInput

    @classmethod
    def from_values(cls, license_key: SecretInput | None) -> NewRelicCredentials | None:
        if not _present(license_key):
            return None

        return cls(license_key=typing.cast("SecretInput", license_key))


@dataclasses.dataclass(frozen=True)
class Credentials:
    cloudflare_tunnel: CloudflareTunnelCredentials | None = None
    github_app: GitHubAppCredentials | None = None
    new_relic: NewRelicCredentials | None = None

    @classmethod
    def from_values(cls, values: typing.Mapping[str, SecretInput | None]) -> Credentials:
        creds = cls(
            cloudflare_tunnel=CloudflareTunnelCredentials.from_values(values.get("cloudflareTunnelToken")),
            github_app=GitHubAppCredentials.from_values(
                values.get("githubAppId"),
                values.get("githubAppInstallationId"),
                values.get("githubAppPrivateKey"),
            ),
            new_relic=NewRelicCredentials.from_values(values.get("newRelicLicenseKey")),
        )

        for field in dataclasses.fields(creds):
            if getattr(creds, field.name) is None:
                pulumi.log.info(f"{field.name} credentials not configured, skipping")

        return creds


@dataclasses.dataclass(frozen=True)
class HomelabConfig:
    cluster_name: str = homelab.DEFAULT_CLUSTER_NAME
    instance_type: str = homelab.DEFAULT_INSTANCE_TYPE
    root_volume_size: int = homelab.DEFAULT_ROOT_VOLUME_SIZE
    allowed_cidrs: list[str] = dataclasses.field(default_factory=lambda: [homelab.OPEN_CIDR])
    talos_version: str = homelab.DEFAULT_TALOS_VERSION
    argocd_chart_version: str | None = None
    repo_creds_url: str = homelab.DEFAULT_REPO_CREDS_URL
    credentials_secret_id: str | None = None
    credentials: Credentials = dataclasses.field(default_factory=Credentials)

    def __post_init__(self):
        if not self.cluster_name:
            msg = "clusterName must not be empty"
            raise ValueError(msg)

        if self.root_volume_size <= 0:
            msg = f"rootVolumeSize must be a positive number of GB, got {self.root_volume_size}"
            raise ValueError(msg)

        if len(self.allowed_cidrs) == 0:
            msg = f"allowedCidrs must not be empty; use [{homelab.OPEN_CIDR!r}] to allow all sources"
            raise ValueError(msg)

        for cidr in self.allowed_cidrs:
            try:
                ipaddress.IPv4Network(cidr)
            except ValueError as e:
                msg = f"Invalid CIDR in allowedCidrs: {cidr!r} ({e})"
                raise ValueError(msg) from e

        if not self.talos_version.startswith("v"):
            msg = f"talosVersion must look like 'v1.12', got {self.talos_version!r}"
            raise ValueError(msg)

    @property
    def tags(self) -> dict[str, str]:
        return homelab.required_tags(self.cluster_name)

    @property
    def backup_bucket_name(self) -> str:
        return f"{self.cluster_name}-etcd-backups"

    @property
    def talos_ami_name_filter(self) -> str:
        return f"talos-{self.talos_version}*"


def _load_credential_values(cfg: pulumi.Config, secret_id: str | None) -> dict[str, SecretInput | None]:
    # get_secret wraps even an empty value in an Output, so presence is checked
    # on the plain value before it is marked secret.
    values: dict[str, SecretInput | None] = {}
    for key in homelab.secrecy.CREDENTIAL_KEYS:
        value = cfg.get(key)
        values[key] = pulumi.Output.secret(value) if _present(value) else None

    if secret_id is None:
        return values

    stored, ok = homelab.secrecy.aws_get_secret_value_json(secret_id)
    if not ok:
        pulumi.log.warn(f"Could not read credentials secret {secret_id!r}, using stack config only")
        return values

    for key, value in homelab.secrecy.credential_values(stored).items():
        if values.get(key) is None:
            pulumi.log.debug(f"Using {key} from secret {secret_id!r}")
            values[key] = pulumi.Output.secret(value)

    return values


def load_config(cfg: pulumi.Config | None = None) -> HomelabConfig:
    cfg = cfg or pulumi.Config()

    spec: dict[str, typing.Any] = {
        "cluster_name": homelab.DEFAULT_CLUSTER_NAME,
        "instance_type": homelab.DEFAULT_INSTANCE_TYPE,
        "root_volume_size": homelab.DEFAULT_ROOT_VOLUME_SIZE,
        "allowed_cidrs": [homelab.OPEN_CIDR],
        "talos_version": homelab.DEFAULT_TALOS_VERSION,
        "argocd_chart_version": None,
        "repo_creds_url": homelab.DEFAULT_REPO_CREDS_URL,
        "credentials_secret_id": None,
    }

    overrides: dict[str, typing.Any] = {}
    for key in STRING_KEYS:
        value = cfg.get(key)
        if value is not None:
            overrides[homelab.junkdrawer.camel_to_snake(key)] = value

    root_volume_size = cfg.get_int("rootVolumeSize")
    if root_volume_size is not None:
        overrides["root_volume_size"] = root_volume_size

    allowed_cidrs = cfg.get_object("allowedCidrs")
    if allowed_cidrs is not None:
        overrides["allowed_cidrs"] = list(allowed_cidrs)

    config_merger.merge(spec, overrides)

    spec["credentials"] = Credentials.from_values(_load_credential_values(cfg, spec["credentials_secret_id"]))

    try:
        return HomelabConfig(**spec)
    except ValueError as e:
        pulumi.error(str(e))
        raise

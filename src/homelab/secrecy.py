from __future__ import annotations

import json
import typing

import boto3
from botocore.exceptions import ClientError

import homelab

HomelabCredentialsSecret = typing.TypedDict(
    "HomelabCredentialsSecret",
    {
        "cloudflareTunnelToken": str,
        "githubAppId": str,
        "githubAppInstallationId": str,
        "githubAppPrivateKey": str,
        "newRelicLicenseKey": str,
    },
    total=False,
)

CREDENTIAL_KEYS = tuple(HomelabCredentialsSecret.__annotations__.keys())


def aws_get_secret_value_json(
    secret_id: str, region: str = homelab.AWS_REGION
) -> tuple[HomelabCredentialsSecret | dict[str, str], bool]:
    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_id)
        secret_string = response.get("SecretString", "{}")
        return json.loads(secret_string), True
    except ClientError:
        return {}, False


def credential_values(secret: typing.Mapping[str, typing.Any]) -> dict[str, str]:
    """Keep only the recognised, non-empty credential keys of a secret."""
    return {k: str(secret[k]) for k in CREDENTIAL_KEYS if secret.get(k)}

from __future__ import annotations

import base64
import hashlib
import typing


def text_signature(s: str | None) -> str:
    return hashlib.sha256(
        (s or "").encode(),
        usedforsecurity=False,
    ).hexdigest()


def camel_to_snake(key: str) -> str:
    return "".join([f"_{c.lower()}" if c.isupper() else c for c in key]).lstrip("_")


def decode_secret_field(data: typing.Mapping[str, str] | None, field: str) -> str:
    """Decode one base64 encoded field of a Kubernetes Secret's data."""
    if not data or field not in data:
        msg = f"secret data has no {field!r} field"
        raise KeyError(msg)

    return base64.b64decode(data[field]).decode("utf-8")

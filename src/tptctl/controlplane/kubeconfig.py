"""Kubeconfig loading and credential extraction.

The cluster and user entries are matched by name against the current
context, the way kind and `aws eks update-kubeconfig` name them. Extraction
fails closed: no placeholder credentials are ever returned.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..errors import (
    ClusterCANotFoundError,
    ClusterNotFoundError,
    LocalIOError,
    UserCredentialsNotFoundError,
)


@dataclass(frozen=True)
class CredentialBundle:
    """Credentials for one cluster, as opaque byte blobs."""

    ca_certificate: bytes
    certificate: bytes = b""
    key: bytes = b""
    token: str | None = None

    def as_text(self) -> dict[str, str]:
        """PEM text fields as the control-plane API expects them."""
        return {
            "CACertificate": self.ca_certificate.decode(),
            "Certificate": self.certificate.decode(),
            "Key": self.key.decode(),
        }


def load_kubeconfig(path: Path) -> dict[str, Any]:
    """Parse a kubeconfig file.

    Raises:
        LocalIOError: If the file is missing or not a YAML mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise LocalIOError("failed to load kubeconfig", path, e) from e
    if not isinstance(data, dict):
        raise LocalIOError("kubeconfig is not a mapping", path)
    return data


def write_kubeconfig(path: Path, kubeconfig: dict[str, Any] | str | bytes) -> None:
    """Write a kubeconfig readable only by the current user."""
    if isinstance(kubeconfig, dict):
        content = yaml.safe_dump(kubeconfig, default_flow_style=False, sort_keys=False)
    elif isinstance(kubeconfig, bytes):
        content = kubeconfig.decode()
    else:
        content = kubeconfig
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        path.chmod(0o600)
    except OSError as e:
        raise LocalIOError("failed to write kubeconfig", path, e) from e


def _find_named(entries: list[dict[str, Any]] | None, name: str, body_key: str) -> dict | None:
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            body = entry.get(body_key)
            return body if isinstance(body, dict) else {}
    return None


def _read_blob(body: dict[str, Any], data_key: str, file_key: str, base_dir: Path | None) -> bytes:
    """Read an inline base64 `*-data` field, or the file it references."""
    data = body.get(data_key)
    if data:
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            # Some tools write the PEM inline without encoding it
            return str(data).encode()

    ref = body.get(file_key)
    if ref:
        ref_path = Path(ref).expanduser()
        if not ref_path.is_absolute() and base_dir is not None:
            ref_path = base_dir / ref_path
        try:
            return ref_path.read_bytes()
        except OSError as e:
            raise LocalIOError(f"failed to read {file_key}", ref_path, e) from e
    return b""


def extract_credentials(
    kubeconfig: dict[str, Any],
    current_context: str | None = None,
    base_dir: Path | None = None,
) -> CredentialBundle:
    """Extract the credential bundle for the current context.

    Args:
        kubeconfig: Parsed kubeconfig document.
        current_context: Context name to match; defaults to the document's
            current-context.
        base_dir: Directory relative file references resolve against.

    Raises:
        ClusterNotFoundError: No cluster entry is named after the context.
        ClusterCANotFoundError: The cluster entry has no CA certificate.
        UserCredentialsNotFoundError: No user entry is named after the
            context, or it carries neither a client certificate/key pair
            nor a bearer token.
    """
    context = current_context or kubeconfig.get("current-context") or ""

    cluster = _find_named(kubeconfig.get("clusters"), context, "cluster")
    if cluster is None:
        raise ClusterNotFoundError(context)
    ca_cert = _read_blob(cluster, "certificate-authority-data", "certificate-authority", base_dir)
    if not ca_cert:
        raise ClusterCANotFoundError(context)

    user = _find_named(kubeconfig.get("users"), context, "user")
    if user is None:
        raise UserCredentialsNotFoundError(context)

    cert = _read_blob(user, "client-certificate-data", "client-certificate", base_dir)
    key = _read_blob(user, "client-key-data", "client-key", base_dir)
    if cert and key:
        return CredentialBundle(ca_certificate=ca_cert, certificate=cert, key=key)

    token = user.get("token")
    if token and not cert and not key:
        return CredentialBundle(ca_certificate=ca_cert, token=str(token))

    if cert or key:
        raise UserCredentialsNotFoundError(context, "has an incomplete client certificate/key pair")
    raise UserCredentialsNotFoundError(context, "has no client credentials")


def extract_credentials_from_file(path: Path, current_context: str | None = None) -> CredentialBundle:
    """Load a kubeconfig file and extract its current-context credentials."""
    return extract_credentials(load_kubeconfig(path), current_context, base_dir=path.parent)

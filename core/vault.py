"""
vault.py -- Vault REST operations used by the proxy handlers and the CLI.

Each function is one round trip against a fixed Vault endpoint. Non-2xx
responses raise VaultError carrying Vault's status, reason phrase, and body so
callers can pass them through unchanged. Transport failures propagate as
requests.RequestException. Nothing here retries or caches.
"""

import logging
from typing import Any, Optional

import requests

from .http import VaultHTTPClient
from .paths import normalize_endpoint, resolve_secret_url

logger = logging.getLogger("vaultcheck.vault")


class VaultError(Exception):
    """Vault answered with a non-2xx status."""

    def __init__(self, status: int, reason: str, body: Any = None) -> None:
        super().__init__(f"{status} {reason}")
        self.status = status
        self.reason = reason
        self.body = body


def _body(resp: requests.Response) -> Any:
    """Decode a response body. Empty -> None, non-JSON -> text."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _checked(resp: requests.Response) -> dict[str, Any]:
    if not resp.ok:
        raise VaultError(resp.status_code, resp.reason or "", _body(resp))
    body = _body(resp)
    # 204 No Content (revoke-self) and any other empty 2xx count as success.
    return body if isinstance(body, dict) else {}


def approle_login(client: VaultHTTPClient, endpoint: str, role_id: str, secret_id: str) -> dict[str, Any]:
    url = f"{normalize_endpoint(endpoint)}/v1/auth/approle/login"
    return _checked(client.post(url, json={"role_id": role_id, "secret_id": secret_id}))


def lookup_self(client: VaultHTTPClient, endpoint: str, token: str) -> dict[str, Any]:
    url = f"{normalize_endpoint(endpoint)}/v1/auth/token/lookup-self"
    return _checked(client.get(url, token=token))


def revoke_self(client: VaultHTTPClient, endpoint: str, token: str) -> dict[str, Any]:
    """Revoke the calling token. Vault answers 204 with no body on success."""
    url = f"{normalize_endpoint(endpoint)}/v1/auth/token/revoke-self"
    return _checked(client.post(url, token=token))


def capabilities_self(client: VaultHTTPClient, endpoint: str, token: str, path: str) -> dict[str, Any]:
    """Ask Vault which capabilities the token holds on ``path``.

    ``path`` is already resolved (no leading slash, mount prefix included).
    """
    url = f"{normalize_endpoint(endpoint)}/v1/sys/capabilities-self"
    return _checked(client.post(url, token=token, json={"path": path}))


def unwrap(client: VaultHTTPClient, endpoint: str, wrapped_token: str) -> dict[str, Any]:
    """Unwrap a response-wrapped token.

    The wrapping token itself authenticates the call via X-Vault-Token and the
    body is empty. Vault also accepts {"token": ...} in the body with a
    different caller token, which this tool does not need.
    """
    url = f"{normalize_endpoint(endpoint)}/v1/sys/wrapping/unwrap"
    return _checked(client.post(url, token=wrapped_token))


def read_secret(client: VaultHTTPClient, endpoint: str, token: str, secret_path: str) -> dict[str, Any]:
    return _checked(client.get(resolve_secret_url(endpoint, secret_path), token=token))


def extract_capabilities(body: dict[str, Any], path: Optional[str] = None) -> list[str]:
    """Pull the capability list out of a capabilities-self response.

    Vault returns both a top-level "capabilities" key and one keyed by the
    requested path; the top-level key is preferred.
    """
    caps = body.get("capabilities")
    if caps is None and path is not None:
        caps = body.get(path)
    if caps is None:
        caps = (body.get("data") or {}).get("capabilities")
    return [str(c) for c in caps] if isinstance(caps, list) else []


def split_secret_payload(body: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return (secret data, metadata) from a secret read response.

    KV v2 nests both under body["data"]. Any other engine reachable through
    an absolute path (KV v1, ...) may put arbitrary values there; a level that
    is not an object reads as empty.
    """
    outer = body.get("data")
    if not isinstance(outer, dict):
        return {}, {}
    data = outer.get("data")
    metadata = outer.get("metadata")
    return (data if isinstance(data, dict) else {}), (metadata if isinstance(metadata, dict) else {})

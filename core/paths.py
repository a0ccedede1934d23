"""
paths.py -- Vault URL building and capability interpretation.

Pure functions, no I/O. Both the API handlers and the CLI build URLs through
here so the two surfaces always agree on where a secret path points.

Path rule:
  "/v1/kv/data/app"  (absolute) -> URL <endpoint>/v1/kv/data/app,
                                   capabilities path v1/kv/data/app
  "myapp/config"     (relative) -> URL <endpoint>/v1/secret/data/myapp/config,
                                   capabilities path secret/data/myapp/config
"""

from .models import REPORTED_CAPABILITIES, CapabilitiesResult, Permissions

KV2_PREFIX = "secret/data/"


def normalize_endpoint(endpoint: str) -> str:
    """Strip a single trailing slash from a Vault base URL."""
    return endpoint[:-1] if endpoint.endswith("/") else endpoint


def resolve_capabilities_path(secret_path: str) -> str:
    """Return the path to submit to sys/capabilities-self."""
    if secret_path.startswith("/"):
        return secret_path[1:]
    return f"{KV2_PREFIX}{secret_path}"


def resolve_secret_url(endpoint: str, secret_path: str) -> str:
    """Return the full URL used to read a secret."""
    base = normalize_endpoint(endpoint)
    if secret_path.startswith("/"):
        return f"{base}{secret_path}"
    return f"{base}/v1/{KV2_PREFIX}{secret_path}"


def strip_leading_slash(path: str) -> str:
    """Remove exactly one leading slash. Used by the raw capabilities proxy."""
    return path[1:] if path.startswith("/") else path


def derive_permissions(capabilities: list[str]) -> Permissions:
    """Map a Vault capability list onto the four reported permissions.

    Membership is exact: "read" counts, "READ" or "read-only" do not.
    """
    return Permissions(**{name: name in capabilities for name in REPORTED_CAPABILITIES})


def summarize_capabilities(secret_path: str, capabilities: list[str]) -> CapabilitiesResult:
    """Build the validate-access result for a capabilities-self response."""
    permissions = derive_permissions(capabilities)
    listed = ", ".join(capabilities) if capabilities else "no"
    return CapabilitiesResult(
        secret_path=secret_path,
        resolved_path=resolve_capabilities_path(secret_path),
        capabilities=list(capabilities),
        permissions=permissions,
        has_access=permissions.read or permissions.list,
        summary=f"Token has {listed} permissions on this path",
    )

from dataclasses import dataclass, field
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Capabilities the UI reports individually. Vault may return others
# ("create", "update", "sudo", "deny", "root"); those only appear in the
# raw capabilities list.
REPORTED_CAPABILITIES = ("read", "list", "write", "delete")

# Token self-lookup fields projected to the browser.
LOOKUP_FIELDS = (
    "id",
    "accessor",
    "creation_time",
    "expire_time",
    "ttl",
    "renewable",
    "policies",
    "entity_id",
    "display_name",
)

SECRET_METADATA_FIELDS = ("created_time", "deletion_time", "destroyed", "version")


@dataclass
class LoginResult:
    token: Optional[str]
    renewable: Optional[bool]
    lease_duration: Optional[int]
    auth: Optional[dict[str, Any]]  # raw Vault "auth" block

    @classmethod
    def from_vault(cls, body: dict[str, Any]) -> "LoginResult":
        auth = body.get("auth") or {}
        return cls(
            token=auth.get("client_token"),
            renewable=auth.get("renewable"),
            lease_duration=auth.get("lease_duration"),
            auth=body.get("auth"),
        )


@dataclass
class LookupResult:
    id: Optional[str] = None
    accessor: Optional[str] = None
    creation_time: Optional[int] = None
    expire_time: Optional[str] = None
    ttl: Optional[int] = None
    renewable: Optional[bool] = None
    policies: Optional[list[str]] = None
    entity_id: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_vault(cls, body: dict[str, Any]) -> "LookupResult":
        data = body.get("data") or {}
        return cls(**{name: data.get(name) for name in LOOKUP_FIELDS})


@dataclass
class Permissions:
    read: bool = False
    list: bool = False
    write: bool = False
    delete: bool = False


@dataclass
class CapabilitiesResult:
    secret_path: str
    resolved_path: str
    capabilities: list[str]
    permissions: Permissions
    has_access: bool
    summary: str


@dataclass
class SecretMetadata:
    created_time: Optional[str] = None
    deletion_time: Optional[str] = None
    destroyed: Optional[bool] = None
    version: Optional[int] = None


@dataclass
class SecretResult:
    secret_path: str
    requested_single_key: bool
    metadata: SecretMetadata
    key_name: Optional[str] = None
    key_value: Any = None
    key_exists: Optional[bool] = None
    all_secrets: Optional[dict[str, Any]] = None
    all_keys: Optional[list[str]] = None
    total_keys: Optional[int] = None


@dataclass
class UnwrapNotification:
    timestamp: str  # ISO-8601, UTC
    endpoint: str
    success: bool
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    response: Any = None


@dataclass
class EmailSendResult:
    success: int = 0
    failed: int = 0
    details: list[str] = field(default_factory=list)

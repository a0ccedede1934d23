"""
API request and response models for the Vault proxy endpoints.

These Pydantic v2 models define the HTTP transport contract between the
browser and the proxy. They are intentionally separate from the dataclasses
in core/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire names are camelCase (accessId, secretPath, ...) because that is what the
browser sends; Python attributes stay snake_case behind explicit aliases.
(pydantic.alias_generators.to_camel turns k8s_namespace into k8SNamespace,
so the aliases are spelled out.)

Required string fields use min_length=1 so an empty string is rejected the
same way as a missing key. The RequestValidationError handler in api/main.py
turns those failures into "Missing required fields: ..." using the aliases.
"""

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import CapabilitiesResult, LookupResult, SecretResult

_Required = Annotated[str, Field(min_length=1)]


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_RequestModel):
    """Body for POST /api/vault/login.

    There is deliberately no secret field: the AppRole secret_id is resolved
    server-side from k8sNamespace/k8sSecretName/secretKey.
    """

    endpoint: _Required
    access_id: _Required = Field(alias="accessId")
    k8s_namespace: _Required = Field(alias="k8sNamespace")
    k8s_secret_name: _Required = Field(alias="k8sSecretName")
    secret_key: _Required = Field(alias="secretKey")
    auth_method: Optional[str] = Field(default="approle", alias="authMethod")


class TokenRequest(_RequestModel):
    """Body for lookup and revoke-self."""

    endpoint: _Required
    token: _Required


class CapabilitiesRequest(_RequestModel):
    endpoint: _Required
    token: _Required
    secret_path: _Required = Field(alias="secretPath")


class SecretRequest(_RequestModel):
    endpoint: _Required
    token: _Required
    secret_path: _Required = Field(alias="secretPath")
    key_name: Optional[str] = Field(default=None, alias="keyName")


class UnwrapRequest(_RequestModel):
    endpoint: _Required
    wrapped_token: _Required = Field(alias="wrappedToken")
    notification_email: Optional[str] = Field(default=None, alias="notificationEmail")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginData(BaseModel):
    auth: Optional[dict[str, Any]] = None
    token: Optional[str] = None
    renewable: Optional[bool] = None
    lease_duration: Optional[int] = None


class LoginResponse(BaseModel):
    success: bool = True
    data: LoginData


class LookupData(BaseModel):
    """Projection of lookup-self. Values are passed through as Vault sent them."""

    id: Any = None
    accessor: Any = None
    creation_time: Any = None
    expire_time: Any = None
    ttl: Any = None
    renewable: Any = None
    policies: Any = None
    entity_id: Any = None
    display_name: Any = None

    @classmethod
    def from_result(cls, result: LookupResult) -> "LookupData":
        return cls(**vars(result))


class LookupResponse(BaseModel):
    success: bool = True
    data: LookupData


class RevokeResponse(BaseModel):
    success: bool = True
    data: dict[str, bool] = {"revoked": True}


class PermissionsModel(BaseModel):
    read: bool
    list: bool
    write: bool
    delete: bool


class CapabilitiesData(BaseModel):
    """validate-access payload. Serialized with camelCase keys."""

    secret_path: str = Field(serialization_alias="secretPath")
    resolved_path: str = Field(serialization_alias="resolvedPath")
    capabilities: list[str]
    permissions: PermissionsModel
    has_access: bool = Field(serialization_alias="hasAccess")
    summary: str

    @classmethod
    def from_result(cls, result: CapabilitiesResult) -> "CapabilitiesData":
        return cls(
            secret_path=result.secret_path,
            resolved_path=result.resolved_path,
            capabilities=result.capabilities,
            permissions=PermissionsModel(**vars(result.permissions)),
            has_access=result.has_access,
            summary=result.summary,
        )


class CapabilitiesResponse(BaseModel):
    success: bool = True
    data: CapabilitiesData


class SecretMetadataModel(BaseModel):
    created_time: Optional[str] = None
    deletion_time: Optional[str] = None
    destroyed: Optional[bool] = None
    version: Optional[int] = None


class SecretData(BaseModel):
    secret_path: str = Field(serialization_alias="secretPath")
    requested_single_key: bool = Field(serialization_alias="requestedSingleKey")
    metadata: SecretMetadataModel
    key_name: Optional[str] = Field(default=None, serialization_alias="keyName")
    key_value: Any = Field(default=None, serialization_alias="keyValue")
    key_exists: Optional[bool] = Field(default=None, serialization_alias="keyExists")
    all_secrets: Optional[dict[str, Any]] = Field(default=None, serialization_alias="allSecrets")
    all_keys: Optional[list[str]] = Field(default=None, serialization_alias="allKeys")
    total_keys: Optional[int] = Field(default=None, serialization_alias="totalKeys")

    @classmethod
    def from_result(cls, result: SecretResult) -> "SecretData":
        fields = vars(result).copy()
        fields["metadata"] = SecretMetadataModel(**vars(result.metadata))
        return cls(**fields)


class SecretResponse(BaseModel):
    success: bool = True
    data: SecretData


class EmailConfig(BaseModel):
    configured: bool


class AppConfig(BaseModel):
    title: str
    endpoints: list[str]
    namespaces: list[str]
    email: EmailConfig


class ConfigResponse(BaseModel):
    success: bool = True
    config: AppConfig


class EndpointsResponse(BaseModel):
    success: bool = True
    endpoints: list[str]


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: str
    details: Any = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str

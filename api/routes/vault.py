"""
api/routes/vault.py -- Vault proxy route handlers.

Every handler is a single round trip: validate the JSON body (Pydantic, see
api/models.py), call one Vault endpoint through the shared VaultHTTPClient on
app.state.http, reshape the result. No retries, no caching, no state kept
between requests.

Error mapping (rendered by the exception handlers in api/main.py):
  missing/empty field        -> 400 "Missing required fields: ..."
  Vault non-2xx              -> Vault's status, error "<Op> failed: <status> <reason>",
                                details = Vault's body
  network failure / timeout  -> 500 "Network error: ..."
  Kubernetes failure (login) -> status from core.k8s error class, Vault never called

Routes:
  POST /api/vault/login                  -- AppRole login, secret_id from Kubernetes
  POST /api/vault/lookup                 -- token lookup-self, projected
  POST /api/vault/revoke-self            -- revoke the caller's token
  POST /api/vault/validate-access        -- capabilities-self + permission summary
  POST /api/vault/get-secret             -- read a KV secret (all keys or one)
  POST /api/vault/sys/capabilities-self  -- raw capabilities-self passthrough
  POST /api/vault/sys/wrapping/unwrap    -- unwrap, optional email notification

Rate limits are applied via slowapi. @router.post must sit ABOVE
@limiter.limit() so FastAPI registers the rate-limited wrapper; the limit
is a callable, which SlowAPIMiddleware alone never evaluates.
"""

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Optional

import requests
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from api.limiter import limiter
from api.models import (
    CapabilitiesData,
    CapabilitiesRequest,
    CapabilitiesResponse,
    ErrorResponse,
    LoginData,
    LoginRequest,
    LoginResponse,
    LookupData,
    LookupResponse,
    RevokeResponse,
    SecretData,
    SecretRequest,
    SecretResponse,
    TokenRequest,
    UnwrapRequest,
)
from core import vault
from core.config import Settings, get_settings
from core.http import VaultHTTPClient
from core.k8s import KubeSecretError, fetch_secret_value
from core.models import (
    SECRET_METADATA_FIELDS,
    LoginResult,
    LookupResult,
    SecretMetadata,
    SecretResult,
    UnwrapNotification,
)
from core.notify import send_unwrap_notification
from core.paths import normalize_endpoint, resolve_capabilities_path, strip_leading_slash, summarize_capabilities

logger = logging.getLogger("vaultcheck.api.vault")

router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _request_id(op: str) -> str:
    """Short per-request tag used as a log prefix, e.g. LOGIN-3fa9c1."""
    return f"{op}-{secrets.token_hex(3)}"


def _mask(value: Optional[str]) -> Optional[str]:
    """First 8 characters of an identifier, for logs."""
    return f"{value[:8]}..." if value else None


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _error(message: str, details: Any = None) -> dict:
    return ErrorResponse(error=message, details=details).model_dump(exclude_none=True)


def _upstream_failure(rid: str, op: str, exc: Exception, start: float) -> HTTPException:
    """Translate a VaultError or transport error into an HTTPException."""
    if isinstance(exc, vault.VaultError):
        logger.warning("[%s] Vault answered %d %s after %.1fms", rid, exc.status, exc.reason, _elapsed_ms(start))
        logger.debug("[%s] Vault error body: %s", rid, exc.body)
        return HTTPException(
            status_code=exc.status,
            detail=_error(f"{op} failed: {exc.status} {exc.reason}", exc.body),
        )
    logger.error("[%s] Request failed after %.1fms: %s", rid, _elapsed_ms(start), exc)
    return HTTPException(status_code=500, detail=_error(f"Network error: {exc}"))


def _client(request: Request) -> VaultHTTPClient:
    return request.app.state.http


def _settings(request: Request) -> Settings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# POST /vault/login
# ---------------------------------------------------------------------------


@router.post("/vault/login", response_model=LoginResponse)
@limiter.limit(_login_rate_limit)
def login(request: Request, body: LoginRequest) -> LoginResponse:
    """AppRole login with the secret_id read from a Kubernetes Secret.

    The secret_id is resolved here, used for this one Vault call, and
    dropped. It is never echoed back or logged.
    """
    rid = _request_id("LOGIN")
    start = time.perf_counter()
    logger.debug(
        "[%s] endpoint=%s accessId=%s secret=%s/%s key=%s",
        rid,
        body.endpoint,
        _mask(body.access_id),
        body.k8s_namespace,
        body.k8s_secret_name,
        body.secret_key,
    )

    try:
        secret_id = fetch_secret_value(
            body.k8s_namespace,
            body.k8s_secret_name,
            body.secret_key,
            kubeconfig=_settings(request).kubeconfig_path(),
        )
    except KubeSecretError as exc:
        logger.warning("[%s] Kubernetes secret lookup failed: %s", rid, exc.message)
        raise HTTPException(status_code=exc.status_code, detail=_error(exc.message)) from exc

    try:
        raw = vault.approle_login(_client(request), body.endpoint, body.access_id, secret_id)
    except (vault.VaultError, requests.RequestException) as exc:
        raise _upstream_failure(rid, "Vault login", exc, start) from exc

    result = LoginResult.from_vault(raw)
    logger.debug("[%s] Token received: %s, renewable: %s", rid, bool(result.token), result.renewable)
    logger.info("[%s] Login completed in %.1fms", rid, _elapsed_ms(start))
    return LoginResponse(data=LoginData(**vars(result)))


# ---------------------------------------------------------------------------
# POST /vault/lookup
# ---------------------------------------------------------------------------


@router.post("/vault/lookup", response_model=LookupResponse)
def lookup(request: Request, body: TokenRequest) -> LookupResponse:
    """Return a fixed projection of the token's lookup-self data."""
    rid = _request_id("LOOKUP")
    start = time.perf_counter()
    logger.debug("[%s] endpoint=%s tokenLength=%d", rid, body.endpoint, len(body.token))

    try:
        raw = vault.lookup_self(_client(request), body.endpoint, body.token)
    except (vault.VaultError, requests.RequestException) as exc:
        raise _upstream_failure(rid, "Token lookup", exc, start) from exc

    result = LookupResult.from_vault(raw)
    logger.debug("[%s] Token id=%s ttl=%s policies=%s", rid, _mask(result.id), result.ttl, result.policies)
    logger.info("[%s] Lookup completed in %.1fms", rid, _elapsed_ms(start))
    return LookupResponse(data=LookupData.from_result(result))


# ---------------------------------------------------------------------------
# POST /vault/revoke-self
# ---------------------------------------------------------------------------


@router.post("/vault/revoke-self", response_model=RevokeResponse)
def revoke_self(request: Request, body: TokenRequest) -> RevokeResponse:
    """Revoke the caller's token. Vault's empty 204 counts as success."""
    rid = _request_id("REVOKE")
    start = time.perf_counter()

    try:
        vault.revoke_self(_client(request), body.endpoint, body.token)
    except (vault.VaultError, requests.RequestException) as exc:
        raise _upstream_failure(rid, "Token revoke", exc, start) from exc

    logger.info("[%s] Revoke completed in %.1fms", rid, _elapsed_ms(start))
    return RevokeResponse()


# ---------------------------------------------------------------------------
# POST /vault/validate-access
# ---------------------------------------------------------------------------


@router.post("/vault/validate-access", response_model=CapabilitiesResponse)
def validate_access(request: Request, body: CapabilitiesRequest) -> CapabilitiesResponse:
    """Check the token's capabilities on a secret path.

    secretPath "/v1/kv/data/app" is checked as "v1/kv/data/app";
    "myapp/config" is checked as "secret/data/myapp/config".
    """
    rid = _request_id("VALIDATE")
    start = time.perf_counter()
    path = resolve_capabilities_path(body.secret_path)
    logger.debug("[%s] Capabilities check path: %s -> %s", rid, body.secret_path, path)

    try:
        raw = vault.capabilities_self(_client(request), body.endpoint, body.token, path)
    except (vault.VaultError, requests.RequestException) as exc:
        raise _upstream_failure(rid, "Permission validation", exc, start) from exc

    result = summarize_capabilities(body.secret_path, vault.extract_capabilities(raw, path))
    logger.info("[%s] %s (%.1fms)", rid, result.summary, _elapsed_ms(start))
    return CapabilitiesResponse(data=CapabilitiesData.from_result(result))


# ---------------------------------------------------------------------------
# POST /vault/get-secret
# ---------------------------------------------------------------------------


@router.post("/vault/get-secret", response_model=SecretResponse)
def get_secret(request: Request, body: SecretRequest) -> SecretResponse:
    """Read a secret. With keyName, return only that key; otherwise all keys."""
    rid = _request_id("SECRET")
    start = time.perf_counter()

    try:
        raw = vault.read_secret(_client(request), body.endpoint, body.token, body.secret_path)
    except (vault.VaultError, requests.RequestException) as exc:
        raise _upstream_failure(rid, "Secret retrieval", exc, start) from exc

    secret_data, raw_meta = vault.split_secret_payload(raw)
    metadata = SecretMetadata(**{name: raw_meta.get(name) for name in SECRET_METADATA_FIELDS})

    key_name = (body.key_name or "").strip()
    if key_name:
        result = SecretResult(
            secret_path=body.secret_path,
            requested_single_key=True,
            metadata=metadata,
            key_name=key_name,
            key_value=secret_data.get(key_name),
            key_exists=key_name in secret_data,
        )
    else:
        result = SecretResult(
            secret_path=body.secret_path,
            requested_single_key=False,
            metadata=metadata,
            all_secrets=secret_data,
            all_keys=list(secret_data),
            total_keys=len(secret_data),
        )

    logger.info("[%s] Secret read completed in %.1fms", rid, _elapsed_ms(start))
    return SecretResponse(data=SecretData.from_result(result))


# ---------------------------------------------------------------------------
# POST /vault/sys/capabilities-self
# ---------------------------------------------------------------------------


@router.post("/vault/sys/capabilities-self")
def capabilities_self(request: Request, body: CapabilitiesRequest) -> dict:
    """Raw capabilities-self passthrough. Only a leading slash is removed."""
    rid = _request_id("CAPS")
    start = time.perf_counter()
    path = strip_leading_slash(body.secret_path)

    try:
        raw = vault.capabilities_self(_client(request), body.endpoint, body.token, path)
    except (vault.VaultError, requests.RequestException) as exc:
        raise _upstream_failure(rid, "Permission validation", exc, start) from exc

    logger.info("[%s] Capabilities request completed in %.1fms", rid, _elapsed_ms(start))
    return raw


# ---------------------------------------------------------------------------
# POST /vault/sys/wrapping/unwrap
# ---------------------------------------------------------------------------


def _client_ip(request: Request) -> str:
    return request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip") or "unknown"


def _notify_unwrap(settings: Settings, emails: str, data: UnwrapNotification, rid: str) -> None:
    """Background task body. Runs after the response has been sent."""
    try:
        outcome = send_unwrap_notification(settings, emails, data)
    except Exception:
        logger.exception("[%s] Failed to send unwrap notification", rid)
        return
    logger.debug("[%s] Notification result: %s", rid, outcome)


@router.post("/vault/sys/wrapping/unwrap")
@limiter.limit(_login_rate_limit)
def unwrap(request: Request, body: UnwrapRequest) -> JSONResponse:
    """Unwrap a response-wrapped token and return Vault's body unchanged.

    If notificationEmail is set, a notification is scheduled as a background
    task on the response -- for failures as well as successes. It runs after
    the response is sent, at most once, and its outcome never changes what
    the caller receives.
    """
    rid = _request_id("UNWRAP")
    start = time.perf_counter()
    endpoint = normalize_endpoint(body.endpoint)
    logger.debug(
        "[%s] endpoint=%s wrappedTokenLength=%d notify=%s",
        rid,
        endpoint,
        len(body.wrapped_token),
        body.notification_email or "-",
    )

    try:
        raw = vault.unwrap(_client(request), endpoint, body.wrapped_token)
    except (vault.VaultError, requests.RequestException) as exc:
        failure = _upstream_failure(rid, "Token unwrap", exc, start)
        status_code, content = failure.status_code, failure.detail
        if isinstance(exc, vault.VaultError):
            notice = {**content, "status": exc.status, "statusText": exc.reason}
        else:
            notice = {**content, "type": "network_error"}
        succeeded = False
    else:
        logger.info("[%s] Unwrap completed in %.1fms", rid, _elapsed_ms(start))
        status_code, content, notice = 200, raw, raw
        succeeded = True

    task = None
    if body.notification_email:
        data = UnwrapNotification(
            timestamp=datetime.now(timezone.utc).isoformat(),
            endpoint=endpoint,
            success=succeeded,
            user_agent=request.headers.get("user-agent"),
            ip_address=_client_ip(request),
            response=notice,
        )
        task = BackgroundTask(_notify_unwrap, _settings(request), body.notification_email, data, rid)
        logger.debug("[%s] Notification scheduled for %s", rid, body.notification_email)

    return JSONResponse(status_code=status_code, content=content, background=task)

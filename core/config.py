"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the validator happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.
The one exception is the CLI (main.py), whose per-invocation VAULT_ENDPOINT,
VAULT_ROLE_ID and VAULT_SECRET_ID fallbacks are not application settings.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      lifespan in api/main.py copies it onto app.state so handlers read the
      same instance through request.app.state.settings.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. smtp_host -> SMTP_HOST). Type coercion and validation are built in.

List-valued settings (VAULT_ENDPOINTS, K8S_NAMESPACES, ...) are kept as raw
comma-separated strings and parsed by the helper methods below, so a malformed
value degrades to the hardcoded default instead of failing startup.

Layer rule: core/ is the kernel. This module may not import from api/ or web/.
"""

import logging
from functools import lru_cache
from typing import Optional, Union

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINTS = ["http://localhost:8200"]
DEFAULT_NAMESPACES = ["default"]
DEFAULT_TITLE = "HashiCorp Vault Credential Validator"

# Hostnames shipped in sample .env files. Treated the same as an unset host.
SMTP_PLACEHOLDER_HOSTS = frozenset({"smtp.example.com", "xxx.example.com"})

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # UI
    # ------------------------------------------------------------------

    app_title: str = ""
    # Comma-separated; only entries starting with "http" are kept.
    vault_endpoints: str = ""
    k8s_namespaces: str = ""

    # ------------------------------------------------------------------
    # Outbound HTTP (Vault)
    # ------------------------------------------------------------------

    vault_timeout: float = 10.0
    # Path to a PEM bundle used to verify Vault's certificate. Empty means
    # the requests/certifi default trust store.
    vault_ca_bundle: str = ""
    vault_skip_verify: bool = False

    # ------------------------------------------------------------------
    # Kubernetes
    # ------------------------------------------------------------------

    # When set, load this kubeconfig file; otherwise use in-cluster config.
    kubeconfig: str = ""

    # ------------------------------------------------------------------
    # SMTP (optional -- empty host means email notifications are disabled)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 25
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "noreply@example.com"
    # Connect and server greeting; smtp_timeout covers the rest of the session.
    smtp_greeting_timeout: float = 5.0
    smtp_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    log_level: str = "info"
    debug: bool = False

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    allowed_hosts: str = "*"
    cors_origins: str = "http://localhost,http://localhost:3000,http://127.0.0.1"
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def endpoint_list(self) -> list[str]:
        """Return the configured Vault endpoints, or the localhost default."""
        endpoints = [e for e in _split_csv(self.vault_endpoints) if e.startswith("http")]
        return endpoints or list(DEFAULT_ENDPOINTS)

    def namespace_list(self) -> list[str]:
        """Return the configured Kubernetes namespaces, or ["default"]."""
        return _split_csv(self.k8s_namespaces) or list(DEFAULT_NAMESPACES)

    def title(self) -> str:
        return self.app_title.strip() or DEFAULT_TITLE

    def smtp_configured(self) -> bool:
        """True when SMTP_HOST is set to something other than a sample value."""
        host = self.smtp_host.strip()
        return bool(host) and host not in SMTP_PLACEHOLDER_HOSTS

    def effective_log_level(self) -> int:
        """Translate LOG_LEVEL/DEBUG into a logging module level.

        DEBUG=true always wins. An unknown LOG_LEVEL falls back to INFO.
        """
        if self.debug:
            return logging.DEBUG
        name = self.log_level.strip().lower()
        if name not in _LOG_LEVELS:
            return logging.INFO
        return getattr(logging, name.upper())

    def tls_verify(self) -> Union[bool, str]:
        """Value for requests' ``verify`` argument."""
        if self.vault_skip_verify:
            return False
        return self.vault_ca_bundle or True

    def host_list(self) -> list[str]:
        return _split_csv(self.allowed_hosts) or ["*"]

    def origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    def kubeconfig_path(self) -> Optional[str]:
        return self.kubeconfig.strip() or None


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or build Settings(...) directly.
    """
    return Settings()

#!/usr/bin/env python3
"""
vault-check -- Command-line AppRole check against HashiCorp Vault.

Runs the same flow as the browser form, end to end, with the AppRole
secret_id passed directly instead of read from Kubernetes:

  login -> lookup (a failure here is only a warning) -> get-secret

Progress goes to stderr, JSON results go to stdout, so the output can be
piped into jq.

Usage:
  python main.py -e http://localhost:8200 --role_id ROLE --secret_id SECRET --secret-path myapp/config
  python main.py --secret-path myapp/config --no-color
  python main.py --check-smtp

Environment variables:
  VAULT_ENDPOINT    Default endpoint if -e is not given
  VAULT_ROLE_ID     Default role ID if --role_id is not given
  VAULT_SECRET_ID   Default secret ID if --secret_id is not given
  NO_COLOR          Disable ANSI colors (same as --no-color)
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Optional

import requests

from core import vault
from core.config import get_settings
from core.http import VaultHTTPClient
from core.models import LoginResult, LookupResult
from core.notify import check_email_configuration
from core.paths import normalize_endpoint, strip_leading_slash

VERSION = "1.0.0"

logger = logging.getLogger("vaultcheck.cli")

# ---------------------------------------------------------------------------
# Colored stderr logging
# ---------------------------------------------------------------------------

_LEVEL_COLORS = {
    logging.DEBUG: "\033[0;34m",
    logging.INFO: "\033[0;34m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[0;31m",
}
_SUCCESS_COLOR = "\033[0;32m"
_RESET = "\033[0m"

# Marker attribute for log records that report a completed step.
_SUCCESS = {"success": True}


def _use_color(stream) -> bool:
    """Return True if ``stream`` is a TTY and NO_COLOR is unset."""
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class _CLIFormatter(logging.Formatter):
    """Formats records as "[LEVEL] message", optionally with ANSI colors."""

    def __init__(self, color: bool) -> None:
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        success = getattr(record, "success", False)
        label = "SUCCESS" if success else record.levelname
        message = record.getMessage()
        if not self.color:
            return f"[{label}] {message}"
        color = _SUCCESS_COLOR if success else _LEVEL_COLORS.get(record.levelno, "")
        return f"{color}[{label}]{_RESET} {message}"


def _configure_logging(color: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_CLIFormatter(color))
    root = logging.getLogger("vaultcheck")
    root.handlers[:] = [handler]
    root.setLevel(logging.INFO)
    root.propagate = False


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


# ---------------------------------------------------------------------------
# Flow steps
# ---------------------------------------------------------------------------


def do_login(client: VaultHTTPClient, endpoint: str, role_id: str, secret_id: str) -> Optional[str]:
    """AppRole login. Prints the result and returns the client token, or None."""
    logger.info("Attempting AppRole authentication...")
    try:
        raw = vault.approle_login(client, endpoint, role_id, secret_id)
    except vault.VaultError as exc:
        logger.error("Login failed: %s %s %s", exc.status, exc.reason, exc.body or "")
        return None
    except requests.RequestException as exc:
        logger.error("Login request failed: %s", exc)
        return None

    result = LoginResult.from_vault(raw)
    if not result.token:
        logger.error("Failed to extract token from login response")
        return None

    logger.info("Login successful! Token obtained.", extra=_SUCCESS)
    _emit(
        {
            "success": True,
            "token": result.token,
            "renewable": bool(result.renewable),
            "lease_duration": result.lease_duration or 0,
            "policies": (result.auth or {}).get("policies", []),
        }
    )
    return result.token


def do_lookup(client: VaultHTTPClient, endpoint: str, token: str) -> bool:
    logger.info("Looking up token information...")
    try:
        raw = vault.lookup_self(client, endpoint, token)
    except vault.VaultError as exc:
        logger.error("Token lookup failed: %s %s %s", exc.status, exc.reason, exc.body or "")
        return False
    except requests.RequestException as exc:
        logger.error("Token lookup request failed: %s", exc)
        return False

    result = LookupResult.from_vault(raw)
    logger.info("Token lookup successful!", extra=_SUCCESS)
    _emit(
        {
            "success": True,
            "data": {
                "id": result.id,
                "display_name": result.display_name,
                "policies": result.policies or [],
                "ttl": result.ttl,
                "creation_time": result.creation_time,
                "expire_time": result.expire_time,
                "renewable": bool(result.renewable),
            },
        }
    )
    return True


def do_get_secret(client: VaultHTTPClient, endpoint: str, token: str, secret_path: str) -> bool:
    """Read every key at ``secret_path`` under the default KV v2 mount."""
    path = strip_leading_slash(secret_path)
    logger.info("Retrieving secret from path: %s", path)
    try:
        raw = vault.read_secret(client, endpoint, token, path)
    except vault.VaultError as exc:
        logger.error("Secret retrieval failed: %s %s %s", exc.status, exc.reason, exc.body or "")
        return False
    except requests.RequestException as exc:
        logger.error("Secret retrieval request failed: %s", exc)
        return False

    secret_data, metadata = vault.split_secret_payload(raw)
    logger.info("Secret retrieved successfully!", extra=_SUCCESS)
    _emit(
        {
            "success": True,
            "data": {
                "secret_path": path,
                "all_secrets": secret_data,
                "all_keys": list(secret_data),
                "total_keys": len(secret_data),
                "requested_single_key": False,
                "metadata": metadata,
            },
        }
    )
    return True


def _check_smtp() -> int:
    settings = get_settings()
    if not settings.smtp_configured():
        logger.error("SMTP is not configured. Set SMTP_HOST (and SMTP_PORT, SMTP_USER, ...)")
        return 1
    logger.info("Testing SMTP connection to %s:%d...", settings.smtp_host, settings.smtp_port)
    if not check_email_configuration(settings):
        logger.error("SMTP configuration test failed")
        return 1
    logger.info("SMTP server accepted the connection", extra=_SUCCESS)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-check",
        description=f"HashiCorp Vault Secret Checker CLI v{VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py -e http://localhost:8200 --role_id xxx --secret_id yyy --secret-path myapp/config
  VAULT_ENDPOINT=https://vault.internal:8200 python main.py --secret-path myapp/config
  python main.py --check-smtp
        """,
    )
    parser.add_argument(
        "-e",
        "--endpoint",
        metavar="ENDPOINT",
        help="Vault endpoint URL (default: $VAULT_ENDPOINT)",
    )
    parser.add_argument(
        "--role_id",
        metavar="ROLE_ID",
        help="Role ID for AppRole authentication (default: $VAULT_ROLE_ID)",
    )
    parser.add_argument(
        "--secret_id",
        metavar="SECRET_ID",
        help="Secret ID for AppRole authentication (default: $VAULT_SECRET_ID)",
    )
    parser.add_argument(
        "--secret-path",
        metavar="PATH",
        help="Secret path to retrieve, e.g. myapp/config",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI color codes in log output",
    )
    parser.add_argument(
        "--check-smtp",
        action="store_true",
        help="Test the SMTP settings (SMTP_HOST, ...) and exit",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(color=not args.no_color and _use_color(sys.stderr))

    if args.check_smtp:
        return _check_smtp()

    endpoint = args.endpoint or os.environ.get("VAULT_ENDPOINT")
    role_id = args.role_id or os.environ.get("VAULT_ROLE_ID")
    secret_id = args.secret_id or os.environ.get("VAULT_SECRET_ID")

    missing = [
        message
        for value, message in (
            (endpoint, "Endpoint is required. Use -e/--endpoint or set VAULT_ENDPOINT environment variable"),
            (role_id, "Role ID is required. Use --role_id or set VAULT_ROLE_ID environment variable"),
            (secret_id, "Secret ID is required. Use --secret_id or set VAULT_SECRET_ID environment variable"),
            (args.secret_path, "Secret path is required. Use --secret-path"),
        )
        if not value
    ]
    if missing:
        for message in missing:
            logger.error(message)
        parser.print_help(sys.stderr)
        return 1

    endpoint = normalize_endpoint(endpoint)
    logger.info("Using endpoint: %s", endpoint)
    logger.info("Starting full flow: login -> lookup -> get-secret")

    settings = get_settings()
    client = VaultHTTPClient(timeout=settings.vault_timeout, verify=settings.tls_verify())
    try:
        token = do_login(client, endpoint, role_id, secret_id)
        if token is None:
            logger.error("Login failed, aborting")
            return 1

        print("---", file=sys.stderr)
        if not do_lookup(client, endpoint, token):
            logger.warning("Token lookup failed, but continuing with secret retrieval")

        print("---", file=sys.stderr)
        if not do_get_secret(client, endpoint, token, args.secret_path):
            logger.error("Secret retrieval failed")
            return 1
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

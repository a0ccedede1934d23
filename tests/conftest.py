"""
tests/conftest.py -- Shared test fixtures for the Vault credential validator.

This module provides:
  - make_settings(): Settings built from keyword overrides, ignoring .env
  - _patch_lifespan(): wires test settings and a mock HTTP client into
    app.state, bypassing the real startup
  - api_client: module-scoped (client, http) pair for route tests
  - vault_http: the mock VaultHTTPClient, reset before each test
  - vault_response: factory for real requests.Response objects

Design: route tests go through the full ASGI app (asgi.app, so the web router
is mounted too) and stop at the VaultHTTPClient boundary. The mock client
returns real requests.Response objects, so core.vault's status and body
handling runs exactly as it does against a live Vault.

Rate limiting is switched off for the whole session so repeated login and
unwrap calls never trip the limiter; test_rate_limit.py re-enables it locally.
"""

from __future__ import annotations

import json
from collections.abc import Generator
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from core.config import Settings
from core.http import VaultHTTPClient

limiter.enabled = False

TEST_ENDPOINTS = "http://vault-a.internal:8200, https://vault-b.internal:8200/, not-a-url"
TEST_NAMESPACES = "apps, platform"
TEST_TITLE = "Test Vault Validator"


def make_settings(**overrides: Any) -> Settings:
    """Settings with test defaults. Never reads the developer's .env file."""
    values: dict[str, Any] = {
        "app_title": TEST_TITLE,
        "vault_endpoints": TEST_ENDPOINTS,
        "k8s_namespaces": TEST_NAMESPACES,
        "smtp_host": "",
        "kubeconfig": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _patch_lifespan(settings: Settings, http: MagicMock):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.http = http
        yield

    return test_lifespan


def _make_response(status_code: int, body: Any = None, reason: Optional[str] = None) -> requests.Response:
    """Build a requests.Response the way the transport adapter would.

    body=None gives an empty body (e.g. 204), a str is sent as-is, anything
    else is JSON-encoded.
    """
    resp = requests.Response()
    resp.status_code = status_code
    resp.reason = reason if reason is not None else HTTPStatus(status_code).phrase
    if body is None:
        resp._content = b""
    elif isinstance(body, str):
        resp._content = body.encode("utf-8")
    else:
        resp._content = json.dumps(body).encode("utf-8")
    resp.encoding = "utf-8"
    return resp


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, MagicMock], None, None]:
    """Yield (client, http) where http stands in for the shared VaultHTTPClient."""
    http = MagicMock(spec=VaultHTTPClient)
    app.router.lifespan_context = _patch_lifespan(make_settings(), http)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, http


@pytest.fixture
def vault_http(api_client: tuple[TestClient, MagicMock]) -> MagicMock:
    _, http = api_client
    http.reset_mock(return_value=True, side_effect=True)
    return http


@pytest.fixture
def client(api_client: tuple[TestClient, MagicMock]) -> TestClient:
    return api_client[0]


@pytest.fixture
def vault_response():
    return _make_response

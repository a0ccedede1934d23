"""
tests/test_web.py -- Tests for the browser form (web/routes.py).

The page must render from settings alone, and the set of fields it is allowed
to persist in localStorage must never include a credential.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from core.config import Settings
from web.routes import PERSISTED_FIELDS, SENSITIVE_FIELDS, page_context


class TestPersistedFields:
    def test_fixed_set(self) -> None:
        assert set(PERSISTED_FIELDS) == {
            "endpoint",
            "accessId",
            "secretPath",
            "keyName",
            "authMethod",
            "k8sNamespace",
            "k8sSecretName",
            "secretKey",
        }

    def test_no_credentials(self) -> None:
        assert SENSITIVE_FIELDS == {"accessKey", "token", "wrappedToken"}
        assert not SENSITIVE_FIELDS & set(PERSISTED_FIELDS)

    def test_storage_keys_are_prefixed(self) -> None:
        assert all(key == f"vault-{field}" for field, key in PERSISTED_FIELDS.items())


class TestPageContext:
    def test_defaults_follow_settings(self) -> None:
        settings = Settings(_env_file=None, vault_endpoints="https://vault:8200,http://dev:8200", smtp_host="")
        ctx = page_context(settings)
        assert ctx["endpoints"] == ["https://vault:8200", "http://dev:8200"]
        assert ctx["field_defaults"]["endpoint"] == "https://vault:8200"
        assert ctx["field_defaults"]["secretKey"] == "secret-id"
        assert ctx["email_configured"] is False

    def test_defaults_never_include_credentials(self) -> None:
        ctx = page_context(Settings(_env_file=None))
        assert not SENSITIVE_FIELDS & set(ctx["field_defaults"])


class TestIndexPage:
    def test_renders_title_and_endpoints(self, client: TestClient) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "<title>Test Vault Validator</title>" in resp.text
        assert '<option value="http://vault-a.internal:8200">' in resp.text
        assert '"accessId": "vault-accessId"' in resp.text

    def test_email_field_disabled_without_smtp(self, client: TestClient) -> None:
        resp = client.get("/")
        assert "SMTP Not Configured" in resp.text

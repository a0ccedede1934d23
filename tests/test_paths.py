"""
tests/test_paths.py -- Unit tests for core/paths.py.

Pure functions only: URL building for both secret-path forms and the
capability -> permission summary the validate-access route returns.
"""

from __future__ import annotations

import pytest

from core.paths import (
    derive_permissions,
    normalize_endpoint,
    resolve_capabilities_path,
    resolve_secret_url,
    strip_leading_slash,
    summarize_capabilities,
)


class TestEndpoint:
    def test_strips_one_trailing_slash(self) -> None:
        assert normalize_endpoint("https://vault:8200/") == "https://vault:8200"

    def test_only_one_slash_is_stripped(self) -> None:
        assert normalize_endpoint("https://vault:8200//") == "https://vault:8200/"

    def test_unchanged_without_slash(self) -> None:
        assert normalize_endpoint("https://vault:8200") == "https://vault:8200"


class TestPathResolution:
    @pytest.mark.parametrize(
        ("secret_path", "expected"),
        [
            ("myapp/config", "secret/data/myapp/config"),
            ("/v1/kv/data/app", "v1/kv/data/app"),
            ("/secret/data/x", "secret/data/x"),
        ],
    )
    def test_capabilities_path(self, secret_path: str, expected: str) -> None:
        assert resolve_capabilities_path(secret_path) == expected

    def test_relative_secret_url(self) -> None:
        assert resolve_secret_url("http://vault:8200/", "myapp/config") == "http://vault:8200/v1/secret/data/myapp/config"

    def test_absolute_secret_url(self) -> None:
        assert resolve_secret_url("http://vault:8200", "/v1/kv/data/app") == "http://vault:8200/v1/kv/data/app"

    def test_strip_leading_slash(self) -> None:
        assert strip_leading_slash("/a/b") == "a/b"
        assert strip_leading_slash("a/b") == "a/b"


class TestPermissions:
    def test_exact_membership(self) -> None:
        perms = derive_permissions(["READ", "read-only", "list", "update"])
        assert (perms.read, perms.list, perms.write, perms.delete) == (False, True, False, False)

    def test_root_grants_nothing_individually(self) -> None:
        perms = derive_permissions(["root"])
        assert not any((perms.read, perms.list, perms.write, perms.delete))

    def test_summary_and_access(self) -> None:
        result = summarize_capabilities("myapp/config", ["read", "list"])
        assert result.resolved_path == "secret/data/myapp/config"
        assert result.has_access is True
        assert result.summary == "Token has read, list permissions on this path"

    def test_list_alone_is_access(self) -> None:
        assert summarize_capabilities("a", ["list"]).has_access is True

    def test_write_alone_is_not_access(self) -> None:
        result = summarize_capabilities("a", ["create", "update", "write"])
        assert result.has_access is False
        assert result.permissions.write is True

    def test_no_capabilities(self) -> None:
        result = summarize_capabilities("a", [])
        assert result.summary == "Token has no permissions on this path"
        assert result.has_access is False

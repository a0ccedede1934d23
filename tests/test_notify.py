"""
tests/test_notify.py -- Unit tests for core/notify.py.

smtplib.SMTP / SMTP_SSL are patched at the core.notify module level, so no
message ever leaves the test process. The patched class returns a MagicMock
connection that supports the context manager protocol.
"""

from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from core.config import Settings
from core.models import UnwrapNotification
from core.notify import (
    check_email_configuration,
    format_unwrap_notification,
    parse_email_addresses,
    send_email,
    send_unwrap_notification,
)


def make_settings(**overrides) -> Settings:
    values = {"smtp_user": "", "smtp_password": "", "smtp_secure": False, "app_title": ""}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def notification() -> UnwrapNotification:
    return UnwrapNotification(
        timestamp="2024-05-01T10:00:00+00:00",
        endpoint="https://vault.internal:8200",
        success=True,
        user_agent="Mozilla/5.0",
        ip_address="10.1.2.3",
        response={"data": {"secret_id": "abc"}},
    )


def _smtp_mock() -> MagicMock:
    smtp_cls = MagicMock()
    conn = smtp_cls.return_value.__enter__.return_value
    conn.noop.return_value = (250, b"OK")
    return smtp_cls


class TestParseEmailAddresses:
    def test_splits_on_commas_and_whitespace(self) -> None:
        assert parse_email_addresses("a@x.org, b@y.org\nc@z.org") == ["a@x.org", "b@y.org", "c@z.org"]

    def test_drops_malformed_addresses(self) -> None:
        assert parse_email_addresses("a@x.org, not-an-email, b@nodot, @x.org") == ["a@x.org"]

    def test_empty(self) -> None:
        assert parse_email_addresses("") == []


class TestFormatUnwrapNotification:
    def test_success_subject_and_body(self, notification: UnwrapNotification) -> None:
        subject, body = format_unwrap_notification(notification, "Vault Validator")
        assert subject == "Token Unwrap Notification - Success"
        assert "Status: SUCCESS" in body
        assert "Endpoint: https://vault.internal:8200" in body
        assert "IP Address: 10.1.2.3" in body
        assert '"secret_id": "abc"' in body
        assert body.endswith("generated automatically by the Vault Validator system.")

    def test_failure_without_details(self, notification: UnwrapNotification) -> None:
        notification.success = False
        notification.user_agent = None
        notification.response = None
        subject, body = format_unwrap_notification(notification, "Vault Validator")
        assert subject == "Token Unwrap Notification - Failed"
        assert "User Agent: Unknown" in body
        assert "No response data available" in body


class TestSendUnwrapNotification:
    def test_smtp_not_configured_skips_network(self, notification: UnwrapNotification) -> None:
        settings = make_settings(smtp_host="")
        with patch("core.notify.smtplib.SMTP") as smtp_cls:
            result = send_unwrap_notification(settings, "sec@example.org", notification)

        assert (result.success, result.failed) == (0, 0)
        assert result.details == ["SMTP not configured"]
        smtp_cls.assert_not_called()

    def test_placeholder_host_counts_as_not_configured(self, notification: UnwrapNotification) -> None:
        settings = make_settings(smtp_host="smtp.example.com")
        with patch("core.notify.smtplib.SMTP") as smtp_cls:
            result = send_unwrap_notification(settings, "sec@example.org", notification)
        assert result.details == ["SMTP not configured"]
        smtp_cls.assert_not_called()

    def test_no_valid_addresses(self, notification: UnwrapNotification) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        with patch("core.notify.smtplib.SMTP") as smtp_cls:
            result = send_unwrap_notification(settings, "nobody, at-all", notification)
        assert (result.success, result.failed) == (0, 0)
        assert result.details == ["No valid email addresses found"]
        smtp_cls.assert_not_called()

    def test_one_message_per_recipient(self, notification: UnwrapNotification) -> None:
        settings = make_settings(smtp_host="mail.corp.local", smtp_port=587)
        smtp_cls = _smtp_mock()
        with patch("core.notify.smtplib.SMTP", smtp_cls):
            result = send_unwrap_notification(settings, "a@x.org, b@y.org", notification)

        assert (result.success, result.failed) == (2, 0)
        conn = smtp_cls.return_value.__enter__.return_value
        assert conn.send_message.call_count == 2
        recipients = [call.args[0]["To"] for call in conn.send_message.call_args_list]
        assert recipients == ["a@x.org", "b@y.org"]
        smtp_cls.return_value.connect.assert_called_with("mail.corp.local", 587)

    def test_one_failure_does_not_block_others(self, notification: UnwrapNotification) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        smtp_cls = _smtp_mock()
        conn = smtp_cls.return_value.__enter__.return_value
        conn.send_message.side_effect = [smtplib.SMTPRecipientsRefused({"a@x.org": (550, b"no")}), None]
        with patch("core.notify.smtplib.SMTP", smtp_cls):
            result = send_unwrap_notification(settings, "a@x.org b@y.org", notification)

        assert (result.success, result.failed) == (1, 1)
        assert result.details == ["Failed to send to a@x.org", "Successfully sent to b@y.org"]


class TestSendEmail:
    def test_secure_uses_smtp_ssl_and_logs_in(self) -> None:
        settings = make_settings(
            smtp_host="mail.corp.local", smtp_port=465, smtp_secure=True, smtp_user="bot", smtp_password="pw"
        )
        smtp_ssl = _smtp_mock()
        with patch("core.notify.smtplib.SMTP_SSL", smtp_ssl), patch("core.notify.smtplib.SMTP") as plain:
            assert send_email(settings, "a@x.org", "subject", "body") is True

        plain.assert_not_called()
        conn = smtp_ssl.return_value.__enter__.return_value
        conn.login.assert_called_once_with("bot", "pw")
        message = conn.send_message.call_args.args[0]
        assert message["From"] == "noreply@example.com"

    def test_no_login_without_credentials(self) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        smtp_cls = _smtp_mock()
        with patch("core.notify.smtplib.SMTP", smtp_cls):
            send_email(settings, "a@x.org", "subject", "body")
        smtp_cls.return_value.__enter__.return_value.login.assert_not_called()

    def test_connection_refused_returns_false(self) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        with patch("core.notify.smtplib.SMTP", side_effect=ConnectionRefusedError("refused")):
            assert send_email(settings, "a@x.org", "subject", "body") is False

    def test_invalid_address_is_rejected_without_connecting(self) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        with patch("core.notify.smtplib.SMTP") as smtp_cls:
            assert send_email(settings, "not-an-email", "subject", "body") is False
        smtp_cls.assert_not_called()


class TestConnect:
    def test_greeting_timeout_then_session_timeout(self) -> None:
        settings = make_settings(
            smtp_host="mail.corp.local", smtp_port=25, smtp_greeting_timeout=5.0, smtp_timeout=10.0
        )
        smtp_cls = _smtp_mock()
        with patch("core.notify.smtplib.SMTP", smtp_cls):
            send_email(settings, "a@x.org", "subject", "body")

        smtp_cls.assert_called_once_with(timeout=5.0)
        conn = smtp_cls.return_value
        conn.connect.assert_called_once_with("mail.corp.local", 25)
        conn.sock.settimeout.assert_called_once_with(10.0)
        assert conn.timeout == 10.0

    def test_failed_greeting_closes_connection(self) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        smtp_cls = _smtp_mock()
        smtp_cls.return_value.connect.side_effect = TimeoutError("timed out waiting for greeting")
        with patch("core.notify.smtplib.SMTP", smtp_cls):
            assert send_email(settings, "a@x.org", "subject", "body") is False
        smtp_cls.return_value.close.assert_called_once()


class TestCheckEmailConfiguration:
    def test_noop_ok(self) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        with patch("core.notify.smtplib.SMTP", _smtp_mock()):
            assert check_email_configuration(settings) is True

    def test_connect_failure(self) -> None:
        settings = make_settings(smtp_host="mail.corp.local")
        with patch("core.notify.smtplib.SMTP", side_effect=OSError("no route to host")):
            assert check_email_configuration(settings) is False

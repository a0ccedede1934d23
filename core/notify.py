"""
notify.py -- Optional email notification sent after a token unwrap.

Delivery is best-effort and at-most-once: one SMTP session per recipient, no
retries, and every failure is logged and counted rather than raised. Callers
schedule send_unwrap_notification() after the HTTP response is sent and never
look at the result except to log it.

SMTP is "configured" when SMTP_HOST is set to a real host -- see
Settings.smtp_configured(). When it is not, nothing touches the network.
"""

import json
import logging
import re
import smtplib
from email.message import EmailMessage

from .config import Settings
from .models import EmailSendResult, UnwrapNotification

logger = logging.getLogger("vaultcheck.notify")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SPLIT_RE = re.compile(r"[,\s]+")


def is_valid_email(address: str) -> bool:
    return bool(_EMAIL_RE.match(address))


def parse_email_addresses(raw: str) -> list[str]:
    """Split a comma/whitespace separated string into valid addresses."""
    if not raw:
        return []
    return [part for part in _SPLIT_RE.split(raw) if part and is_valid_email(part)]


def _connect(settings: Settings) -> smtplib.SMTP:
    """Connect within smtp_greeting_timeout, then widen to smtp_timeout."""
    cls = smtplib.SMTP_SSL if settings.smtp_secure else smtplib.SMTP
    conn = cls(timeout=settings.smtp_greeting_timeout)
    try:
        conn.connect(settings.smtp_host, settings.smtp_port)
    except (smtplib.SMTPException, OSError):
        conn.close()
        raise
    conn.timeout = settings.smtp_timeout
    conn.sock.settimeout(settings.smtp_timeout)
    return conn


def _authenticate(conn: smtplib.SMTP, settings: Settings) -> None:
    if settings.smtp_user and settings.smtp_password:
        conn.login(settings.smtp_user, settings.smtp_password)


def send_email(settings: Settings, to: str, subject: str, text: str) -> bool:
    """Send one plain-text message. Returns False on any failure."""
    if not is_valid_email(to):
        logger.error("Invalid email address format: %s", to)
        return False

    msg = EmailMessage()
    msg["From"] = settings.smtp_from_email
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)

    logger.debug("Sending email to=%s subject=%r from=%s", to, subject, settings.smtp_from_email)
    try:
        with _connect(settings) as conn:
            _authenticate(conn, settings)
            conn.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send email to=%s subject=%r: %s", to, subject, exc)
        return False
    logger.debug("Email sent to %s", to)
    return True


def format_unwrap_notification(data: UnwrapNotification, app_title: str) -> tuple[str, str]:
    """Return (subject, body) for an unwrap notification."""
    status = "Success" if data.success else "Failed"
    if data.response is not None:
        response = json.dumps(data.response, indent=2, default=str)
    else:
        response = "No response data available"
    body = (
        "Token Unwrap Notification\n"
        "\n"
        f"Status: {status.upper()}\n"
        f"Timestamp: {data.timestamp}\n"
        f"Endpoint: {data.endpoint}\n"
        f"User Agent: {data.user_agent or 'Unknown'}\n"
        f"IP Address: {data.ip_address or 'Unknown'}\n"
        "\n"
        "Response Data:\n"
        f"{response}\n"
        "\n"
        f"This notification was generated automatically by the {app_title} system."
    )
    return f"Token Unwrap Notification - {status}", body


def send_unwrap_notification(settings: Settings, emails: str, data: UnwrapNotification) -> EmailSendResult:
    """Notify every address in ``emails`` about an unwrap attempt.

    Skips without any network call when SMTP is not configured or no
    address parses; the reason is recorded in result.details.
    """
    result = EmailSendResult()

    if not settings.smtp_configured():
        logger.debug("SMTP not configured, skipping email notification")
        result.details.append("SMTP not configured")
        return result

    recipients = parse_email_addresses(emails)
    if not recipients:
        logger.debug("No valid email addresses found in %r", emails)
        result.details.append("No valid email addresses found")
        return result

    logger.debug("Sending unwrap notification to %d recipient(s): %s", len(recipients), recipients)
    subject, body = format_unwrap_notification(data, settings.title())

    for address in recipients:
        if send_email(settings, address, subject, body):
            result.success += 1
            result.details.append(f"Successfully sent to {address}")
        else:
            result.failed += 1
            result.details.append(f"Failed to send to {address}")

    logger.info("Unwrap notification sent: %d ok, %d failed", result.success, result.failed)
    return result


def check_email_configuration(settings: Settings) -> bool:
    """Open an SMTP session and issue NOOP. True if the server answers."""
    try:
        with _connect(settings) as conn:
            _authenticate(conn, settings)
            code, _ = conn.noop()
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP configuration test failed: %s", exc)
        return False
    return code == 250

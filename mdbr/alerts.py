from __future__ import annotations

import smtplib
from email.message import EmailMessage

from .kinds import ObjectKey
from .settings import settings


def _smtp_configured() -> bool:
    required = (
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        settings.email_from,
        settings.email_to,
    )
    return settings.enable_email and all(required)


def send_failure_alert(key: ObjectKey, fail_count: int, error: str) -> bool:
    """Mail the operator that ``key`` keeps failing to reconcile.

    Enabled with MDBR_ENABLE_EMAIL=true plus the MDBR_SMTP_* and
    MDBR_EMAIL_FROM / MDBR_EMAIL_TO variables. Returns whether a mail went out.
    """
    if not _smtp_configured():
        return False

    msg = EmailMessage()
    msg["From"] = settings.email_from
    msg["To"] = settings.email_to
    msg["Subject"] = f"MongoDB {key} failed to reconcile {fail_count} times"
    msg.set_content(f"Resource: {key}\nConsecutive failures: {fail_count}\nLast error: {error}\n")

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        return False
    return True

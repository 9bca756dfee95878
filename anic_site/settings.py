from __future__ import annotations

import os

from dotenv import load_dotenv

from anic_site.models import AppSettings, SmtpSettings

DEFAULT_MAIL_TO = "duvidas@anic.live"
DEFAULT_MAIL_FROM = "ANIC <no-reply@anic.live>"


def load_settings() -> AppSettings:
    load_dotenv()
    return AppSettings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3737")),
        mail_to=os.getenv("MAIL_TO") or DEFAULT_MAIL_TO,
        mail_from=os.getenv("MAIL_FROM") or DEFAULT_MAIL_FROM,
        smtp=load_smtp_settings(),
        static_dir=os.getenv("STATIC_DIR", "out"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        logs_dir=os.getenv("LOGS_DIR", "logs"),
    )


def load_smtp_settings() -> SmtpSettings | None:
    """Return SMTP settings, or None when host or port is missing.

    None selects the log-only development transport.
    """
    host = os.getenv("SMTP_HOST", "").strip()
    port = os.getenv("SMTP_PORT", "").strip()
    if not host or not port:
        return None
    return SmtpSettings(
        host=host,
        port=int(port),
        user=os.getenv("SMTP_USER") or None,
        password=os.getenv("SMTP_PASS") or None,
        timeout_sec=float(os.getenv("SMTP_TIMEOUT_SEC", "30")),
    )

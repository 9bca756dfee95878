from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
SECURE_SMTP_PORT = 465


class FormKind(str, Enum):
    CADASTRO = "cadastro"
    CONTATO = "contato"


class TransportKind(str, Enum):
    SMTP = "smtp"
    JSON = "json"


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    user: str | None = None
    password: str | None = None
    timeout_sec: float = 30.0

    @property
    def secure(self) -> bool:
        return self.port == SECURE_SMTP_PORT

    @property
    def has_auth(self) -> bool:
        return bool(self.user and self.password)


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    mail_to: str
    mail_from: str
    smtp: SmtpSettings | None
    static_dir: str
    log_level: str
    logs_dir: str

    @property
    def transport_kind(self) -> TransportKind:
        return TransportKind.SMTP if self.smtp is not None else TransportKind.JSON


@dataclass(frozen=True)
class DeliveryResult:
    message_id: str
    transport: TransportKind
    envelope_from: str
    envelope_to: list[str]

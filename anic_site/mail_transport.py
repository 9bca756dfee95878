from __future__ import annotations

import json
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import getaddresses, parseaddr
from typing import Protocol

from anic_site.models import AppSettings, DeliveryResult, SmtpSettings, TransportKind

logger = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    pass


class MailTransport(Protocol):
    kind: TransportKind

    def send(self, message: EmailMessage) -> DeliveryResult: ...


def create_transport(settings: AppSettings) -> MailTransport:
    if settings.smtp is not None:
        return SmtpTransport(settings.smtp)
    return JsonTransport()


class SmtpTransport:
    kind = TransportKind.SMTP

    def __init__(self, smtp: SmtpSettings) -> None:
        self.smtp = smtp

    def send(self, message: EmailMessage) -> DeliveryResult:
        envelope_from, envelope_to = _envelope(message)
        try:
            with self._connect() as server:
                if self.smtp.has_auth:
                    server.login(self.smtp.user or "", self.smtp.password or "")
                server.send_message(message, from_addr=envelope_from, to_addrs=envelope_to)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(
                f"SMTP delivery via {self.smtp.host}:{self.smtp.port} failed: {exc}"
            ) from exc

        logger.info(
            "mail sent transport=smtp host=%s port=%s message_id=%s",
            self.smtp.host,
            self.smtp.port,
            message["Message-ID"],
        )
        return DeliveryResult(
            message_id=str(message["Message-ID"]),
            transport=self.kind,
            envelope_from=envelope_from,
            envelope_to=envelope_to,
        )

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.smtp.secure:
            return smtplib.SMTP_SSL(
                self.smtp.host, self.smtp.port, timeout=self.smtp.timeout_sec, context=context
            )
        server = smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=self.smtp.timeout_sec)
        try:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls(context=context)
                server.ehlo()
        except Exception:
            server.close()
            raise
        return server


class JsonTransport:
    """Development transport: records the message in the log only.

    Performs no network I/O. The rendered message, which carries the
    submitted personal data, is logged at DEBUG only.
    """

    kind = TransportKind.JSON

    def send(self, message: EmailMessage) -> DeliveryResult:
        envelope_from, envelope_to = _envelope(message)
        logger.info(
            "mail not sent transport=json message_id=%s subject=%s",
            message["Message-ID"],
            message["Subject"],
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("mail not sent transport=json message=%s", render_json(message))
        return DeliveryResult(
            message_id=str(message["Message-ID"]),
            transport=self.kind,
            envelope_from=envelope_from,
            envelope_to=envelope_to,
        )


def render_json(message: EmailMessage) -> str:
    envelope_from, envelope_to = _envelope(message)
    return json.dumps(
        {
            "from": str(message["From"]),
            "to": str(message["To"]),
            "subject": str(message["Subject"]),
            "text": message.get_content(),
            "messageId": str(message["Message-ID"]),
            "date": str(message["Date"]),
            "envelope": {"from": envelope_from, "to": envelope_to},
        },
        ensure_ascii=False,
    )


def _envelope(message: EmailMessage) -> tuple[str, list[str]]:
    _, sender = parseaddr(str(message["From"]))
    recipients = [addr for _, addr in getaddresses(message.get_all("To", [])) if addr]
    if not sender or not recipients:
        raise MailDeliveryError("message has no sender or recipients")
    return sender, recipients

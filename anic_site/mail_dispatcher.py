from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import formatdate, make_msgid, parseaddr

from anic_site.mail_transport import create_transport
from anic_site.models import AppSettings, DeliveryResult

logger = logging.getLogger(__name__)


def send_mail(settings: AppSettings, *, subject: str, text: str) -> DeliveryResult:
    """Send one plain-text notification to the configured mailbox.

    A transport is built for this call only. Transport failures propagate
    as MailDeliveryError; nothing is retried.
    """
    message = build_message(settings, subject=subject, text=text)
    transport = create_transport(settings)
    logger.debug("dispatching mail transport=%s subject=%s", transport.kind.value, subject)
    return transport.send(message)


def build_message(settings: AppSettings, *, subject: str, text: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = settings.mail_from
    message["To"] = settings.mail_to
    message["Subject"] = subject
    message["Date"] = formatdate(localtime=True)
    message["Message-ID"] = make_msgid(domain=_sender_domain(settings.mail_from))
    message.set_content(text)
    return message


def _sender_domain(mail_from: str) -> str | None:
    _, addr = parseaddr(mail_from)
    if "@" not in addr:
        return None
    return addr.rsplit("@", 1)[1]

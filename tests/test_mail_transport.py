from __future__ import annotations

import json
import smtplib
import unittest
from unittest.mock import MagicMock, patch

from anic_site.mail_dispatcher import build_message
from anic_site.mail_transport import (
    JsonTransport,
    MailDeliveryError,
    SmtpTransport,
    create_transport,
    render_json,
)
from anic_site.models import AppSettings, SmtpSettings, TransportKind


class MailTransportTests(unittest.TestCase):
    def test_create_transport_without_smtp_is_json(self) -> None:
        transport = create_transport(_settings(smtp=None))
        self.assertIsInstance(transport, JsonTransport)
        self.assertEqual(transport.kind, TransportKind.JSON)

    def test_create_transport_with_smtp(self) -> None:
        transport = create_transport(_settings(smtp=SmtpSettings(host="mail.local", port=587)))
        self.assertIsInstance(transport, SmtpTransport)

    def test_json_transport_does_no_network_io(self) -> None:
        settings = _settings(smtp=None)
        message = build_message(settings, subject="Assunto", text="corpo")
        with patch("anic_site.mail_transport.smtplib.SMTP") as mocked_smtp, patch(
            "anic_site.mail_transport.smtplib.SMTP_SSL"
        ) as mocked_ssl:
            result = JsonTransport().send(message)
        mocked_smtp.assert_not_called()
        mocked_ssl.assert_not_called()
        self.assertEqual(result.transport, TransportKind.JSON)
        self.assertEqual(result.envelope_from, "no-reply@anic.live")
        self.assertEqual(result.envelope_to, ["duvidas@anic.live"])

    def test_render_json(self) -> None:
        message = build_message(_settings(smtp=None), subject="Assunto", text="corpo")
        rendered = json.loads(render_json(message))
        self.assertEqual(rendered["subject"], "Assunto")
        self.assertEqual(rendered["text"].rstrip("\n"), "corpo")
        self.assertEqual(rendered["envelope"]["to"], ["duvidas@anic.live"])

    def test_json_transport_keeps_body_out_of_info_log(self) -> None:
        message = build_message(
            _settings(smtp=None), subject="Cadastro ANIC - Ficha Cadastral", text="CPF: 123.456.789-00"
        )
        with self.assertLogs("anic_site.mail_transport", level="INFO") as captured:
            JsonTransport().send(message)
        output = "\n".join(captured.output)
        self.assertIn("Cadastro ANIC - Ficha Cadastral", output)
        self.assertNotIn("123.456.789-00", output)

    def test_json_transport_logs_body_at_debug(self) -> None:
        message = build_message(_settings(smtp=None), subject="s", text="CPF: 123.456.789-00")
        with self.assertLogs("anic_site.mail_transport", level="DEBUG") as captured:
            JsonTransport().send(message)
        debug_lines = [line for line in captured.output if line.startswith("DEBUG:")]
        self.assertEqual(len(debug_lines), 1)
        self.assertIn("123.456.789-00", debug_lines[0])

    def test_smtp_plain_port_upgrades_with_starttls_and_logs_in(self) -> None:
        smtp = SmtpSettings(host="mail.local", port=587, user="u", password="p")
        message = build_message(_settings(smtp=smtp), subject="s", text="t")
        server = _server_mock(starttls=True)
        with patch("anic_site.mail_transport.smtplib.SMTP", return_value=server) as mocked_smtp, patch(
            "anic_site.mail_transport.smtplib.SMTP_SSL"
        ) as mocked_ssl:
            result = SmtpTransport(smtp).send(message)

        mocked_ssl.assert_not_called()
        mocked_smtp.assert_called_once_with("mail.local", 587, timeout=30.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        server.send_message.assert_called_once_with(
            message, from_addr="no-reply@anic.live", to_addrs=["duvidas@anic.live"]
        )
        self.assertEqual(result.transport, TransportKind.SMTP)

    def test_smtp_secure_port_uses_implicit_tls(self) -> None:
        smtp = SmtpSettings(host="mail.local", port=465, user="u", password="p")
        message = build_message(_settings(smtp=smtp), subject="s", text="t")
        server = _server_mock(starttls=False)
        with patch("anic_site.mail_transport.smtplib.SMTP") as mocked_smtp, patch(
            "anic_site.mail_transport.smtplib.SMTP_SSL", return_value=server
        ) as mocked_ssl:
            SmtpTransport(smtp).send(message)

        mocked_smtp.assert_not_called()
        mocked_ssl.assert_called_once()
        self.assertEqual(mocked_ssl.call_args.args, ("mail.local", 465))
        server.starttls.assert_not_called()
        server.login.assert_called_once_with("u", "p")

    def test_smtp_without_credentials_skips_login(self) -> None:
        smtp = SmtpSettings(host="mail.local", port=25, user="u")
        message = build_message(_settings(smtp=smtp), subject="s", text="t")
        server = _server_mock(starttls=False)
        with patch("anic_site.mail_transport.smtplib.SMTP", return_value=server):
            SmtpTransport(smtp).send(message)
        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.send_message.assert_called_once()

    def test_smtp_connection_error_is_wrapped(self) -> None:
        smtp = SmtpSettings(host="unreachable.local", port=587)
        message = build_message(_settings(smtp=smtp), subject="s", text="t")
        with patch(
            "anic_site.mail_transport.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ):
            with self.assertRaisesRegex(MailDeliveryError, "unreachable.local:587") as ctx:
                SmtpTransport(smtp).send(message)
        self.assertIsInstance(ctx.exception.__cause__, ConnectionRefusedError)

    def test_smtp_auth_error_is_wrapped(self) -> None:
        smtp = SmtpSettings(host="mail.local", port=465, user="u", password="bad")
        message = build_message(_settings(smtp=smtp), subject="s", text="t")
        server = _server_mock(starttls=False)
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"auth failed")
        with patch("anic_site.mail_transport.smtplib.SMTP_SSL", return_value=server):
            with self.assertRaises(MailDeliveryError):
                SmtpTransport(smtp).send(message)
        server.send_message.assert_not_called()


def _server_mock(*, starttls: bool) -> MagicMock:
    server = MagicMock()
    server.__enter__.return_value = server
    server.has_extn.return_value = starttls
    return server


def _settings(*, smtp: SmtpSettings | None) -> AppSettings:
    return AppSettings(
        host="127.0.0.1",
        port=3737,
        mail_to="duvidas@anic.live",
        mail_from="ANIC <no-reply@anic.live>",
        smtp=smtp,
        static_dir="out",
        log_level="INFO",
        logs_dir="logs",
    )


if __name__ == "__main__":
    unittest.main()

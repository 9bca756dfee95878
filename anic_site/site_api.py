from __future__ import annotations

import json
import logging
import mimetypes
from http import HTTPStatus
from pathlib import Path
from socketserver import ThreadingMixIn
from typing import Any
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server
from wsgiref.util import FileWrapper

from anic_site.form_format import format_body, subject_for
from anic_site.logging_utils import access_logger
from anic_site.mail_dispatcher import send_mail
from anic_site.models import AppSettings, FormKind

logger = logging.getLogger(__name__)

FORM_ROUTES: dict[str, FormKind] = {
    "/api/form/cadastro": FormKind.CADASTRO,
    "/api/form/contato": FormKind.CONTATO,
}
SEND_FAILED_MESSAGE = "Falha ao enviar e-mail"
BODY_TOO_LARGE_MESSAGE = "Corpo da requisição muito grande"
INVALID_REQUEST_MESSAGE = "Requisição inválida"
MAX_BODY_BYTES = 100 * 1024
CORS_ALLOW_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE"


class RequestBodyTooLarge(Exception):
    pass


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class LoggingRequestHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args) -> None:  # type: ignore[no-untyped-def]
        access_logger().info("%s %s", self.address_string(), format % args)


def run_server(settings: AppSettings) -> None:
    app = create_app(settings)
    with make_server(
        settings.host,
        settings.port,
        app,
        server_class=ThreadingWSGIServer,
        handler_class=LoggingRequestHandler,
    ) as server:
        logger.info("ANIC server listening on http://%s:%s", settings.host, settings.port)
        server.serve_forever()


def create_app(settings: AppSettings):  # type: ignore[no-untyped-def]
    static_root = Path(settings.static_dir).resolve()

    def app(environ: dict, start_response):  # type: ignore[no-untyped-def]
        method = environ.get("REQUEST_METHOD", "GET")
        path = _request_path(environ)
        try:
            if method == "OPTIONS":
                return _preflight(environ, start_response)

            if method == "POST" and path in FORM_ROUTES:
                return _handle_form(settings, FORM_ROUTES[path], environ, start_response)

            if method == "GET" and path == "/api/health":
                return _json(
                    start_response,
                    HTTPStatus.OK,
                    {"status": "ok", "transport": settings.transport_kind.value},
                )

            if method in ("GET", "HEAD"):
                return _serve_static(static_root, path, environ, start_response)

            return _json(start_response, HTTPStatus.NOT_FOUND, {"error": "NOT_FOUND"})
        except Exception:
            logger.exception("unhandled error method=%s path=%s", method, path)
            return _json(
                start_response,
                HTTPStatus.INTERNAL_SERVER_ERROR,
                {"error": "INTERNAL_ERROR"},
            )

    return app


def _handle_form(settings: AppSettings, kind: FormKind, environ: dict, start_response):  # type: ignore[no-untyped-def]
    try:
        fields = _read_fields(environ)
    except RequestBodyTooLarge as exc:
        logger.warning("rejecting %s submission: %s", kind.value, exc)
        return _json(
            start_response,
            HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            {"ok": False, "error": BODY_TOO_LARGE_MESSAGE},
        )
    except ValueError as exc:
        logger.warning("rejecting %s submission: %s", kind.value, exc)
        return _json(
            start_response,
            HTTPStatus.BAD_REQUEST,
            {"ok": False, "error": INVALID_REQUEST_MESSAGE},
        )

    try:
        text = format_body(kind, fields)
        send_mail(settings, subject=subject_for(kind), text=text)
    except Exception:
        logger.exception("failed to send %s email", kind.value)
        return _json(
            start_response,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            {"ok": False, "error": SEND_FAILED_MESSAGE},
        )
    return _json(start_response, HTTPStatus.OK, {"ok": True})


def _read_fields(environ: dict) -> dict[str, Any]:
    """Parse a JSON or urlencoded body into a field mapping.

    Bodies that cannot be parsed yield an empty mapping; missing fields are
    rendered empty downstream.
    """
    body = _read_body(environ)
    if not body:
        return {}
    content_type = environ.get("CONTENT_TYPE", "").split(";", 1)[0].strip().lower()
    try:
        text = body.decode("utf-8")
        if content_type == "application/json":
            payload = json.loads(text)
            if not isinstance(payload, dict):
                raise ValueError("request body must be JSON object")
            return payload
        if content_type == "application/x-www-form-urlencoded":
            return _parse_form(text)
    except ValueError as exc:
        logger.warning("ignoring malformed request body content_type=%s: %s", content_type, exc)
        return {}
    logger.warning("ignoring request body with unsupported content_type=%s", content_type)
    return {}


def _parse_form(text: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, values in parse_qs(text, keep_blank_values=True).items():
        out[key] = values[0] if len(values) == 1 else values
    return out


def _read_body(environ: dict) -> bytes:
    raw_length = environ.get("CONTENT_LENGTH", "0") or "0"
    try:
        body_size = int(raw_length)
    except ValueError:
        raise ValueError(f"invalid CONTENT_LENGTH: {raw_length!r}") from None
    if body_size > MAX_BODY_BYTES:
        raise RequestBodyTooLarge(f"body of {body_size} bytes exceeds {MAX_BODY_BYTES}")
    if body_size <= 0:
        return b""
    return environ["wsgi.input"].read(body_size)


def _request_path(environ: dict) -> str:
    raw = environ.get("PATH_INFO", "") or "/"
    # PEP 3333 hands PATH_INFO over as latin-1 decoded bytes
    return raw.encode("latin-1").decode("utf-8", "replace")


def _serve_static(static_root: Path, path: str, environ: dict, start_response):  # type: ignore[no-untyped-def]
    target = _resolve_static(static_root, path)
    if target is None:
        target = static_root / "index.html"
        if not target.is_file():
            return _json(start_response, HTTPStatus.NOT_FOUND, {"error": "NOT_FOUND"})

    content_type, _ = mimetypes.guess_type(target.name)
    if content_type is None:
        content_type = "application/octet-stream"
    elif content_type.startswith("text/") or content_type == "application/javascript":
        content_type = f"{content_type}; charset=utf-8"
    size = target.stat().st_size
    start_response(
        _status_line(HTTPStatus.OK),
        _with_cors([("Content-Type", content_type), ("Content-Length", str(size))]),
    )
    if environ.get("REQUEST_METHOD") == "HEAD":
        return [b""]
    wrapper = environ.get("wsgi.file_wrapper", FileWrapper)
    return wrapper(target.open("rb"))


def _resolve_static(static_root: Path, path: str) -> Path | None:
    candidate = (static_root / path.lstrip("/")).resolve()
    if not candidate.is_relative_to(static_root):
        return None
    if candidate.is_dir():
        candidate = candidate / "index.html"
    if not candidate.is_file():
        return None
    return candidate


def _preflight(environ: dict, start_response):  # type: ignore[no-untyped-def]
    headers = [
        ("Access-Control-Allow-Methods", CORS_ALLOW_METHODS),
        ("Content-Length", "0"),
    ]
    requested = environ.get("HTTP_ACCESS_CONTROL_REQUEST_HEADERS")
    if requested:
        headers.append(("Access-Control-Allow-Headers", requested))
        headers.append(("Vary", "Access-Control-Request-Headers"))
    start_response(_status_line(HTTPStatus.NO_CONTENT), _with_cors(headers))
    return [b""]


def _json(start_response, status: HTTPStatus, payload: dict):  # type: ignore[no-untyped-def]
    body = json.dumps(payload, ensure_ascii=True).encode("utf-8")
    start_response(
        _status_line(status),
        _with_cors(
            [
                ("Content-Type", "application/json; charset=utf-8"),
                ("Content-Length", str(len(body))),
            ]
        ),
    )
    return [body]


def _with_cors(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    return [("Access-Control-Allow-Origin", "*"), *headers]


def _status_line(status: HTTPStatus) -> str:
    return f"{status.value} {status.phrase}"

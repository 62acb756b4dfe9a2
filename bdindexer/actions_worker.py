"""HTTP worker that serves actions."""

from __future__ import annotations

import json
import logging
import time
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, NamedTuple
from urllib.parse import urlsplit

from bdindexer.actions_metrics import error_counter, response_time_buckets, success_counter
from bdindexer.actions_types import ActionContext, GraphQLError, Payload, to_json_value

_log = logging.getLogger(__name__)

ActionHandler = Callable[[ActionContext, Payload], Any]

_JSON_TYPE = "application/json"
_TEXT_TYPE = "text/plain; charset=utf-8"
_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class _ActionResponse(NamedTuple):
    status: int
    content_type: str
    body: bytes


def _marshal(value: Any) -> bytes:
    text = json.dumps(
        to_json_value(value), separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )
    for char, escaped in _HTML_ESCAPES:
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def _plain_error(status: HTTPStatus, message: str) -> _ActionResponse:
    return _ActionResponse(status.value, _TEXT_TYPE, (message + "\n").encode("utf-8"))


class ActionsWorker:
    """Dispatches action requests to the handlers registered for their paths."""

    def __init__(self, context: ActionContext) -> None:
        self.context = context
        self._handlers: dict[str, ActionHandler] = {}

    def register_handler(self, path: str, handler: ActionHandler) -> None:
        """Use the handler for every request made to the path."""
        if not path:
            raise ValueError("invalid pattern: empty path")
        if path in self._handlers:
            raise ValueError(f"multiple registrations for {path}")
        _log.debug("registering actions handler for %s", path)
        self._handlers[path] = handler

    def handle(self, path: str, body: bytes) -> _ActionResponse:
        """Run the action at path with the given request body.

        Returns the status code, content type and body of the response.
        """
        handler = self._handlers.get(path)
        if handler is None:
            return _plain_error(HTTPStatus.NOT_FOUND, "404 page not found")

        start = time.monotonic()
        try:
            payload = Payload.from_dict(json.loads(body))
        except (ValueError, TypeError):
            return _plain_error(
                HTTPStatus.INTERNAL_SERVER_ERROR, "invalid payload: failed to unmarshal json"
            )

        try:
            data = _marshal(handler(self.context, payload))
        except Exception as err:
            error_counter(path)
            return self._handle_error(path, err)

        success_counter(path)
        response_time_buckets(path, start)
        return _ActionResponse(HTTPStatus.OK.value, _JSON_TYPE, data)

    def _handle_error(self, path: str, err: Exception) -> _ActionResponse:
        _log.error("error while executing action %s: %s", path, err)
        body = _marshal(GraphQLError(message=str(err)))
        return _ActionResponse(HTTPStatus.BAD_REQUEST.value, _JSON_TYPE, body)

    def make_server(self, port: int) -> ThreadingHTTPServer:
        """Build an HTTP server bound to the port that serves this worker's actions."""
        worker = self

        class _RequestHandler(BaseHTTPRequestHandler):
            def _serve(self) -> None:
                try:
                    length = int(self.headers.get("Content-Length") or 0)
                except ValueError:
                    self.send_error(HTTPStatus.BAD_REQUEST, "invalid payload")
                    return
                body = self.rfile.read(length) if length > 0 else b""
                response = worker.handle(urlsplit(self.path).path, body)
                self.send_response(response.status)
                self.send_header("Content-Type", response.content_type)
                self.send_header("Content-Length", str(len(response.body)))
                self.end_headers()
                if self.command != "HEAD":
                    self.wfile.write(response.body)

            do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = _serve

            def log_message(self, format: str, *args: Any) -> None:
                _log.debug("%s - %s", self.address_string(), format % args)

        return ThreadingHTTPServer(("", port), _RequestHandler)

    def start(self, port: int) -> None:
        """Serve actions on the port until the process stops."""
        with self.make_server(port) as server:
            server.serve_forever()
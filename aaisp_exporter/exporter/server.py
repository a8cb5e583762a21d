"""WSGI surface: /metrics, /healthz and a landing page, one thread per request."""

from __future__ import annotations

import json
import logging
import socket
from socketserver import ThreadingMixIn
from typing import Callable, Iterable
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app

from aaisp_exporter.common.errors import ConfigError
from aaisp_exporter.common.logging import log_event
from aaisp_exporter.exporter.collector import ScrapeStatus

WSGIApp = Callable[[dict, Callable], Iterable[bytes]]

LANDING_PAGE = b"""<html>
<head><title>AAISP Exporter</title></head>
<body>
<h1>AAISP Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>
"""


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class ThreadingWSGIServerV6(ThreadingWSGIServer):
    address_family = socket.AF_INET6


class QuietRequestHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        # Requests are logged by request_logging instead.
        return None


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port``; an empty host means all interfaces."""
    host, sep, port_text = value.rpartition(":")
    if not sep:
        raise ConfigError(f"Invalid listen address {value!r}: expected host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError(f"Invalid listen address {value!r}: IPv6 hosts must be bracketed")
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ConfigError(f"Invalid listen port in {value!r}") from exc
    if not 0 <= port <= 65535:
        raise ConfigError(f"Invalid listen port in {value!r}")
    return host or "0.0.0.0", port


def request_logging(app: WSGIApp, logger: logging.Logger) -> WSGIApp:
    def logged(environ, start_response):
        log_event(
            logger,
            "request",
            proto=environ.get("SERVER_PROTOCOL"),
            method=environ.get("REQUEST_METHOD"),
            path=environ.get("PATH_INFO"),
            remote_addr=environ.get("REMOTE_ADDR"),
            user_agent=environ.get("HTTP_USER_AGENT", ""),
        )
        return app(environ, start_response)

    return logged


def _health_body(status: ScrapeStatus) -> bytes:
    value, updated_at = status.read()
    payload = {
        "last_scrape_success": None if value is None else int(value),
        "last_scrape_at": None if updated_at is None else updated_at.isoformat(timespec="seconds"),
    }
    return json.dumps(payload).encode("utf-8")


def build_app(registry: CollectorRegistry, status: ScrapeStatus, logger: logging.Logger) -> WSGIApp:
    metrics_app = make_wsgi_app(registry)

    def app(environ, start_response):
        path = environ.get("PATH_INFO") or "/"
        if path == "/metrics":
            return metrics_app(environ, start_response)
        if path == "/healthz":
            start_response("200 OK", [("Content-Type", "application/json")])
            return [_health_body(status)]
        if path == "/":
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [LANDING_PAGE]
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"Not Found\n"]

    return request_logging(app, logger)


def build_server(listen: str, app: WSGIApp) -> WSGIServer:
    """Bind the listener; raises OSError when the address is unusable."""
    host, port = parse_listen_address(listen)
    server_class = ThreadingWSGIServerV6 if ":" in host else ThreadingWSGIServer
    return make_server(host, port, app, server_class=server_class, handler_class=QuietRequestHandler)

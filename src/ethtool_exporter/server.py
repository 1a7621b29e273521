"""HTTP surface: WSGI app serving /metrics, /influx and a landing page over a threaded wsgiref server."""

import io
import logging
import socket
from socketserver import ThreadingMixIn
from typing import Any, Callable, Iterable
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app

from .collector import Exporter

logger = logging.getLogger(__name__)

LANDING_PAGE = b"""<html>
  <head><title>NetHW Exporter</title></head>
  <body><h1>NetHW Exporter</h1>
  <p><a href="/metrics">Metrics</a></p>
  <p><a href="/influx">Metrics in influxdb format</a></p>
</html>
"""

StartResponse = Callable[..., Any]
WSGIApp = Callable[[dict[str, Any], StartResponse], Iterable[bytes]]


def make_app(exporter: Exporter, registry: CollectorRegistry) -> WSGIApp:
    """Route /metrics to prometheus_client, /influx to line protocol and / to the landing page."""
    metrics_app = make_wsgi_app(registry)

    def app(environ: dict[str, Any], start_response: StartResponse) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "/")
        if path == "/metrics":
            return metrics_app(environ, start_response)
        if path == "/influx":
            buf = io.StringIO()
            exporter.influxdb(buf)
            body = buf.getvalue().encode("utf-8")
            start_response("200 OK", [("Content-Type", "text/plain; charset=utf-8")])
            return [body]
        if path == "/":
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [LANDING_PAGE]
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"Not Found\n"]

    return app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _ThreadingWSGIServerV6(_ThreadingWSGIServer):
    address_family = socket.AF_INET6


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


def parse_listen_address(addr: str) -> tuple[str, int]:
    """Split host:port; an empty host means all interfaces."""
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address: {addr!r}")
    return host.strip("[]"), int(port)


def server_class_for(host: str) -> type[WSGIServer]:
    """IPv6 literals (host contains a colon) need an AF_INET6 listening socket."""
    return _ThreadingWSGIServerV6 if ":" in host else _ThreadingWSGIServer


def serve(app: WSGIApp, host: str, port: int) -> None:
    """Serve app until interrupted."""
    httpd = make_server(host, port, app, server_class=server_class_for(host), handler_class=_QuietHandler)
    logger.info("Listening on %s:%d", host or "*", port)
    try:
        httpd.serve_forever()
    finally:
        httpd.server_close()

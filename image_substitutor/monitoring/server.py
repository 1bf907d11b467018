"""HTTP status server for the image substitutor."""

from __future__ import annotations

import json
import logging
import socket
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from io import BytesIO
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

from ..audit import ImageCollector, ImageRecord
from ..policy import ImageResolver, ResolutionError
from ..reference import MalformedReference, parse_image_reference
from ..substitutor import ImageNameSubstitutor
from ..web import create_app

logger = logging.getLogger(__name__)


def record_to_dict(record: ImageRecord) -> Dict[str, Any]:
    return {
        "original": record.original.canonical_name,
        "resolved": record.resolved.canonical_name,
        "substituted": record.substituted,
        "count": record.count,
        "first_seen": record.first_seen.isoformat(),
        "last_seen": record.last_seen.isoformat(),
    }


class MonitoringRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for monitoring endpoints."""

    def __init__(
        self,
        request,
        client_address,
        server,
        substitutor: ImageNameSubstitutor,
        collector: ImageCollector,
    ):
        self.substitutor = substitutor
        self.collector = collector
        super().__init__(request, client_address, server)

    def log_message(self, format, *args):
        """Override to use our logger."""
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        """Handle GET requests."""
        try:
            parsed_path = urlparse(self.path)
            path = parsed_path.path

            if path == "/api/v1/status":
                self._handle_status()
            elif path == "/api/v1/images":
                self._handle_list_images()
            elif path == "/api/v1/images/unverified":
                self._handle_unverified_images()
            elif path == "/api/v1/resolve":
                self._handle_resolve(parsed_path.query)
            elif self.server.flask_app is not None:
                self._handle_flask_request()
            else:
                self._send_error(404, "Not Found", "Unknown endpoint")

        except Exception as exc:
            logger.error("Error handling request: %s", exc, exc_info=True)
            self._send_error(500, "Internal Server Error", str(exc))

    def _handle_status(self):
        """Handle GET /api/v1/status."""
        state = self.substitutor.gate.state()
        unverified = self.collector.unverified()

        status_data = {
            "status": "healthy" if state.available and not unverified else "degraded",
            "uptime_seconds": int(time.time() - self.server.started_at),
            "description": self.substitutor.description,
            "mirror": {
                "available": state.available,
                "registry": state.registry,
                "setup_error": str(state.setup_error) if state.setup_error else None,
            },
            "host_mode": self.substitutor.host_mode.value,
            "force_external": self.substitutor.force_external,
            "mock_mirror": self.substitutor.mock_mirror,
            "images_collected": len(self.collector.list_images()),
            "images_unverified": len(unverified),
        }

        self._send_json(200, status_data)

    def _handle_list_images(self):
        """Handle GET /api/v1/images."""
        images = [record_to_dict(r) for r in self.collector.list_images()]
        self._send_json(200, {"images": images, "total": len(images)})

    def _handle_unverified_images(self):
        """Handle GET /api/v1/images/unverified."""
        images = [record_to_dict(r) for r in self.collector.unverified()]
        self._send_json(200, {"images": images, "total": len(images)})

    def _handle_resolve(self, query_string: str):
        """Handle GET /api/v1/resolve?image=<name> without collecting the image."""
        params = parse_qs(query_string)
        image = params.get("image", [""])[0]
        if not image:
            self._send_error(400, "Bad Request", "Missing 'image' query parameter")
            return

        try:
            original = parse_image_reference(image)
        except MalformedReference as exc:
            self._send_error(400, "Bad Request", str(exc))
            return

        resolver = self.substitutor.resolver
        dry_run = ImageResolver(resolver.gate, settings=resolver.settings, rules=resolver.rules)
        try:
            outcome = dry_run.resolve(
                original,
                host_mode=self.substitutor.host_mode,
                force_external=self.substitutor.force_external,
                mock_mirror=self.substitutor.mock_mirror,
            )
        except ResolutionError as exc:
            self._send_error(409, "Conflict", str(exc))
            return

        self._send_json(
            200,
            {
                "original": outcome.original.canonical_name,
                "resolved": outcome.resolved.canonical_name,
                "used_mirror": outcome.used_mirror,
                "rule": outcome.rule,
                "reason": outcome.reason,
            },
        )

    def _send_json(self, status_code: int, data: dict):
        """Send JSON response."""
        json_data = json.dumps(data, indent=2).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(json_data)))
        self.end_headers()
        self.wfile.write(json_data)

    def _send_error(self, status_code: int, error: str, message: str):
        """Send error JSON response."""
        error_data = {"error": error, "error_code": error.upper().replace(" ", "_"), "message": message}
        self._send_json(status_code, error_data)

    def _handle_flask_request(self):
        """Handle request via the Flask WSGI application."""
        parsed = urlparse(self.path)
        environ = {
            "REQUEST_METHOD": self.command,
            "PATH_INFO": parsed.path,
            "QUERY_STRING": parsed.query,
            "CONTENT_TYPE": self.headers.get("Content-Type", ""),
            "CONTENT_LENGTH": "0",
            "SERVER_NAME": self.server.server_address[0],
            "SERVER_PORT": str(self.server.server_address[1]),
            "SERVER_PROTOCOL": self.protocol_version,
            "wsgi.version": (1, 0),
            "wsgi.url_scheme": "http",
            "wsgi.input": BytesIO(b""),
            "wsgi.errors": BytesIO(),
            "wsgi.multithread": True,
            "wsgi.multiprocess": False,
            "wsgi.run_once": False,
        }
        for key, value in self.headers.items():
            key = key.replace("-", "_").upper()
            if key not in ("CONTENT_TYPE", "CONTENT_LENGTH"):
                environ[f"HTTP_{key}"] = value

        response: Dict[str, Any] = {}

        def start_response(status, response_headers, exc_info=None):
            response["status"] = status
            response["headers"] = response_headers

        app_iter = self.server.flask_app(environ, start_response)
        try:
            code, _, message = response["status"].partition(" ")
            self.send_response(int(code), message)
            for header, value in response["headers"]:
                self.send_header(header, value)
            self.end_headers()
            for chunk in app_iter:
                if chunk:
                    self.wfile.write(chunk)
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()


class MonitoringServer(ThreadingHTTPServer):
    """HTTP server for monitoring endpoints."""

    def __init__(
        self,
        bind_address: str,
        port: int,
        substitutor: ImageNameSubstitutor,
        collector: Optional[ImageCollector] = None,
    ):
        """Initialize monitoring server.

        Args:
            bind_address: IP address to bind to
            port: Port number (0 for random port)
            substitutor: Substitutor whose state is reported
            collector: Audit collector (defaults to the substitutor's)
        """
        self.bind_address = bind_address
        self.port = port
        self.substitutor = substitutor
        self.collector = collector or substitutor.collector or ImageCollector()
        self.started_at = time.time()
        self.flask_app = create_app(substitutor, self.collector)

        def handler_factory(request, client_address, server):
            return MonitoringRequestHandler(
                request,
                client_address,
                server,
                substitutor=substitutor,
                collector=self.collector,
            )

        super().__init__((bind_address, port), handler_factory)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        if port == 0:
            self.port = self.server_address[1]

    def serve_forever(self, poll_interval: float = 0.5):
        """Start serving requests."""
        logger.info("Monitoring server listening on %s:%d", self.bind_address, self.port)
        try:
            super().serve_forever(poll_interval=poll_interval)
        finally:
            logger.info("Monitoring server stopped")

"""Operational monitoring for the image substitutor.

Provides an HTTP status server reporting mirror availability and the
images collected during a run.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..substitutor import ImageNameSubstitutor
    from .server import MonitoringServer

logger = logging.getLogger(__name__)

_server: Optional["MonitoringServer"] = None
_server_lock = threading.Lock()


def get_monitoring_server() -> Optional["MonitoringServer"]:
    """Get the running monitoring server, if any."""
    return _server


def start_monitoring_server(
    bind_address: str,
    port: int,
    substitutor: "ImageNameSubstitutor",
) -> Optional["MonitoringServer"]:
    """Start monitoring HTTP server in background thread.

    Args:
        bind_address: IP address to bind to (e.g., "127.0.0.1")
        port: Port number to listen on
        substitutor: Substitutor whose state is reported

    Returns:
        MonitoringServer instance if started successfully, None otherwise
    """
    global _server

    try:
        from .server import MonitoringServer

        server = MonitoringServer(
            bind_address=bind_address,
            port=port,
            substitutor=substitutor,
        )
    except OSError as exc:
        logger.error("Failed to start monitoring server: %s", exc, exc_info=True)
        return None

    server_thread = threading.Thread(
        target=server.serve_forever,
        name="monitoring-server",
        daemon=True,
    )
    server_thread.start()

    with _server_lock:
        _server = server

    logger.info("Monitoring server started on %s:%d", bind_address, server.port)
    return server


def start_monitoring_from_config(
    substitutor: "ImageNameSubstitutor",
) -> Optional["MonitoringServer"]:
    """Start the monitoring server if enabled in config.

    Uses monitoring_enabled and monitoring_bind ("host:port").
    """
    from .. import config as sub_config

    if not sub_config.monitoring_enabled():
        logger.debug("Monitoring server disabled")
        return None

    host, _, port = sub_config.monitoring_bind().rpartition(":")
    try:
        port_number = int(port)
    except ValueError:
        logger.error("Invalid monitoring port %r, monitoring server not started", port)
        return None
    return start_monitoring_server(host, port_number, substitutor)


def stop_monitoring_server() -> None:
    """Stop the monitoring server started by start_monitoring_server()."""
    global _server

    with _server_lock:
        server, _server = _server, None

    if server is not None:
        server.shutdown()
        server.server_close()
        logger.info("Monitoring server stopped")

#!/usr/bin/env python3
"""Run the public proxy and the admin server in one process.

Both servers share a single RoutingTable instance. The proxy runs on uvicorn
in the main thread; the admin server is a threaded werkzeug server in a
background thread.
"""
import logging
import threading
from typing import Optional

import httpx
import uvicorn
from werkzeug.serving import BaseWSGIServer, make_server

from .config.routing_table import RoutingTable
from .config.settings import Settings
from .core.liveness import LivenessProber
from .core.proxy import ProxyService
from .ui.ui_server import create_app

logger = logging.getLogger('portproxy')


class AdminServer:
    """Admin WSGI app served from a daemon thread."""

    def __init__(self, app, host: str, port: int):
        self.host = host
        self.port = port
        self._server: BaseWSGIServer = make_server(host, port, app, threaded=True)
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name='portproxy-admin',
            daemon=True,
        )
        self._thread.start()
        logger.info(f"GUI listening on {self.host}:{self.port} (admin only)")

    def stop(self):
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=5)


def build_services(settings: Settings, client: Optional[httpx.AsyncClient] = None):
    """Load the routing table and wire it into both applications.

    Raises:
        RoutingStoreCorrupt: the persisted store exists but is malformed
    """
    table = RoutingTable(settings.mappings_file)
    table.load()

    proxy_service = ProxyService(table, backend_host=settings.backend_host, client=client)
    prober = LivenessProber(host=settings.backend_host, timeout=settings.probe_timeout)
    admin_app = create_app(table, prober)
    return table, proxy_service, admin_app


def serve(settings: Settings):
    """Serve both ports until interrupted."""
    _, proxy_service, admin_app = build_services(settings)

    admin_server = AdminServer(admin_app, settings.bind_host, settings.gui_port)
    admin_server.start()

    config = uvicorn.Config(
        proxy_service.app,
        host=settings.bind_host,
        port=settings.proxy_port,
        log_level='debug' if settings.verbose else 'warning',
        access_log=settings.verbose,
        http='h11',
        timeout_keep_alive=60,
    )
    logger.info(f"Proxy listening on {settings.bind_host}:{settings.proxy_port}")
    try:
        uvicorn.Server(config).run()
    finally:
        admin_server.stop()

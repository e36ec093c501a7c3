#!/usr/bin/env python3
"""Public-facing reverse proxy that routes requests to local backends by path prefix."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.routing import Route

from ..config.routing_table import RoutingTable
from .errors import BackendUnreachable, RouteNotFound
from .resolver import ResolvedMatch, is_reserved_path, resolve

# Hop-by-hop headers that apply to a single connection only (RFC 7230)
HOP_BY_HOP_HEADERS = {
    'connection',
    'keep-alive',
    'proxy-authenticate',
    'proxy-authorization',
    'proxy-connection',
    'te',
    'trailer',
    'trailers',
    'transfer-encoding',
    'upgrade',
}

# Defaults httpx would add on its own; stripped unless the caller sent them
CLIENT_DEFAULT_HEADERS = ('accept', 'accept-encoding', 'user-agent')

# No overall cap: a long-lived stream to one backend must not block other requests
POOL_LIMITS = httpx.Limits(max_connections=None, max_keepalive_connections=100)

# Seconds between client-disconnect checks while waiting on a backend
DISCONNECT_POLL_INTERVAL = 0.5


class ClientDisconnected(Exception):
    """The original caller went away before the backend answered."""


class ProxyService:
    """Reverse proxy bound to a shared RoutingTable."""

    def __init__(
        self,
        routing_table: RoutingTable,
        backend_host: str = 'localhost',
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialise the proxy service.

        Args:
            routing_table: Table consulted on every request (read-only here)
            backend_host: Host that every backend port lives on
            client: Optional preconfigured AsyncClient (tests inject a mock transport)
        """
        self.routing_table = routing_table
        self.backend_host = backend_host
        self.logger = logging.getLogger('portproxy.proxy')

        self.client = client or self._create_async_client()

        # No docs/openapi routes: every path on this port belongs to the backends
        self.app = FastAPI(lifespan=self._lifespan, docs_url=None, redoc_url=None, openapi_url=None)
        self._setup_routes()

    def _create_async_client(self) -> httpx.AsyncClient:
        """Create the pooled client used for every backend request."""
        # Proxied requests carry no timeout of their own
        timeout = httpx.Timeout(timeout=None)
        return httpx.AsyncClient(timeout=timeout, limits=POOL_LIMITS, follow_redirects=False)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await self.client.aclose()

    def _setup_routes(self):
        """Register the catch-all proxy route.

        A plain Starlette route with no method list, so every HTTP method
        (PROPFIND, PURGE, ...) reaches the backend instead of a 405.
        """
        self.app.router.routes.append(
            Route("/{path:path}", self.proxy, methods=None, include_in_schema=False)
        )

    @staticmethod
    def _request_path(request: Request) -> str:
        # Keep percent-encoding intact so the backend sees the path as sent
        raw_path = request.scope.get('raw_path')
        if raw_path:
            return raw_path.decode('latin-1')
        return request.url.path

    def build_target_url(self, match: ResolvedMatch, path: str, query: str) -> str:
        target_url = f"http://{self.backend_host}:{match.port}{match.forward_path(path)}"
        if query:
            target_url = f"{target_url}?{query}"
        return target_url

    def build_forward_headers(self, request: Request) -> List[Tuple[str, str]]:
        """Copy request headers, dropping hop-by-hop ones; Host is preserved."""
        return [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        ]

    @staticmethod
    def _has_body(request: Request) -> bool:
        headers = request.headers
        if 'transfer-encoding' in headers:
            return True
        content_length = headers.get('content-length', '').strip()
        return bool(content_length) and content_length != '0'

    async def proxy(self, request: Request) -> Response:
        """Handle a proxied request from the public port."""
        path = self._request_path(request)
        referer = request.headers.get('referer') or request.headers.get('referrer') or ''

        self.logger.debug(f"[Proxy] {request.method} {path}")

        # The admin interface is never reachable from the public port
        if is_reserved_path(path):
            return self._error_response(RouteNotFound())

        match = resolve(path, referer, self.routing_table.list())
        if match is None:
            return self._error_response(RouteNotFound())

        target_url = self.build_target_url(match, path, request.url.query)
        self.logger.debug(
            f"  -> Proxying to :{match.port}{match.forward_path(path)}"
            f"{'' if match.matched_by_path else ' (via referer)'}"
        )

        try:
            response = await self._send(request, target_url, self.build_forward_headers(request))
        except ClientDisconnected:
            self.logger.debug(f"  Client disconnected before :{match.port} answered {path}")
            return Response(status_code=499)
        except httpx.TransportError as exc:
            self.logger.warning(f"Proxy error for {request.method} {target_url}: {exc!r}")
            return self._error_response(BackendUnreachable(match.port))

        return self._stream_back(response, match.port)

    async def _send(self, request: Request, target_url: str, headers: List[Tuple[str, str]]) -> httpx.Response:
        """Send the outbound request, aborting it if the caller disconnects."""
        body_consumed = not self._has_body(request)

        async def body_stream():
            nonlocal body_consumed
            async for chunk in request.stream():
                if chunk:
                    yield chunk
            body_consumed = True

        request_out = self.client.build_request(
            method=request.method,
            url=target_url,
            headers=headers,
            content=None if body_consumed else body_stream(),
        )
        sent_names = {name.lower() for name, _ in headers}
        for name in CLIENT_DEFAULT_HEADERS:
            if name not in sent_names:
                request_out.headers.pop(name, None)

        send_task = asyncio.create_task(self.client.send(request_out, stream=True))
        try:
            while True:
                done, _ = await asyncio.wait({send_task}, timeout=DISCONNECT_POLL_INTERVAL)
                if done:
                    return send_task.result()
                # Polling before the body is drained would steal body messages
                if body_consumed and await request.is_disconnected():
                    await self._abort(send_task)
                    raise ClientDisconnected()
        except asyncio.CancelledError:
            send_task.cancel()
            raise

    @staticmethod
    async def _abort(send_task: asyncio.Task):
        """Cancel an outbound send and release its connection if it already finished."""
        send_task.cancel()
        try:
            response = await send_task
        except (asyncio.CancelledError, httpx.HTTPError):
            return
        await response.aclose()

    def _stream_back(self, response: httpx.Response, port: int) -> StreamingResponse:
        """Relay status, headers and raw body bytes from the backend."""
        async def iterator():
            try:
                async for chunk in response.aiter_raw():
                    yield chunk
            except httpx.TransportError as exc:
                self.logger.warning(f"Backend :{port} failed mid-response: {exc!r}")
            finally:
                await response.aclose()

        streaming = StreamingResponse(iterator(), status_code=response.status_code)
        streaming.raw_headers = [
            (name, value)
            for name, value in response.headers.raw
            if name.decode('latin-1').lower() not in HOP_BY_HOP_HEADERS
        ]
        return streaming

    @staticmethod
    def _error_response(error) -> PlainTextResponse:
        return PlainTextResponse(error.message, status_code=error.status)


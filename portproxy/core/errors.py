#!/usr/bin/env python3
"""Exception hierarchy shared by the routing table, proxy and admin server.

Every error carries the HTTP status and the plain-text reason the servers
send back, so handlers only need to catch ``PortProxyError``.
"""
from typing import Optional


class PortProxyError(Exception):
    """Base for all portproxy errors."""

    status = 500
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidEndpoint(PortProxyError, ValueError):
    """Endpoint is empty, malformed or reserved."""

    status = 400
    default_message = "Invalid endpoint"


class InvalidPort(PortProxyError, ValueError):
    """Port is not an integer in 1-65535."""

    status = 400
    default_message = "Invalid port"


class EndpointNotFound(PortProxyError, LookupError):
    """A rename referenced an endpoint that is not in the table."""

    status = 404
    default_message = "Old endpoint not found"


class RouteNotFound(PortProxyError):
    status = 404
    default_message = "Not Found"


class MalformedRequest(PortProxyError):
    """Admin payload could not be parsed."""

    status = 400
    default_message = "Invalid JSON"


class BackendUnreachable(PortProxyError):
    """The resolved backend refused, reset or timed out."""

    status = 502

    def __init__(self, port: int, message: Optional[str] = None):
        self.port = port
        super().__init__(message or f"Bad Gateway - Is app running on port {port}?")


class PersistenceFailure(PortProxyError):
    """Writing the store failed after the in-memory change was applied."""

    status = 500
    default_message = "Failed to save mappings"


class RoutingStoreCorrupt(PortProxyError):
    """The persisted store exists but cannot be trusted; fatal at startup."""

    default_message = "Routing store is corrupt"

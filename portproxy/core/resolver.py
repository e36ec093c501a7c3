#!/usr/bin/env python3
"""Endpoint canonicalization and request-to-backend resolution."""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit

from .errors import InvalidPort

RESERVED_ENDPOINT = '/gui'
ENDPOINT_PATTERN = re.compile(r'^/[a-z0-9\-_]+$')


class MatchKind(Enum):
    DIRECT_PATH = 'direct-path'
    REFERER = 'referer'


@dataclass(frozen=True)
class ResolvedMatch:
    """Outcome of resolving one proxy request."""

    endpoint: str
    port: int
    kind: MatchKind

    @property
    def matched_by_path(self) -> bool:
        return self.kind is MatchKind.DIRECT_PATH

    def forward_path(self, request_path: str) -> str:
        """Return the path the backend should receive.

        Direct matches drop the endpoint prefix; referer matches keep the
        original root-relative path untouched.
        """
        if self.matched_by_path:
            return request_path[len(self.endpoint):] or '/'
        return request_path


def canonicalize_endpoint(raw: Any) -> Optional[str]:
    """Trim, lowercase and ensure a leading slash; empty input gives None."""
    if raw is None:
        return None
    endpoint = str(raw).strip().lower()
    if not endpoint:
        return None
    if not endpoint.startswith('/'):
        endpoint = '/' + endpoint
    return endpoint


def is_valid_endpoint(endpoint: Optional[str]) -> bool:
    if not endpoint:
        return False
    return bool(ENDPOINT_PATTERN.match(endpoint)) and endpoint != RESERVED_ENDPOINT


def is_reserved_path(path: str) -> bool:
    """True for the admin prefix and anything nested under it."""
    return path == RESERVED_ENDPOINT or path.startswith(RESERVED_ENDPOINT + '/')


def parse_port(raw: Any) -> int:
    """Parse a port from JSON input, raising InvalidPort when out of range."""
    if isinstance(raw, bool):
        raise InvalidPort()
    if isinstance(raw, int):
        port = raw
    elif isinstance(raw, str) and raw.strip().isdecimal():
        port = int(raw.strip())
    else:
        raise InvalidPort()
    if port < 1 or port > 65535:
        raise InvalidPort()
    return port


def sort_endpoints(endpoints: Iterable[str]) -> List[str]:
    """Longest endpoint first; ties broken lexicographically."""
    return sorted(endpoints, key=lambda endpoint: (-len(endpoint), endpoint))


def _match_prefix(path: str, candidates: List[str]) -> Optional[str]:
    for endpoint in candidates:
        if path == endpoint or path.startswith(endpoint + '/'):
            return endpoint
    return None


def _referer_path(referer: Optional[str]) -> Optional[str]:
    if not referer:
        return None
    try:
        parsed = urlsplit(referer)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return parsed.path or '/'


def resolve(request_path: str, referer: Optional[str], mappings: dict) -> Optional[ResolvedMatch]:
    """Find the routing entry for a request.

    Args:
        request_path: Path component of the incoming request
        referer: Raw Referer header value, if any
        mappings: Snapshot of the routing table (endpoint -> port)

    Returns:
        ResolvedMatch or None when neither the path nor the referer matches
    """
    candidates = sort_endpoints(mappings.keys())

    endpoint = _match_prefix(request_path, candidates)
    if endpoint is not None:
        return ResolvedMatch(endpoint, mappings[endpoint], MatchKind.DIRECT_PATH)

    # Assets requested by a proxied page often use root-relative paths
    ref_path = _referer_path(referer)
    if ref_path is not None:
        endpoint = _match_prefix(ref_path, candidates)
        if endpoint is not None:
            return ResolvedMatch(endpoint, mappings[endpoint], MatchKind.REFERER)

    return None

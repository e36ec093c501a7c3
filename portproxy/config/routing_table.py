#!/usr/bin/env python3
"""Routing table shared by the proxy and admin servers, backed by a JSON file."""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.errors import (
    EndpointNotFound,
    InvalidEndpoint,
    PersistenceFailure,
    RoutingStoreCorrupt,
)
from ..core.resolver import canonicalize_endpoint, is_valid_endpoint, parse_port

logger = logging.getLogger('portproxy.table')


class RoutingTable:
    """Endpoint -> port mapping with write-through persistence.

    One instance is shared by every request handler. All mutations hold the
    lock until the file has been written, and readers take copies under the
    same lock, so a rename is never observed half-applied.
    """

    def __init__(self, mappings_file: Path):
        self.mappings_file = Path(mappings_file)
        self._mappings: Dict[str, int] = {}
        self._lock = threading.RLock()

    def _ensure_store_dir(self):
        """Ensure the directory holding the store exists."""
        self.mappings_file.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, int]:
        """Load the persisted mapping, replacing the in-memory one.

        A missing or unreadable file gives an empty table. A file that reads
        fine but does not hold a valid mapping raises RoutingStoreCorrupt.
        """
        try:
            with open(self.mappings_file, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            logger.info(f"No mappings file at {self.mappings_file}, starting empty")
            content = None
        except OSError as exc:
            logger.warning(f"Failed to read mappings file {self.mappings_file}: {exc}")
            content = None

        mappings = self._parse_store(content) if content is not None else {}

        with self._lock:
            self._mappings = mappings
        logger.info(f"Loaded {len(mappings)} route(s) from {self.mappings_file}")
        return dict(mappings)

    def _parse_store(self, content: str) -> Dict[str, int]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise RoutingStoreCorrupt(f"{self.mappings_file} is not valid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise RoutingStoreCorrupt(f"{self.mappings_file} must contain a JSON object")

        mappings: Dict[str, int] = {}
        for endpoint, port in data.items():
            if canonicalize_endpoint(endpoint) != endpoint or not is_valid_endpoint(endpoint):
                raise RoutingStoreCorrupt(f"{self.mappings_file} has invalid endpoint {endpoint!r}")
            if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
                raise RoutingStoreCorrupt(f"{self.mappings_file} has invalid port {port!r} for {endpoint}")
            mappings[endpoint] = port
        return mappings

    def get(self, endpoint: Any) -> Optional[int]:
        endpoint = canonicalize_endpoint(endpoint)
        if endpoint is None:
            return None
        with self._lock:
            return self._mappings.get(endpoint)

    def list(self) -> Dict[str, int]:
        """Return a consistent snapshot of the table."""
        with self._lock:
            return dict(self._mappings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._mappings)

    def __contains__(self, endpoint: Any) -> bool:
        return self.get(endpoint) is not None

    def set(self, endpoint: Any, port: Any) -> str:
        """Insert or overwrite a route; returns the canonical endpoint."""
        canonical = canonicalize_endpoint(endpoint)
        if not is_valid_endpoint(canonical):
            raise InvalidEndpoint()
        port = parse_port(port)

        with self._lock:
            self._mappings[canonical] = port
            logger.info(f"Mapped {canonical} -> :{port}")
            self.persist()
        return canonical

    def delete(self, endpoint: Any) -> bool:
        """Remove a route if present. Returns whether anything was removed."""
        canonical = canonicalize_endpoint(endpoint)
        if canonical is None:
            raise InvalidEndpoint()

        with self._lock:
            removed = self._mappings.pop(canonical, None) is not None
            if removed:
                logger.info(f"Removed {canonical}")
            self.persist()
        return removed

    def rename(self, old_endpoint: Any, new_endpoint: Any) -> str:
        """Move a route's port to a new endpoint; returns the new endpoint."""
        old = canonicalize_endpoint(old_endpoint)
        new = canonicalize_endpoint(new_endpoint)
        if old is None or not is_valid_endpoint(new):
            raise InvalidEndpoint()

        with self._lock:
            if old not in self._mappings:
                raise EndpointNotFound()
            port = self._mappings.pop(old)
            self._mappings[new] = port
            logger.info(f"Renamed {old} -> {new} (:{port})")
            self.persist()
        return new

    def persist(self):
        """Write the full mapping to disk via a temp file and atomic replace.

        The in-memory table is left as-is when this fails.
        """
        with self._lock:
            data = dict(self._mappings)
            temp_path = self.mappings_file.with_suffix(self.mappings_file.suffix + '.tmp')
            try:
                self._ensure_store_dir()
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                temp_path.replace(self.mappings_file)
            except OSError as exc:
                logger.error(f"Failed to write mappings file: {exc}")
                try:
                    temp_path.unlink(missing_ok=True)
                except OSError:
                    pass
                raise PersistenceFailure(f"Failed to save mappings: {exc}") from exc

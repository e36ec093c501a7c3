#!/usr/bin/env python3
"""Backend liveness probing for the admin status view."""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict

import requests

logger = logging.getLogger('portproxy.liveness')


class LivenessProber:
    """Classify a backend port as online/offline with a HEAD request."""

    def __init__(self, host: str = 'localhost', timeout: float = 2.0, max_workers: int = 8):
        self.host = host
        self.timeout = timeout
        self.max_workers = max_workers

    def probe(self, port: int) -> bool:
        """Return True when the backend answers with a status below 500."""
        url = f"http://{self.host}:{port}/"
        try:
            response = requests.head(url, timeout=self.timeout, allow_redirects=False)
        except (requests.RequestException, ValueError) as exc:
            logger.debug(f"Probe {url} failed: {exc}")
            return False
        response.close()
        return response.status_code < 500

    def probe_all(self, mappings: Dict[str, int]) -> Dict[str, Dict[str, object]]:
        """Probe every entry of a table snapshot; keeps the snapshot's order."""
        if not mappings:
            return {}

        workers = min(self.max_workers, len(mappings))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.probe, mappings.values()))

        return {
            endpoint: {'port': port, 'online': online}
            for (endpoint, port), online in zip(mappings.items(), results)
        }

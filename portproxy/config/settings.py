#!/usr/bin/env python3
"""Runtime configuration read from the environment."""
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

CONFIG_DIR = Path.home() / '.portproxy'
RUN_DIR = CONFIG_DIR / 'run'
PID_FILE = RUN_DIR / 'portproxy.pid'
LOG_FILE = RUN_DIR / 'portproxy.log'

DEFAULT_PROXY_PORT = 3003
DEFAULT_GUI_PORT = 3004
DEFAULT_MAPPINGS_FILE = CONFIG_DIR / 'endpoint_port_mappings.json'


def _env_flag(environ: Mapping[str, str], *names: str) -> bool:
    for name in names:
        if environ.get(name, '').strip().lower() in ('1', 'true', 'yes', 'on'):
            return True
    return False


@dataclass(frozen=True)
class Settings:
    proxy_port: int = DEFAULT_PROXY_PORT
    gui_port: int = DEFAULT_GUI_PORT
    mappings_file: Path = DEFAULT_MAPPINGS_FILE
    bind_host: str = '127.0.0.1'
    backend_host: str = 'localhost'
    probe_timeout: float = 2.0
    verbose: bool = False

    def override(self, **changes) -> 'Settings':
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the process environment (or a supplied mapping)."""
    if environ is None:
        environ = os.environ

    mappings_file = environ.get('MAPPINGS_FILE')
    return Settings(
        proxy_port=int(environ.get('PORT', DEFAULT_PROXY_PORT)),
        gui_port=int(environ.get('GUI_PORT', DEFAULT_GUI_PORT)),
        mappings_file=Path(mappings_file).expanduser() if mappings_file else DEFAULT_MAPPINGS_FILE,
        bind_host=environ.get('BIND_HOST', '127.0.0.1'),
        backend_host=environ.get('BACKEND_HOST', 'localhost'),
        probe_timeout=float(environ.get('PROBE_TIMEOUT', 2.0)),
        verbose=_env_flag(environ, 'VERBOSE', 'DEBUG'),
    )

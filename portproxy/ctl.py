#!/usr/bin/env python3
"""Daemon controller for the proxy process (PID file + detached start)."""
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config.settings import LOG_FILE, PID_FILE, Settings
from .utils.platform_helper import create_detached_process, is_process_running, kill_process


class ServiceController:
    """Start, stop and inspect a detached `pxp run` process."""

    def __init__(self, pid_file: Path = PID_FILE, log_file: Path = LOG_FILE):
        self.pid_file = Path(pid_file)
        self.log_file = Path(log_file)

    def get_pid(self) -> Optional[int]:
        """Return the PID of the running proxy process, if any."""
        try:
            return int(self.pid_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def is_running(self) -> bool:
        return is_process_running(self.get_pid())

    def _clear_pid(self):
        self.pid_file.unlink(missing_ok=True)

    def build_command(self, settings: Settings) -> List[str]:
        cmd = [
            sys.executable, '-m', 'portproxy.main', 'run',
            '--port', str(settings.proxy_port),
            '--gui-port', str(settings.gui_port),
            '--mappings-file', str(settings.mappings_file),
        ]
        if settings.verbose:
            cmd.append('--verbose')
        return cmd

    def start(self, settings: Settings) -> bool:
        """Start the proxy in the background."""
        if self.is_running():
            print("portproxy is already running")
            return False

        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.log_file, 'a') as log_handle:
                process = create_detached_process(
                    self.build_command(settings),
                    log_handle,
                    env=os.environ.copy(),
                )
        except RuntimeError as e:
            print(f"Failed to start portproxy: {e}")
            return False

        self.pid_file.write_text(str(process.pid))

        # Give the servers time to bind
        time.sleep(1)

        if self.is_running():
            print(f"portproxy started (proxy: {settings.proxy_port}, gui: {settings.gui_port})")
            return True

        print(f"portproxy failed to start, see {self.log_file}")
        self._clear_pid()
        return False

    def stop(self) -> bool:
        """Stop the background proxy."""
        pid = self.get_pid()
        if pid is None or not self.is_running():
            print("portproxy is not running")
            self._clear_pid()
            return False

        stopped = kill_process(pid)
        self._clear_pid()
        print("portproxy stopped" if stopped else "Failed to stop portproxy")
        return stopped

    def restart(self, settings: Settings) -> bool:
        self.stop()
        time.sleep(1)
        return self.start(settings)


controller = ServiceController()

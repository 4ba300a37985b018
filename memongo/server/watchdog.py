"""
Orphan watchdog for the mongod child process.

If the host process dies without stopping its server (SIGKILL, crash), the
mongod child would otherwise live on. A watchdog is a separate, detached
process that polls for the parent's liveness and force-kills the child once
the parent is gone or has become a zombie.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Optional

from memongo.core.exceptions import WatchdogError

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"
DEFAULT_POLL_INTERVAL = 1
STOP_TIMEOUT = 5.0

_SCRIPT_TEMPLATE = (
    "while kill -0 {parent} 2>/dev/null; do "
    'case "$(ps -o stat= -p {parent} 2>/dev/null)" in *Z*) break;; esac; '
    "sleep {interval}; "
    "done; "
    "kill -9 {child} 2>/dev/null"
)


class WatchdogHandle(ABC):
    """A running watchdog."""

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        """Process id of the watchdog, if it runs as a process."""

    @abstractmethod
    def stop(self) -> None:
        """Terminate the watchdog and reap it."""


class Watchdog(ABC):
    """Starts a watchdog tying ``child_pid``'s lifetime to ``parent_pid``."""

    @abstractmethod
    def start(self, parent_pid: int, child_pid: int) -> WatchdogHandle:
        """
        Start watching.

        Raises:
            WatchdogError: If the watchdog could not be started
        """


class ProcessWatchdogHandle(WatchdogHandle):
    """Handle over a watchdog running as a subprocess."""

    def __init__(self, process: subprocess.Popen):
        self._process = process

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    def stop(self) -> None:
        self._process.kill()
        self._process.wait(timeout=STOP_TIMEOUT)


class ShellWatchdog(Watchdog):
    """
    POSIX watchdog implemented as a detached shell loop.

    The loop runs in its own session so terminal signals aimed at the
    host's process group do not reach it.
    """

    def __init__(
        self, shell: str = DEFAULT_SHELL, poll_interval: int = DEFAULT_POLL_INTERVAL
    ):
        self.shell = shell
        self.poll_interval = int(poll_interval)

    def script(self, parent_pid: int, child_pid: int) -> str:
        """Render the watch loop. Only integers reach the script text."""
        return _SCRIPT_TEMPLATE.format(
            parent=int(parent_pid),
            child=int(child_pid),
            interval=max(1, self.poll_interval),
        )

    def start(self, parent_pid: int, child_pid: int) -> WatchdogHandle:
        script = self.script(parent_pid, child_pid)
        logger.debug(f"Starting watchdog for mongod {child_pid} (parent {parent_pid})")

        try:
            process = subprocess.Popen(
                [self.shell, "-c", script],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                close_fds=True,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise WatchdogError(str(e)) from e

        return ProcessWatchdogHandle(process)


def default_watchdog() -> Watchdog:
    """Watchdog for the current platform."""
    if os.name == "posix":
        return ShellWatchdog()
    raise WatchdogError(f"no orphan watchdog available on {os.name}")


__all__ = [
    "Watchdog",
    "WatchdogHandle",
    "ProcessWatchdogHandle",
    "ShellWatchdog",
    "default_watchdog",
]

"""
Ephemeral mongod supervision.

A Server owns one mongod child started against a fresh temporary data
directory with the in-memory test storage engine. Startup blocks until the
server's log reports readiness, reports a fatal condition, or the startup
timeout elapses. An orphan watchdog kills the child if this process dies
without stopping it.

Example:
    >>> import memongo
    >>> with memongo.start("4.0.5") as server:
    ...     client = MongoClient(server.uri())
"""

import logging
import os
import subprocess
import tempfile
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from memongo.binary.downloader import MongodDownloader
from memongo.core.download import format_progress
from memongo.core.exceptions import (
    StartupError,
    StartupTimeoutError,
    WatchdogError,
)
from memongo.core.filesystem import FilesystemError, safe_rmtree
from memongo.server.naming import random_database
from memongo.server.options import (
    DEFAULT_STARTUP_TIMEOUT,
    Options,
    ResolvedOptions,
)
from memongo.server.readiness import Failed, LogFormat, ReadinessMonitor
from memongo.server.watchdog import Watchdog, WatchdogHandle, default_watchdog

logger = logging.getLogger(__name__)

STORAGE_ENGINE = "ephemeralForTest"
DB_DIR_PREFIX = "memongo_db_"
KILL_TIMEOUT = 10.0


class ServerState(Enum):
    """Lifecycle of a Server."""

    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


def build_command(binary: Union[str, Path], db_dir: Path, port: int) -> List[str]:
    """Argument vector for an ephemeral mongod."""
    return [
        str(binary),
        "--storageEngine",
        STORAGE_ENGINE,
        "--dbpath",
        str(db_dir),
        "--port",
        str(port),
    ]


class Server:
    """
    A running (or runnable) ephemeral mongod.

    Use start() or start_with_options() rather than constructing one
    directly, unless you already have a binary.
    """

    def __init__(
        self,
        binary: Union[str, Path],
        port: int = 0,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
        log_format: LogFormat = LogFormat.AUTO,
        server_logger: Optional[logging.Logger] = None,
        watchdog: Optional[Watchdog] = None,
    ):
        self.binary = Path(binary)
        self.requested_port = port
        self.startup_timeout = startup_timeout
        self.log_format = log_format
        self.logger = server_logger or logger
        self.watchdog = watchdog

        self._state = ServerState.CREATED
        self._port: Optional[int] = None
        self._db_dir: Optional[Path] = None
        self._process: Optional[subprocess.Popen] = None
        self._watchdog_handle: Optional[WatchdogHandle] = None
        self._monitor: Optional[ReadinessMonitor] = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def port(self) -> int:
        """Port mongod reported listening on."""
        if self._port is None:
            raise StartupError("server is not running")
        return self._port

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def watchdog_pid(self) -> Optional[int]:
        return self._watchdog_handle.pid if self._watchdog_handle else None

    @property
    def db_dir(self) -> Optional[Path]:
        return self._db_dir

    def uri(self) -> str:
        """Connection URI, e.g. ``mongodb://localhost:27017``."""
        return f"mongodb://localhost:{self.port}"

    def uri_with_random_db(self) -> str:
        """Connection URI naming a freshly generated database."""
        return f"{self.uri()}/{random_database()}"

    def start(self) -> "Server":
        """
        Launch mongod and wait until it is ready.

        Returns:
            self

        Raises:
            StartupError: If mongod could not be launched or reported a
                fatal condition (WatchdogError if the watchdog failed)
            StartupTimeoutError: If readiness was not reported in time
        """
        if self._state is not ServerState.CREATED:
            raise StartupError(f"server already {self._state.value}")

        self._state = ServerState.STARTING
        self._db_dir = Path(tempfile.mkdtemp(prefix=DB_DIR_PREFIX))
        command = build_command(self.binary, self._db_dir, self.requested_port)
        self.logger.debug(f"Starting mongod: {' '.join(command)}")

        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            self._abort()
            raise StartupError(f"could not run {self.binary}: {e}") from e

        self._monitor = ReadinessMonitor(self.logger, self.log_format)
        self._monitor.start(
            {"stdout": self._process.stdout, "stderr": self._process.stderr}
        )

        try:
            watchdog = self.watchdog or default_watchdog()
            self._watchdog_handle = watchdog.start(os.getpid(), self._process.pid)
        except StartupError:
            self._abort()
            raise
        except Exception as e:
            self._abort()
            raise WatchdogError(str(e)) from e

        try:
            outcome = self._monitor.wait(timeout=self.startup_timeout)
        except FutureTimeoutError:
            self._abort()
            raise StartupTimeoutError(self.startup_timeout) from None

        if isinstance(outcome, Failed):
            self._abort()
            raise StartupError(outcome.reason)

        self._port = outcome.port
        self._state = ServerState.RUNNING
        self.logger.info(f"mongod {self._process.pid} listening on port {self._port}")
        return self

    def stop(self) -> None:
        """
        Stop mongod, its watchdog, and remove the data directory.

        Safe to call more than once. Failures are logged, and every step is
        attempted regardless.
        """
        if self._state is not ServerState.RUNNING:
            self.logger.debug(f"stop() on {self._state.value} server ignored")
            return

        self._release()
        self._state = ServerState.STOPPED
        self.logger.info("mongod stopped")

    def _abort(self) -> None:
        self._release()
        self._state = ServerState.FAILED

    def _release(self) -> None:
        if self._process is not None:
            try:
                self._process.kill()
                self._process.wait(timeout=KILL_TIMEOUT)
            except (OSError, subprocess.SubprocessError) as e:
                self.logger.warning(f"error stopping mongod {self._process.pid}: {e}")

        if self._watchdog_handle is not None:
            try:
                self._watchdog_handle.stop()
            except (OSError, subprocess.SubprocessError) as e:
                self.logger.warning(f"error stopping watchdog: {e}")

        if self._db_dir is not None:
            try:
                safe_rmtree(self._db_dir)
            except FilesystemError as e:
                self.logger.warning(f"error removing {self._db_dir}: {e}")

    def __enter__(self) -> "Server":
        if self._state is ServerState.CREATED:
            self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"Server(binary={str(self.binary)!r}, state={self._state.value!r})"


def _provision(resolved: ResolvedOptions) -> Path:
    if resolved.mongod_bin is not None:
        return resolved.mongod_bin

    def log_progress(progress):
        resolved.logger.debug(f"Downloading mongod: {format_progress(progress)}")

    downloader = MongodDownloader(
        resolved.cache_path,
        session=resolved.session,
        verify_checksum=resolved.verify_checksum,
        verify_signature=resolved.verify_signature,
        progress_callback=log_progress,
    )
    return downloader.get_or_download(resolved.download_url, version=resolved.version)


def start_with_options(options: Options) -> Server:
    """
    Provision mongod if needed and start a server.

    Raises:
        MemongoError: Any configuration, provisioning or startup failure
    """
    resolved = options.resolve()
    binary = _provision(resolved)

    server = Server(
        binary,
        port=resolved.port,
        startup_timeout=resolved.startup_timeout,
        log_format=resolved.log_format,
        server_logger=resolved.logger,
        watchdog=resolved.watchdog,
    )
    return server.start()


def start(version: str) -> Server:
    """Start a server running the given MongoDB version with default options."""
    return start_with_options(Options(mongo_version=version))


__all__ = [
    "ServerState",
    "Server",
    "build_command",
    "start",
    "start_with_options",
]

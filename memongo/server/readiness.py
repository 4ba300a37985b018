"""
Readiness detection from mongod's own log output.

mongod never signals readiness other than by logging. Each output line is
classified against an ordered list of recognizers:

- a "waiting for connections ... port N" line means the server is ready
- a handful of known messages mean startup failed

The first recognizer to match wins and the outcome is delivered exactly
once. If every output stream closes before anything matched, the process
exited before startup completed.

Two log grammars exist: the plain text lines of mongod < 4.4 and the
structured JSON records of mongod >= 4.4. LogFormat selects which one is
expected; AUTO accepts both.
"""

import json
import logging
import re
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import IO, Dict, List, Optional, Tuple, Union

from memongo.core.version import Version

logger = logging.getLogger(__name__)


class LogFormat(str, Enum):
    """Log grammar emitted by a mongod binary."""

    AUTO = "auto"
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class Ready:
    """mongod is accepting connections on ``port``."""

    port: int


@dataclass(frozen=True)
class Failed:
    """mongod will not come up."""

    reason: str


ReadinessOutcome = Union[Ready, Failed]

EXITED_BEFORE_STARTUP = "exited before startup completed"

# Cribbed from mongodb-memory-server's MongoInstance log handling
READY_PATTERN = re.compile(r"waiting for connections.*port\D*(\d+)")

FATAL_PATTERNS: List[Tuple["re.Pattern[str]", str]] = [
    (re.compile(r"addr(ess)? already in use"), "address in use"),
    (re.compile(r"mongod already running"), "already running"),
    (re.compile(r"mongod permission denied"), "permission denied"),
    (re.compile(r"data directory .*? not found"), "data directory not found"),
    (re.compile(r"shutting down with code"), "server shut down"),
]

# Structured logging arrived in this release
JSON_LOG_VERSION = Version(4, 4, 0)
MAX_PORT = 65535


def log_format_for_version(version: Optional[Version]) -> LogFormat:
    """
    Log grammar a given mongod version writes.

    Example:
        >>> log_format_for_version(Version(4, 2, 0))
        <LogFormat.TEXT: 'text'>
    """
    if version is None:
        return LogFormat.AUTO
    if version >= JSON_LOG_VERSION:
        return LogFormat.JSON
    return LogFormat.TEXT


def _port_outcome(raw_port: str, line: str) -> ReadinessOutcome:
    port = int(raw_port)
    if not 0 < port <= MAX_PORT:
        return Failed(f"could not parse port from mongod log line: {line}")
    return Ready(port)


def _classify_text(lowered: str) -> Optional[ReadinessOutcome]:
    match = READY_PATTERN.search(lowered)
    if match:
        return _port_outcome(match.group(1), lowered)

    for pattern, reason in FATAL_PATTERNS:
        if pattern.search(lowered):
            return Failed(reason)

    return None


def _parse_record(line: str) -> Optional[dict]:
    stripped = line.strip()
    if not stripped.startswith("{"):
        return None
    try:
        record = json.loads(stripped)
    except ValueError:
        return None
    return record if isinstance(record, dict) else None


def _classify_record(record: dict) -> Optional[ReadinessOutcome]:
    message = str(record.get("msg", "")).lower()
    attributes = record.get("attr")
    attributes = attributes if isinstance(attributes, dict) else {}

    if message.startswith("waiting for connections"):
        port = attributes.get("port")
        if isinstance(port, int) and not isinstance(port, bool):
            return _port_outcome(str(port), message)

    flattened = f"{message} {json.dumps(attributes, sort_keys=True).lower()}"
    return _classify_text(flattened)


def classify_line(
    line: str, log_format: LogFormat = LogFormat.AUTO
) -> Optional[ReadinessOutcome]:
    """
    Classify one line of mongod output.

    Matching is case-insensitive. Returns None when the line says nothing
    about startup.

    Example:
        >>> classify_line("waiting for connections on port 27017")
        Ready(port=27017)
        >>> classify_line("addr already in use")
        Failed(reason='address in use')
    """
    if log_format is not LogFormat.TEXT:
        record = _parse_record(line)
        if record is not None:
            return _classify_record(record)
        if log_format is LogFormat.JSON:
            # Non-record output (banners, stderr noise) carries no signal
            return None

    return _classify_text(line.lower())


class ReadinessMonitor:
    """
    Reads mongod's output streams and resolves a single startup outcome.

    One daemon thread per stream relays every line to the log and feeds it
    to classify_line until an outcome exists. Threads keep relaying after
    startup so the server's log stays visible.

    Example:
        >>> monitor = ReadinessMonitor(logger, LogFormat.AUTO)
        >>> monitor.start({"stdout": proc.stdout, "stderr": proc.stderr})
        >>> outcome = monitor.wait(timeout=10)
    """

    def __init__(
        self,
        relay_logger: Optional[logging.Logger] = None,
        log_format: LogFormat = LogFormat.AUTO,
    ):
        self.relay_logger = relay_logger or logger
        self.log_format = log_format
        self._outcome: "Future[ReadinessOutcome]" = Future()
        self._lock = threading.Lock()
        self._open_streams = 0
        self._threads: List[threading.Thread] = []

    def start(self, streams: Dict[str, Optional[IO[str]]]) -> None:
        """Start one reader thread per non-None stream."""
        readable = {name: stream for name, stream in streams.items() if stream}
        self._open_streams = len(readable)

        if not readable:
            self._resolve(Failed(EXITED_BEFORE_STARTUP))
            return

        for name, stream in readable.items():
            thread = threading.Thread(
                target=self._read,
                args=(name, stream),
                name=f"mongod-{name}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

    def wait(self, timeout: Optional[float] = None) -> ReadinessOutcome:
        """
        Block until the outcome is known.

        Raises:
            concurrent.futures.TimeoutError: If nothing was decided in time
        """
        return self._outcome.result(timeout=timeout)

    @property
    def done(self) -> bool:
        return self._outcome.done()

    def _resolve(self, outcome: ReadinessOutcome) -> bool:
        with self._lock:
            if self._outcome.done():
                return False
            self._outcome.set_result(outcome)
        return True

    def _read(self, name: str, stream: IO[str]) -> None:
        try:
            for raw in stream:
                line = raw.rstrip("\r\n")
                self.relay_logger.debug(f"[mongod {name}] {line}")

                if self._outcome.done():
                    continue

                outcome = classify_line(line, self.log_format)
                if outcome is not None and self._resolve(outcome):
                    self.relay_logger.debug(f"Startup outcome from {name}: {outcome}")
        except (OSError, ValueError) as e:
            self.relay_logger.warning(f"reading mongod {name} failed: {e}")
        finally:
            with self._lock:
                self._open_streams -= 1
                all_closed = self._open_streams == 0
            if all_closed:
                self._resolve(Failed(EXITED_BEFORE_STARTUP))


__all__ = [
    "LogFormat",
    "Ready",
    "Failed",
    "ReadinessOutcome",
    "EXITED_BEFORE_STARTUP",
    "classify_line",
    "log_format_for_version",
    "ReadinessMonitor",
]

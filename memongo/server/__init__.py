"""
Ephemeral mongod process supervision.

Starts mongod as a child process, detects readiness from its log output,
and guards against orphaned children with a watchdog.
"""

from .options import Options, ResolvedOptions, load_options
from .readiness import LogFormat, Ready, Failed, classify_line
from .watchdog import Watchdog, ShellWatchdog
from .supervisor import Server, ServerState, start, start_with_options

__all__ = [
    "Options",
    "ResolvedOptions",
    "load_options",
    "LogFormat",
    "Ready",
    "Failed",
    "classify_line",
    "Watchdog",
    "ShellWatchdog",
    "Server",
    "ServerState",
    "start",
    "start_with_options",
]

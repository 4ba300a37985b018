"""
memongo - throwaway MongoDB servers for tests.

Downloads (and caches) the right mongod for your system, starts it on an
ephemeral data directory, and cleans everything up when you are done.

Example:
    >>> import memongo
    >>> server = memongo.start("4.0.5")
    >>> server.uri()
    'mongodb://localhost:43721'
    >>> server.stop()
"""

__version__ = "0.1.0"

from memongo.core.exceptions import (
    MemongoError,
    ConfigurationError,
    UnsupportedVersionError,
    UnsupportedSystemError,
    DownloadError,
    IntegrityError,
    ChecksumVerificationError,
    SignatureVerificationError,
    ArchiveError,
    BinaryNotFoundInArchiveError,
    StartupError,
    WatchdogError,
    StartupTimeoutError,
)
from memongo.server import (
    Options,
    Server,
    ServerState,
    load_options,
    start,
    start_with_options,
)

__all__ = [
    "__version__",
    "start",
    "start_with_options",
    "load_options",
    "Options",
    "Server",
    "ServerState",
    "MemongoError",
    "ConfigurationError",
    "UnsupportedVersionError",
    "UnsupportedSystemError",
    "DownloadError",
    "IntegrityError",
    "ChecksumVerificationError",
    "SignatureVerificationError",
    "ArchiveError",
    "BinaryNotFoundInArchiveError",
    "StartupError",
    "WatchdogError",
    "StartupTimeoutError",
]

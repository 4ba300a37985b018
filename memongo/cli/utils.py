"""
Shared utilities for CLI commands.

Turns parsed arguments into Options: the --config file (if any) supplies
the base values and explicit command-line flags override them.
"""

import dataclasses
import logging
from typing import Any, Dict

from memongo.server.options import Options, load_options

logger = logging.getLogger(__name__)

# argparse destinations named after the Options fields they override
ARGUMENT_FIELDS = (
    "mongo_version",
    "mongod_bin",
    "download_url",
    "cache_path",
    "verify_checksum",
    "verify_signature",
    "port",
    "startup_timeout",
    "log_format",
)


def options_from_args(args) -> Options:
    """
    Build Options from parsed CLI arguments.

    Raises:
        ConfigurationError: If the --config file is invalid
    """
    config_path = getattr(args, "config", None)
    if config_path:
        base = load_options(config_path)
        logger.debug(f"Loaded options from {config_path}")
    else:
        base = Options()

    overrides: Dict[str, Any] = {}
    for name in ARGUMENT_FIELDS:
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value

    return dataclasses.replace(base, **overrides)


__all__ = ["options_from_args"]

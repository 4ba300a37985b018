"""
Start command implementation.

Starts an ephemeral mongod, prints its connection URI on stdout and keeps
it running until interrupted (Ctrl+C or SIGTERM).
"""

import logging
import signal
import threading

from memongo.cli.utils import options_from_args
from memongo.server.supervisor import start_with_options

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the start command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    options = options_from_args(args)
    server = start_with_options(options)

    stop_requested = threading.Event()
    previous_handler = signal.signal(
        signal.SIGTERM, lambda signum, frame: stop_requested.set()
    )

    try:
        with server:
            print(server.uri_with_random_db() if args.random_db else server.uri(), flush=True)
            logger.info("mongod is running, press Ctrl+C to stop")
            try:
                stop_requested.wait()
            except KeyboardInterrupt:
                pass
            logger.info("Stopping mongod")
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    return 0

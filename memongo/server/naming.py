"""Random database names for test isolation."""

import secrets

DB_NAME_CHARS = "abcdefghijklmnopqrstuvwxyz"
DB_NAME_LENGTH = 15


def random_database() -> str:
    """Return a random, valid MongoDB database name."""
    return "".join(secrets.choice(DB_NAME_CHARS) for _ in range(DB_NAME_LENGTH))

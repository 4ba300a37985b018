"""
Integrity verification for downloaded mongod archives.

Two independent checks are provided:
- SHA256 checksum against a published ``.sha256`` companion file
- Detached GPG signature against the MongoDB release key

Signature checks run the system ``gpg`` inside a throwaway home directory,
so the user's own keyring is never read or modified.
"""

import hashlib
import logging
import secrets
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from memongo.core.exceptions import (
    ChecksumVerificationError,
    SignatureVerificationError,
)
from memongo.core.filesystem import FilesystemError, safe_rmtree

logger = logging.getLogger(__name__)

GPG_TIMEOUT = 60


def compute_file_hash(file_path: Path) -> str:
    """
    Compute the SHA256 hex digest of a file.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(65536):
            hasher.update(chunk)

    return hasher.hexdigest()


def parse_checksum(content: str) -> str:
    """
    Extract the digest from checksum file content.

    The digest is the first whitespace-delimited token, as in the
    ``<hash>  <filename>`` layout written by sha256sum.

    Example:
        >>> parse_checksum("abc123  mongodb-linux-x86_64-4.0.5.tgz\\n")
        'abc123'
    """
    tokens = content.split()
    return tokens[0] if tokens else ""


def verify_checksum(
    artifact_path: Path,
    checksum_content: str,
    url: str,
    actual_sha256: Optional[str] = None,
) -> None:
    """
    Compare an artifact against its published checksum.

    Args:
        artifact_path: Downloaded archive
        checksum_content: Body of the ``.sha256`` companion file
        url: Artifact URL, for error reporting
        actual_sha256: Digest already computed while downloading, if known

    Raises:
        ChecksumVerificationError: If the digests differ
    """
    expected = parse_checksum(checksum_content)
    actual = actual_sha256 or compute_file_hash(artifact_path)

    if not expected or not _constant_time_compare(expected, actual):
        logger.error(f"Checksum mismatch for {url}: expected {expected!r}, got {actual}")
        raise ChecksumVerificationError(url, expected=expected, actual=actual)


def verify_gpg_signature(
    file_path: Path, signature_path: Path, public_key_path: Path
) -> tuple[bool, str]:
    """
    Verify a detached GPG signature of ``file_path``.

    The public key is imported into a temporary GPG home that is removed
    afterwards.

    Args:
        file_path: File to verify
        signature_path: Detached signature file (.sig or .asc)
        public_key_path: Armored public key to verify against

    Returns:
        (verified: bool, message: str)

    Example:
        >>> verified, msg = verify_gpg_signature(
        ...     Path('mongodb.tgz'), Path('mongodb.tgz.sig'), Path('server-4.4.asc')
        ... )
    """
    for path, label in (
        (file_path, "File"),
        (signature_path, "Signature file"),
        (public_key_path, "Public key"),
    ):
        if not path.exists():
            return False, f"{label} not found: {path}"

    gpg_home = Path(tempfile.mkdtemp(prefix="memongo_gpg_"))
    base_cmd = ["gpg", "--batch", "--no-tty", "--homedir", str(gpg_home)]

    try:
        imported = subprocess.run(
            base_cmd + ["--import", str(public_key_path)],
            capture_output=True,
            text=True,
            timeout=GPG_TIMEOUT,
        )
        if imported.returncode != 0:
            return False, f"Could not import public key: {imported.stderr.strip()}"

        result = subprocess.run(
            base_cmd + ["--verify", str(signature_path), str(file_path)],
            capture_output=True,
            text=True,
            timeout=GPG_TIMEOUT,
        )

        if result.returncode == 0:
            return True, "GPG signature verified successfully"
        return False, f"GPG verification failed: {result.stderr.strip()}"

    except FileNotFoundError:
        return False, "GPG not installed. Install gpg to verify signatures."
    except subprocess.TimeoutExpired:
        return False, "GPG verification timeout"
    finally:
        try:
            safe_rmtree(gpg_home)
        except FilesystemError as e:
            logger.warning(f"Could not remove temporary GPG home {gpg_home}: {e}")


def verify_signature(
    artifact_path: Path, signature_path: Path, public_key_path: Path, url: str
) -> None:
    """
    Raise unless the artifact's detached signature verifies.

    Raises:
        SignatureVerificationError: If verification fails for any reason
    """
    verified, message = verify_gpg_signature(
        artifact_path, signature_path, public_key_path
    )
    if not verified:
        logger.error(f"Signature check failed for {url}: {message}")
        raise SignatureVerificationError(url, detail=message)
    logger.debug(message)


def _constant_time_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


__all__ = [
    "compute_file_hash",
    "parse_checksum",
    "verify_checksum",
    "verify_gpg_signature",
    "verify_signature",
]

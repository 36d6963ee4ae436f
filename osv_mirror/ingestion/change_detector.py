"""
Remote change detection for the feed archive.

Compares the feed's ETag, obtained with a HEAD request, against the MD5
digest of the local archive. The OSV bucket serves single-part objects whose
ETag is the hex MD5 of the content, so equal values mean the local copy is
current and the download can be skipped.
"""
import hashlib
import logging
from pathlib import Path
from typing import Optional

from .http_client import HttpClient, NetworkError

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024


def file_md5(path: Path) -> str:
    """Hex MD5 digest of a file, read in chunks."""
    digest = hashlib.md5()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def normalize_etag(value: str) -> str:
    """Strip the weak-validator prefix and the quoting HTTP adds to ETags."""
    etag = value.strip()
    if etag.startswith("W/"):
        etag = etag[2:]
    return etag.strip('"')


class ChangeDetector:
    """Decides whether the remote archive differs from the local copy."""

    def __init__(self, client: HttpClient, url: str, archive_path: Path):
        self.client = client
        self.url = url
        self.archive_path = Path(archive_path)

    def remote_fingerprint(self) -> str:
        """
        Fetch the archive's ETag without transferring the body.

        Raises:
            NetworkError: If the probe fails or the ETag header is absent
        """
        response = self.client.head(self.url)
        etag = response.headers.get("ETag")
        if not etag:
            raise NetworkError(f"ETag header not found for {self.url}")
        return normalize_etag(etag)

    def local_fingerprint(self) -> Optional[str]:
        if not self.archive_path.exists():
            return None
        return file_md5(self.archive_path)

    def needs_download(self) -> bool:
        """
        Return True when the local archive is missing or stale.

        The remote probe always runs first so that an unreachable feed is
        reported even when no local archive exists.
        """
        remote = self.remote_fingerprint()
        local = self.local_fingerprint()

        if local is None:
            logger.info("No local archive at %s", self.archive_path)
            return True

        if local != remote:
            logger.info("Local archive is stale (local=%s remote=%s)", local, remote)
            return True

        logger.info("Local archive is up to date (%s)", local)
        return False

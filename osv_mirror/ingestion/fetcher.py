"""
Archive download with atomic replacement of the local copy.
"""
import logging
from pathlib import Path

import requests

from .http_client import HttpClient, NetworkError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class ArchiveFetcher:
    """Streams the feed archive to disk, never exposing a partial file."""

    def __init__(self, client: HttpClient):
        self.client = client

    def fetch(self, url: str, destination: Path) -> int:
        """
        Download url to destination.

        The body is written to ``<destination>.part`` and renamed over the
        destination only once the stream has completed. Any failure removes
        the partial file and leaves an existing destination untouched.

        Args:
            url: Archive URL
            destination: Final path of the local archive

        Returns:
            Number of bytes written

        Raises:
            NetworkError: On a non-success status or a broken transfer
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        temp_path = destination.with_suffix(destination.suffix + ".part")

        logger.info("Downloading %s", url)
        written = 0
        try:
            response = self.client.get_stream(url)
            with response, open(temp_path, "wb") as handle:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
                        written += len(chunk)
            temp_path.replace(destination)
        except requests.RequestException as exc:
            raise NetworkError(f"Download of {url} interrupted after {written} bytes: {exc}") from exc
        finally:
            temp_path.unlink(missing_ok=True)

        logger.info("Download complete: %d bytes written to %s", written, destination)
        return written

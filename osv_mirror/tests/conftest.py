"""
Shared pytest fixtures for feed mirror tests.

This module provides reusable fixtures for a temporary DuckDB database,
archive construction, sample advisories, and a fake feed host behind a
mocked requests session.
"""
import hashlib
import json
import sys
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from requests.structures import CaseInsensitiveDict

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ingestion.http_client import HttpClient
from storage import Database, VulnerabilityStore


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    Yields:
        Database instance with schema initialized
    """
    with tempfile.NamedTemporaryFile(suffix=".duckdb", delete=True) as f:
        db_path = f.name

    db = Database(db_path)
    db.initialize_schema()
    yield db
    db.close()

    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def store(temp_db):
    """VulnerabilityStore over the temporary database."""
    return VulnerabilityStore(temp_db)


def advisory(advisory_id: str, ecosystem: str = "npm", summary: str = "Test advisory") -> Dict:
    return {
        "id": advisory_id,
        "modified": "2024-03-01T12:00:00Z",
        "summary": summary,
        "aliases": [],
        "affected": [
            {
                "package": {"ecosystem": ecosystem, "name": "example-package"},
                "ranges": [{"type": "SEMVER", "events": [{"introduced": "0"}, {"fixed": "1.2.3"}]}],
            }
        ],
    }


@pytest.fixture
def sample_advisories() -> List[Dict]:
    """Three well-formed OSV documents."""
    return [
        advisory("GHSA-aaaa-0001-0001", "npm"),
        advisory("PYSEC-2024-0002", "PyPI"),
        advisory("RUSTSEC-2024-0003", "crates.io"),
    ]


def build_archive(path: Path, entries, compression=zipfile.ZIP_DEFLATED) -> Path:
    """
    Write a zip archive.

    Args:
        path: Destination file
        entries: Iterable of (name, content); dict content is JSON-encoded,
            str content is UTF-8 encoded, a name ending in "/" is a directory
    """
    with zipfile.ZipFile(path, "w", compression=compression) as zf:
        for name, content in entries:
            if name.endswith("/"):
                zf.writestr(zipfile.ZipInfo(name), b"")
                continue
            if isinstance(content, dict):
                content = json.dumps(content)
            zf.writestr(name, content)
    return path


def damage_member(path: Path, marker: bytes) -> None:
    """
    Flip the first byte of marker inside a stored (uncompressed) member.

    The archive index stays intact; reading that member fails its CRC check.
    """
    data = path.read_bytes()
    offset = data.index(marker)
    path.write_bytes(data[:offset] + bytes([data[offset] ^ 0x01]) + data[offset + 1:])


@pytest.fixture
def make_archive(tmp_path):
    """Factory building archives under tmp_path."""
    def _make(entries, name: str = "osv-data.zip", compression=zipfile.ZIP_DEFLATED) -> Path:
        return build_archive(tmp_path / name, entries, compression=compression)
    return _make


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def make_response(status_code: int = 200, headers: Optional[Dict] = None, chunks=None) -> MagicMock:
    """
    Fake requests.Response.

    chunks may be a list of byte strings or a callable accepting chunk_size
    and returning an iterator (used to simulate a broken stream).
    """
    response = MagicMock()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    if callable(chunks):
        response.iter_content.side_effect = chunks
    else:
        response.iter_content.return_value = list(chunks or [])
    return response


class FakeFeed:
    """
    Serves one archive through a mocked session.

    HEAD answers with the archive's MD5 as a quoted ETag, GET streams the
    archive bytes. Attributes can be changed between runs to simulate the
    remote feed changing or failing.
    """

    def __init__(self, archive_bytes: bytes):
        self.archive_bytes = archive_bytes
        self.etag: Optional[str] = md5_hex(archive_bytes)
        self.head_status = 200
        self.get_status = 200
        self.stream = None
        self.session = MagicMock()
        self.session.headers = {}
        self.session.request.side_effect = self._request

    def _request(self, method, url, **kwargs):
        if method == "HEAD":
            headers = {"ETag": f'"{self.etag}"'} if self.etag else {}
            return make_response(self.head_status, headers)
        chunks = self.stream if self.stream is not None else [self.archive_bytes]
        return make_response(self.get_status, {}, chunks)

    def calls(self, method: str) -> int:
        return sum(1 for c in self.session.request.call_args_list if c.args[0] == method)

    def client(self) -> HttpClient:
        return HttpClient(session=self.session)


@pytest.fixture
def feed_archive_bytes(tmp_path, sample_advisories) -> bytes:
    """Archive bytes for the sample advisories plus one non-record member."""
    path = build_archive(
        tmp_path / "remote.zip",
        [(f"{a['affected'][0]['package']['ecosystem']}/{a['id']}.json", a) for a in sample_advisories]
        + [("README.txt", "not a record")],
    )
    return path.read_bytes()


@pytest.fixture
def fake_feed(feed_archive_bytes) -> FakeFeed:
    return FakeFeed(feed_archive_bytes)


@pytest.fixture
def sync_config(tmp_path, temp_db) -> Dict:
    """Orchestrator configuration pointing at temporary paths."""
    return {
        "database": {"path": temp_db.db_path},
        "feed": {"url": "https://feed.example.test/all.zip", "timeout_seconds": 5},
        "archive": {"path": str(tmp_path / "data" / "osv-data.zip")},
        "import": {"progress_interval": 2, "failure_sample_limit": 5},
    }

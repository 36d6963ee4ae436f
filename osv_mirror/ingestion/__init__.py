"""
Ingestion layer for the OSV feed mirror.

Components, in the order a sync run uses them:
- HttpClient: HEAD probe and streaming GET against the feed host
- ChangeDetector: ETag vs. local MD5 comparison
- ArchiveFetcher: download to a temporary file, then atomic rename
- ArchiveReader: lazy iteration over archive members
- parse_record: member bytes -> AdvisoryRecord
"""
from .archive_reader import ArchiveReader, CorruptArchiveError, RawEntry, UnreadableEntryError
from .change_detector import ChangeDetector, file_md5, normalize_etag
from .fetcher import ArchiveFetcher
from .http_client import HttpClient, NetworkError, RetryConfig
from .record_parser import (
    RECORD_SUFFIX,
    AdvisoryRecord,
    MalformedRecordError,
    is_record_entry,
    parse_record,
)

__all__ = [
    "ArchiveFetcher",
    "ArchiveReader",
    "AdvisoryRecord",
    "ChangeDetector",
    "CorruptArchiveError",
    "HttpClient",
    "MalformedRecordError",
    "NetworkError",
    "RECORD_SUFFIX",
    "RawEntry",
    "RetryConfig",
    "UnreadableEntryError",
    "file_md5",
    "is_record_entry",
    "normalize_etag",
    "parse_record",
]

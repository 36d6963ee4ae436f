"""
Storage layer for the OSV feed mirror.

This module provides data persistence using DuckDB.

Components:
- Database: Connection management and schema initialization
- VulnerabilityStore: Get/upsert/scan/count primitives over the tables
- StoreSynchronizer: Full archive import guarded by store emptiness

Usage:
    from storage import Database, VulnerabilityStore, StoreSynchronizer
    from ingestion import ArchiveReader

    db = Database("osv_mirror.duckdb")
    db.initialize_schema()

    store = VulnerabilityStore(db)
    result = StoreSynchronizer(store).import_archive(ArchiveReader("osv-data.zip"))
"""

from .database import Database, RecordWriteError, StorageError
from .repository import (
    DEFAULT_ECOSYSTEMS,
    AdvisoryPage,
    DuplicateEcosystemError,
    EcosystemRecord,
    VulnerabilityStore,
)
from .synchronizer import ImportResult, StoreSynchronizer

__all__ = [
    "AdvisoryPage",
    "DEFAULT_ECOSYSTEMS",
    "Database",
    "DuplicateEcosystemError",
    "EcosystemRecord",
    "ImportResult",
    "RecordWriteError",
    "StorageError",
    "StoreSynchronizer",
    "VulnerabilityStore",
]

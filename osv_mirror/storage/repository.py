"""
Read and write primitives over the mirrored tables.

VulnerabilityStore is the only component that writes to the vulnerabilities
and ecosystems tables. Every write is a single statement, so readers on
other connections see either the previous row or the new one, never a
partial write.

Design decisions:
- Upsert keeps the first-seen created_at and refreshes data/updated_at
- Ecosystem seeding is insert-if-absent; create_ecosystem is a plain insert
- Duplicate-free pagination by ordering on (created_at DESC, id)
"""
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import duckdb

from ingestion.record_parser import AdvisoryRecord
from .database import Database, RecordWriteError, StorageError, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10

# Exceptions caused by a record's own content rather than the store
RECORD_LEVEL_ERRORS = (
    duckdb.ConstraintException,
    duckdb.ConversionException,
    duckdb.InvalidInputException,
)


class DuplicateEcosystemError(ValueError):
    """Raised by create_ecosystem when the id is already taken."""


@dataclass
class EcosystemRecord:
    id: str
    name: str
    created_at: Optional[datetime] = None


DEFAULT_ECOSYSTEMS: List[EcosystemRecord] = [
    EcosystemRecord("npm", "npm"),
    EcosystemRecord("pypi", "PyPI"),
    EcosystemRecord("maven", "Maven"),
    EcosystemRecord("nuget", "NuGet"),
    EcosystemRecord("cargo", "Cargo"),
]


@dataclass
class AdvisoryPage:
    """One page of the advisory listing."""
    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int = field(init=False)

    def __post_init__(self):
        self.total_pages = math.ceil(self.total / self.limit) if self.limit else 0


class VulnerabilityStore:
    """
    Single-writer access to the vulnerabilities and ecosystems tables.

    Operations:
    1. is_empty / count: import guard and listing totals
    2. seed_ecosystems: insert-if-absent of the default ecosystems
    3. upsert_advisory / put_advisory: insert-or-replace by id
    4. get_advisory / list_advisories / delete_advisory: reader primitives
    5. list_ecosystems / create_ecosystem
    6. record_run: sync run metadata
    """

    def __init__(self, database: Database):
        """
        Initialize store.

        Args:
            database: Database instance holding the connection
        """
        self.db = database

    def _execute(self, query: str, params: Optional[list] = None) -> duckdb.DuckDBPyConnection:
        conn = self.db.connect()
        try:
            return conn.execute(query, params or [])
        except duckdb.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    def count(self) -> int:
        return self._execute("SELECT count(*) FROM vulnerabilities").fetchone()[0]

    def is_empty(self) -> bool:
        """True iff the vulnerabilities table holds zero rows."""
        return self.count() == 0

    def seed_ecosystems(self, ecosystems: Iterable[EcosystemRecord]) -> int:
        """
        Insert each ecosystem unless its id already exists.

        Existing rows are never modified, so seeding twice is a no-op.

        Returns:
            Number of ecosystems inserted
        """
        before = self._execute("SELECT count(*) FROM ecosystems").fetchone()[0]
        now = utcnow()
        for ecosystem in ecosystems:
            self._execute("""
                INSERT INTO ecosystems (id, name, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT (id) DO NOTHING
            """, [ecosystem.id, ecosystem.name, ecosystem.created_at or now])
        after = self._execute("SELECT count(*) FROM ecosystems").fetchone()[0]
        return after - before

    def upsert_advisory(self, record: AdvisoryRecord) -> None:
        """
        Insert or replace one advisory keyed by its id.

        On conflict the document and updated_at are replaced and the
        original created_at is kept.

        Raises:
            RecordWriteError: If the store rejects this record's content
            StorageError: If the store itself fails
        """
        now = utcnow()
        conn = self.db.connect()
        try:
            conn.execute("""
                INSERT INTO vulnerabilities (id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, [record.id, record.raw, now, now])
        except RECORD_LEVEL_ERRORS as exc:
            raise RecordWriteError(record.id, str(exc)) from exc
        except duckdb.Error as exc:
            raise StorageError(f"Upsert of {record.id} failed: {exc}") from exc

    def put_advisory(self, advisory_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or replace an advisory from an already-parsed document.

        Raises:
            ValueError: If the id or document is missing
        """
        if not advisory_id or not data:
            raise ValueError("Missing required fields: id and data")
        record = AdvisoryRecord(id=advisory_id, payload=data, raw=json.dumps(data))
        self.upsert_advisory(record)
        return {"id": advisory_id, "data": data}

    def get_advisory(self, advisory_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch one advisory with its document parsed.

        Returns:
            Dict with id, data, created_at, updated_at; None if absent
        """
        cursor = self._execute("""
            SELECT id, data, created_at, updated_at
            FROM vulnerabilities
            WHERE id = ?
        """, [advisory_id])
        row = cursor.fetchone()
        if row is None:
            return None

        columns = [desc[0] for desc in cursor.description]
        advisory = dict(zip(columns, row))
        advisory["data"] = json.loads(advisory["data"])
        return advisory

    def list_advisories(self, page: Optional[int] = None, limit: Optional[int] = None) -> AdvisoryPage:
        """
        List advisory ids newest first.

        Non-positive or missing page/limit fall back to 1 and 10.
        """
        page = page if page and page > 0 else DEFAULT_PAGE
        limit = limit if limit and limit > 0 else DEFAULT_PAGE_SIZE
        offset = (page - 1) * limit

        total = self.count()
        rows = self._execute("""
            SELECT id, created_at
            FROM vulnerabilities
            ORDER BY created_at DESC, id
            LIMIT ? OFFSET ?
        """, [limit, offset]).fetchall()

        items = [{"id": row[0], "created_at": row[1]} for row in rows]
        return AdvisoryPage(items=items, total=total, page=page, limit=limit)

    def delete_advisory(self, advisory_id: str) -> bool:
        """Delete one advisory; returns False if it did not exist."""
        exists = self._execute(
            "SELECT count(*) FROM vulnerabilities WHERE id = ?", [advisory_id]
        ).fetchone()[0]
        if not exists:
            return False
        self._execute("DELETE FROM vulnerabilities WHERE id = ?", [advisory_id])
        return True

    def list_ecosystems(self) -> List[EcosystemRecord]:
        rows = self._execute(
            "SELECT id, name, created_at FROM ecosystems ORDER BY name"
        ).fetchall()
        return [EcosystemRecord(id=row[0], name=row[1], created_at=row[2]) for row in rows]

    def create_ecosystem(self, ecosystem_id: str, name: str) -> EcosystemRecord:
        """
        Insert a new ecosystem.

        Raises:
            ValueError: If id or name is missing
            DuplicateEcosystemError: If the id already exists
        """
        if not ecosystem_id or not name:
            raise ValueError("Missing required fields: id and name")

        record = EcosystemRecord(id=ecosystem_id, name=name, created_at=utcnow())
        conn = self.db.connect()
        try:
            conn.execute(
                "INSERT INTO ecosystems (id, name, created_at) VALUES (?, ?, ?)",
                [record.id, record.name, record.created_at],
            )
        except duckdb.ConstraintException as exc:
            raise DuplicateEcosystemError(f"Ecosystem already exists: {ecosystem_id}") from exc
        except duckdb.Error as exc:
            raise StorageError(f"Insert of ecosystem {ecosystem_id} failed: {exc}") from exc
        return record

    def record_run(
        self,
        run_id: str,
        started_at: datetime,
        completed_at: Optional[datetime],
        status: str,
        final_state: str,
        downloaded: bool,
        imported: bool,
        processed: int,
        failed: int,
        metadata: Dict[str, Any],
    ) -> None:
        """Persist metadata for one sync run."""
        self._execute("""
            INSERT INTO sync_runs
            (run_id, started_at, completed_at, status, final_state,
             downloaded, imported, processed, failed, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            run_id,
            started_at,
            completed_at,
            status,
            final_state,
            downloaded,
            imported,
            processed,
            failed,
            json.dumps(metadata, default=str),
        ])

    def get_runs(self) -> List[Dict[str, Any]]:
        cursor = self._execute("SELECT * FROM sync_runs ORDER BY started_at")
        rows = cursor.fetchall()
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in rows]

"""
Database connection and schema management for the feed mirror.

This module provides:
- DuckDB connection lifecycle management
- The vulnerabilities and ecosystems tables served to readers
- The sync_runs table holding per-run metadata
- Run ID generation

Design decisions:
- JSON column for the advisory document, stored as the original text
- created_at is written once on insert; updated_at on every upsert
- sync_runs is informational and never drives the import decision
"""
import duckdb
from datetime import datetime, timezone
from typing import Optional


class StorageError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class RecordWriteError(ValueError):
    """Raised when the store rejects a single record because of its content."""

    def __init__(self, record_id: str, reason: str):
        super().__init__(f"{record_id}: {reason}")
        self.record_id = record_id
        self.reason = reason


def utcnow() -> datetime:
    """Naive UTC timestamp, matching DuckDB's TIMESTAMP type."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Database:
    """
    Manages the DuckDB connection and schema initialization.

    A single connection is created lazily and reused; the mirror has one
    writer, so the connection is never shared across threads.
    """

    def __init__(self, db_path: str = "osv_mirror.duckdb"):
        """
        Initialize database manager.

        Args:
            db_path: Path to DuckDB database file (created if doesn't exist)
        """
        self.db_path = db_path
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create database connection.

        Raises:
            StorageError: If the database file cannot be opened
        """
        if self.conn is None:
            try:
                self.conn = duckdb.connect(self.db_path)
            except duckdb.Error as exc:
                raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
        return self.conn

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_schema(self):
        """
        Create all required tables if they don't exist.

        Tables created:
        - vulnerabilities: one row per advisory id
        - ecosystems: package ecosystems known to the mirror
        - sync_runs: sync run metadata
        """
        conn = self.connect()

        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS vulnerabilities (
                    id VARCHAR PRIMARY KEY,
                    data JSON NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS ecosystems (
                    id VARCHAR PRIMARY KEY,
                    name VARCHAR NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS sync_runs (
                    run_id VARCHAR PRIMARY KEY,
                    started_at TIMESTAMP,
                    completed_at TIMESTAMP,
                    status VARCHAR,
                    final_state VARCHAR,
                    downloaded BOOLEAN,
                    imported BOOLEAN,
                    processed INTEGER,
                    failed INTEGER,
                    metadata JSON
                )
            """)
        except duckdb.Error as exc:
            raise StorageError(f"Schema initialization failed: {exc}") from exc

    def get_current_run_id(self) -> str:
        """
        Generate a unique run ID for this sync execution.

        Returns:
            Run ID in format: run_YYYYMMDD_HHMMSS_ffffff
        """
        return f"run_{utcnow().strftime('%Y%m%d_%H%M%S_%f')}"

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

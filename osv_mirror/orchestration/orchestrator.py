"""
Sync orchestrator for the OSV feed mirror.

This module sequences one sync run:
1. Change detection: HEAD the feed and compare its ETag with the local archive
2. Download: fetch the archive when it is missing or stale
3. Store check: import only when the store is empty (or forced)
4. Import: stream archive members through the parser into the store
5. Quality: run data quality checks against the store
6. Reporting: record the run and optionally write a Markdown report

Structural failures (feed unreachable, archive unreadable, store failing)
end the run in FAILED and are raised as SyncFailedError so the hosting
process can refuse to serve a missing or partial dataset. Per-record
failures are counted and never end the run.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import duckdb
import yaml

from ingestion.archive_reader import ArchiveReader
from ingestion.change_detector import ChangeDetector
from ingestion.fetcher import ArchiveFetcher
from ingestion.http_client import HttpClient, RetryConfig
from observability.metrics import SyncMetrics
from observability.quality_checks import QualityChecker, QualityCheckResult
from observability.reporter import SyncReporter
from storage.database import Database, StorageError, utcnow
from storage.repository import DEFAULT_ECOSYSTEMS, EcosystemRecord, VulnerabilityStore
from storage.synchronizer import ImportResult, ProgressCallback, StoreSynchronizer
from .state_machine import SyncState, SyncStateMachine

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://osv-vulnerabilities.storage.googleapis.com/all.zip"
REQUIRED_KEYS = ["database", "feed", "archive"]


class SyncFailedError(RuntimeError):
    """Raised when a sync run ends in FAILED."""

    def __init__(self, state: SyncState, cause: BaseException):
        super().__init__(f"Sync failed during {state.value}: {cause}")
        self.state = state
        self.cause = cause


@dataclass
class SyncResult:
    """Outcome of a successful sync run."""
    run_id: str
    final_state: SyncState
    downloaded: bool
    import_result: ImportResult
    metrics: SyncMetrics
    path: List[str] = field(default_factory=list)
    quality_results: List[QualityCheckResult] = field(default_factory=list)
    report_path: Optional[Path] = None


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Read a YAML configuration file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    with open(path) as f:
        return yaml.safe_load(f) or {}


def validate_config(config: Dict[str, Any]) -> None:
    for key in REQUIRED_KEYS:
        if key not in config:
            raise ValueError(f"Missing required config key: {key}")
        if not isinstance(config[key], dict):
            raise ValueError(f"Config section {key} must be a mapping, got {type(config[key]).__name__}")
    if not config["database"].get("path"):
        raise ValueError("Missing required config key: database.path")
    if not config["archive"].get("path"):
        raise ValueError("Missing required config key: archive.path")


class SyncOrchestrator:
    """
    Runs the sync pipeline as one sequential workflow.

    Design decisions:
    - One run at a time, no parallel download and import
    - The store emptiness check is the only import guard; sync_runs rows
      are informational
    - force re-imports into a populated store without clearing it
    """

    def __init__(
        self,
        config: Dict[str, Any],
        database: Optional[Database] = None,
        client: Optional[HttpClient] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize orchestrator with configuration.

        Args:
            config: Parsed configuration (see config.yaml)
            database: Database to use instead of the configured path
            client: HTTP client to use instead of a default one
            progress_callback: Called with (processed, failed) during import
        """
        validate_config(config)
        self.config = config

        feed_config = config["feed"]
        http_config = config.get("http") or {}
        import_config = config.get("import") or {}

        self.feed_url = feed_config.get("url", DEFAULT_FEED_URL)
        self.archive_path = Path(config["archive"]["path"])
        self.force = bool(import_config.get("force", False))

        self.db = database or Database(config["database"]["path"])
        self.client = client or HttpClient(
            retry_config=RetryConfig(
                max_retries=http_config.get("max_retries", 0),
                base_delay_seconds=http_config.get("retry_base_seconds", 1.0),
                max_delay_seconds=http_config.get("retry_max_seconds", 60.0),
                jitter_ratio=http_config.get("retry_jitter_ratio", 0.3),
                timeout_seconds=feed_config.get("timeout_seconds", 60.0),
            )
        )

        self.ecosystems = self._configured_ecosystems(config.get("ecosystems"))
        self.detector = ChangeDetector(self.client, self.feed_url, self.archive_path)
        self.fetcher = ArchiveFetcher(self.client)
        self.store = VulnerabilityStore(self.db)
        self.synchronizer = StoreSynchronizer(
            self.store,
            ecosystems=self.ecosystems,
            progress_interval=import_config.get("progress_interval", 1000),
            failure_sample_limit=import_config.get("failure_sample_limit", 20),
            progress_callback=progress_callback,
        )
        self.quality_checker = QualityChecker(
            self.db, expected_ecosystems=[eco.id for eco in self.ecosystems]
        )
        self.reporter = SyncReporter()

        output_dir = (config.get("reporting") or {}).get("output_dir")
        self.report_dir = Path(output_dir) if output_dir else None

    @classmethod
    def from_config_file(cls, config_path: str, **kwargs) -> "SyncOrchestrator":
        return cls(load_config(config_path), **kwargs)

    @staticmethod
    def _configured_ecosystems(entries: Optional[List[Dict[str, str]]]) -> List[EcosystemRecord]:
        if entries is None:
            return list(DEFAULT_ECOSYSTEMS)
        ecosystems = []
        for entry in entries:
            if not entry.get("id") or not entry.get("name"):
                raise ValueError(f"Ecosystem entries need id and name: {entry}")
            ecosystems.append(EcosystemRecord(id=entry["id"], name=entry["name"]))
        return ecosystems

    def run(self) -> SyncResult:
        """
        Execute one sync run.

        Returns:
            SyncResult describing what the run did

        Raises:
            SyncFailedError: If a structural failure ended the run
        """
        run_id = self.db.get_current_run_id()
        metrics = SyncMetrics(run_id=run_id, started_at=utcnow())
        machine = SyncStateMachine()
        import_result = ImportResult.skipped_import()
        self.synchronizer.last_result = None

        logger.info(f"=== Starting Sync Run: {run_id} ===")

        try:
            self.db.initialize_schema()

            self._advance(machine, metrics, SyncState.CHECKING_REMOTE)
            if self.detector.needs_download():
                self._advance(machine, metrics, SyncState.DOWNLOADING)
                metrics.bytes_downloaded = self.fetcher.fetch(self.feed_url, self.archive_path)
                metrics.downloaded = True
            else:
                self._advance(machine, metrics, SyncState.SKIP)

            self._advance(machine, metrics, SyncState.CHECKING_LOCAL_STORE)
            if self.synchronizer.needs_import(self.force):
                self._advance(machine, metrics, SyncState.IMPORTING)
                import_result = self.synchronizer.import_archive(
                    ArchiveReader(self.archive_path), force=self.force
                )
                metrics.record_import(import_result)
            else:
                logger.info("Database already contains data, skipping import")
                self._advance(machine, metrics, SyncState.SKIP_IMPORT)

            metrics.records_total = self.store.count()
            self._advance(machine, metrics, SyncState.DONE)

        except Exception as e:
            failed_in = machine.state
            machine.fail(str(e))
            partial = self.synchronizer.last_result
            if failed_in is SyncState.IMPORTING and partial is not None:
                metrics.record_import(partial)
            metrics.record_transition(failed_in.value, SyncState.FAILED.value)
            metrics.record_error(str(e), context={"state": failed_in.value})
            metrics.completed_at = utcnow()
            logger.error(f"Sync failed during {failed_in.value}: {e}", exc_info=True)
            self._save_run(metrics, machine, status="failed")
            self._write_report(metrics, [], machine)
            raise SyncFailedError(failed_in, e) from e

        metrics.completed_at = utcnow()
        quality_results = self._run_quality_checks()
        self._save_run(metrics, machine, status="success")
        report_path = self._write_report(metrics, quality_results, machine)

        logger.info("=== Sync Complete ===")
        logger.info(f"Duration: {metrics.duration_seconds:.1f}s")
        logger.info(f"Downloaded: {metrics.downloaded}")
        logger.info(
            f"Processed: {metrics.records_processed}, failed: {metrics.records_failed}, "
            f"skipped: {metrics.entries_skipped}"
        )
        logger.info(f"Records in store: {metrics.records_total}")

        return SyncResult(
            run_id=run_id,
            final_state=machine.state,
            downloaded=metrics.downloaded,
            import_result=import_result,
            metrics=metrics,
            path=machine.path(),
            quality_results=quality_results,
            report_path=report_path,
        )

    def close(self):
        self.db.close()

    def _advance(self, machine: SyncStateMachine, metrics: SyncMetrics, new_state: SyncState):
        previous = machine.state
        machine.transition(new_state)
        metrics.record_transition(previous.value, new_state.value)

    def _save_run(self, metrics: SyncMetrics, machine: SyncStateMachine, status: str):
        try:
            self.store.record_run(
                run_id=metrics.run_id,
                started_at=metrics.started_at,
                completed_at=metrics.completed_at,
                status=status,
                final_state=machine.state.value,
                downloaded=metrics.downloaded,
                imported=metrics.imported,
                processed=metrics.records_processed,
                failed=metrics.records_failed,
                metadata=metrics.to_dict(),
            )
        except StorageError as e:
            logger.warning(f"Could not record sync run {metrics.run_id}: {e}")

    def _write_report(
        self,
        metrics: SyncMetrics,
        quality_results: List[QualityCheckResult],
        machine: SyncStateMachine,
    ) -> Optional[Path]:
        if self.report_dir is None:
            return None
        report = self.reporter.generate_report(metrics, quality_results, final_state=machine.state.value)
        try:
            report_path = self.reporter.save_report(report, self.report_dir)
        except OSError as e:
            logger.warning(f"Could not write sync report to {self.report_dir}: {e}")
            return None
        logger.info(f"Report: {report_path}")
        return report_path

    def _run_quality_checks(self) -> List[QualityCheckResult]:
        try:
            return self.quality_checker.run_all_checks()
        except (duckdb.Error, StorageError) as e:
            logger.warning(f"Quality checks could not run: {e}")
            return []

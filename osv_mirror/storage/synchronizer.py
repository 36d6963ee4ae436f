"""
Full import of the feed archive into the store.

The import runs only when the store is empty (or when forced). It seeds the
default ecosystems, then streams every ``.json`` member through the record
parser and upserts it, one member at a time in archive order.

Failure policy:
- Damaged member data / MalformedRecordError / RecordWriteError: logged
  with the member name, counted, and the import moves on to the next member
- CorruptArchiveError / StorageError: propagate and end the import; the
  tallies gathered so far stay available as ``last_result``
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ingestion.archive_reader import ArchiveReader
from ingestion.record_parser import MalformedRecordError, is_record_entry, parse_record
from .database import RecordWriteError
from .repository import DEFAULT_ECOSYSTEMS, EcosystemRecord, VulnerabilityStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class ImportResult:
    """
    Outcome of one import attempt.

    Attributes:
        imported: False when the import was skipped by the emptiness guard
        processed: Records successfully upserted
        failed: Members that could not be parsed or written
        skipped: Members without the record suffix
        ecosystems_seeded: Ecosystems inserted by this import
        failures: First few failures as {"entry": ..., "reason": ...}
    """
    imported: bool
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    ecosystems_seeded: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def skipped_import(cls) -> "ImportResult":
        return cls(imported=False)


class StoreSynchronizer:
    """Decides whether a full import is needed and performs it."""

    def __init__(
        self,
        store: VulnerabilityStore,
        ecosystems: Optional[Iterable[EcosystemRecord]] = None,
        progress_interval: int = 1000,
        failure_sample_limit: int = 20,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.store = store
        self.ecosystems = list(ecosystems) if ecosystems is not None else list(DEFAULT_ECOSYSTEMS)
        self.progress_interval = max(1, progress_interval)
        self.failure_sample_limit = failure_sample_limit
        self.progress_callback = progress_callback
        self.last_result: Optional[ImportResult] = None

    def needs_import(self, force: bool = False) -> bool:
        return force or self.store.is_empty()

    def import_archive(self, reader: ArchiveReader, force: bool = False) -> ImportResult:
        """
        Import every record in the archive.

        Args:
            reader: Archive to read members from
            force: Import even though the store already holds rows

        Returns:
            ImportResult with the run's tallies

        Raises:
            CorruptArchiveError: If the archive cannot be read
            StorageError: If the store fails
        """
        if not self.needs_import(force):
            logger.info("Store already contains data, skipping import")
            self.last_result = ImportResult.skipped_import()
            return self.last_result

        result = ImportResult(imported=True)
        self.last_result = result
        result.ecosystems_seeded = self.store.seed_ecosystems(self.ecosystems)
        logger.info("Seeded %d ecosystems", result.ecosystems_seeded)

        logger.info("Importing records from %s", reader.archive_path)
        for entry in reader.entries():
            if not is_record_entry(entry.name):
                result.skipped += 1
                continue
            if entry.error is not None:
                self._record_failure(result, entry.name, entry.error)
                continue

            try:
                record = parse_record(entry.name, entry.content)
                self.store.upsert_advisory(record)
            except (MalformedRecordError, RecordWriteError) as exc:
                self._record_failure(result, entry.name, exc)
                continue

            result.processed += 1
            if result.processed % self.progress_interval == 0:
                logger.info("Processed %d records (%d failed)", result.processed, result.failed)
                if self.progress_callback:
                    self.progress_callback(result.processed, result.failed)

        logger.info(
            "Completed import: %d processed, %d failed, %d skipped",
            result.processed, result.failed, result.skipped,
        )
        return result

    def _record_failure(self, result: ImportResult, entry_name: str, exc: Exception) -> None:
        result.failed += 1
        if len(result.failures) < self.failure_sample_limit:
            logger.warning("Error processing %s: %s", entry_name, exc)
            result.failures.append({"entry": entry_name, "reason": str(exc)})
        else:
            logger.debug("Error processing %s: %s", entry_name, exc)

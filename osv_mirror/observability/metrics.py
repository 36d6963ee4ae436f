"""
Metrics collection for sync runs.

This module provides SyncMetrics, a dataclass that tracks the observable
outcome of a single sync run:
- Whether the archive was downloaded, and how many bytes
- Import tallies (processed, failed, skipped) and ecosystems seeded
- The orchestrator's state transitions
- Errors encountered

Design decisions:
- Single metrics object per run
- Transition tracking uses tuple keys (from_state, to_state)
- Serializable to_dict() for storage in the sync_runs table
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any, Optional
from collections import defaultdict


@dataclass
class SyncMetrics:
    """
    Metrics for a single sync run.

    Designed to be serialized to JSON for storage in the sync_runs table.
    """
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Download
    downloaded: bool = False
    bytes_downloaded: int = 0

    # Import
    imported: bool = False
    records_processed: int = 0
    records_failed: int = 0
    entries_skipped: int = 0
    ecosystems_seeded: int = 0
    records_total: int = 0
    errors: int = 0

    # Key: (from_state, to_state), Value: count
    transitions: Dict[tuple, int] = field(default_factory=lambda: defaultdict(int))

    failure_samples: List[Dict[str, str]] = field(default_factory=list)
    error_messages: List[Dict[str, Any]] = field(default_factory=list)

    def record_transition(self, from_state: str, to_state: str):
        self.transitions[(from_state, to_state)] += 1

    def record_import(self, result) -> None:
        """
        Copy the tallies of an ImportResult into the metrics.

        Args:
            result: ImportResult returned by StoreSynchronizer
        """
        self.imported = result.imported
        self.records_processed = result.processed
        self.records_failed = result.failed
        self.entries_skipped = result.skipped
        self.ecosystems_seeded = result.ecosystems_seeded
        self.failure_samples = list(result.failures)

    def record_error(self, error: str, context: Dict = None):
        """
        Record a fatal error encountered during the run.

        Args:
            error: Error message
            context: Optional dict with additional context (e.g., state)
        """
        self.errors += 1
        self.error_messages.append({
            "type": "error",
            "message": error,
            "context": context or {}
        })

    @property
    def duration_seconds(self) -> Optional[float]:
        if not self.completed_at:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Transitions dict keys are converted from tuples to strings.
        """
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "downloaded": self.downloaded,
            "bytes_downloaded": self.bytes_downloaded,
            "imported": self.imported,
            "records_processed": self.records_processed,
            "records_failed": self.records_failed,
            "entries_skipped": self.entries_skipped,
            "ecosystems_seeded": self.ecosystems_seeded,
            "records_total": self.records_total,
            "errors": self.errors,
            "transitions": {f"{k[0]}->{k[1]}": v for k, v in self.transitions.items()},
            "failure_samples": self.failure_samples,
            "error_messages": self.error_messages,
        }

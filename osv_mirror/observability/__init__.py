"""
Observability layer for the feed mirror.

This module provides metrics collection, quality checks, and reporting
for sync runs.

Main exports:
- SyncMetrics: Tracks metrics for a sync run
- QualityChecker: Runs data quality checks
- QualityCheckResult: Result of a quality check
- SyncReporter: Generates Markdown reports
"""
from .metrics import SyncMetrics
from .quality_checks import QualityChecker, QualityCheckResult
from .reporter import SyncReporter

__all__ = [
    "SyncMetrics",
    "QualityChecker",
    "QualityCheckResult",
    "SyncReporter",
]

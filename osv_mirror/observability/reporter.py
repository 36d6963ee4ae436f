"""
Generate human-readable sync reports in Markdown format.

This module provides SyncReporter, which transforms SyncMetrics and quality
check results into formatted Markdown reports.

Report sections:
- Header with run metadata (ID, timestamp, duration, final state)
- Summary table with download and import counts
- State transitions taken by the orchestrator
- Sample of records that failed to import
- Data quality check results

Design decisions:
- Uses tabulate library for table formatting (GitHub-flavored)
- Reports saved with timestamp for historical tracking
"""
from datetime import datetime, timezone
from typing import List, Optional
from pathlib import Path
from tabulate import tabulate

from .metrics import SyncMetrics
from .quality_checks import QualityCheckResult


class SyncReporter:
    """Generates Markdown reports from sync run metrics."""

    def generate_report(
        self,
        metrics: SyncMetrics,
        quality_results: List[QualityCheckResult],
        final_state: Optional[str] = None,
    ) -> str:
        """
        Generate full sync report in Markdown format.

        Args:
            metrics: SyncMetrics from a completed run
            quality_results: List of quality check results
            final_state: Orchestrator state the run ended in

        Returns:
            Markdown-formatted report as string
        """
        lines = []

        lines.append("# Sync Run Report")
        lines.append(f"**Run ID:** {metrics.run_id}")
        lines.append(f"**Started:** {metrics.started_at.isoformat()}")
        if metrics.duration_seconds is not None:
            lines.append(f"**Duration:** {metrics.duration_seconds:.1f} seconds")
        if final_state:
            lines.append(f"**Final State:** {final_state}")
        lines.append("")

        lines.append("## Summary")
        summary_data = [
            ["Downloaded", "yes" if metrics.downloaded else "no"],
            ["Bytes Downloaded", metrics.bytes_downloaded],
            ["Imported", "yes" if metrics.imported else "no"],
            ["Records Processed", metrics.records_processed],
            ["Records Failed", metrics.records_failed],
            ["Entries Skipped", metrics.entries_skipped],
            ["Ecosystems Seeded", metrics.ecosystems_seeded],
            ["Records In Store", metrics.records_total],
            ["Errors", metrics.errors],
        ]
        lines.append(tabulate(summary_data, headers=["Metric", "Value"], tablefmt="github"))
        lines.append("")

        if metrics.transitions:
            lines.append("## State Transitions")
            trans_data = [[f"{k[0]} → {k[1]}", v] for k, v in metrics.transitions.items()]
            lines.append(tabulate(trans_data, headers=["Transition", "Count"], tablefmt="github"))
            lines.append("")

        if metrics.failure_samples:
            lines.append("## Failed Records")
            failure_data = [[f["entry"], f["reason"]] for f in metrics.failure_samples]
            lines.append(tabulate(failure_data, headers=["Entry", "Reason"], tablefmt="github"))
            lines.append("")

        lines.append("## Data Quality Checks")
        quality_data = []
        for qr in quality_results:
            status = "✓" if qr.passed else "✗"
            quality_data.append([status, qr.check_name, qr.message])
        lines.append(tabulate(quality_data, headers=["Status", "Check", "Details"], tablefmt="github"))
        lines.append("")

        if metrics.error_messages:
            lines.append("## Errors")
            for error in metrics.error_messages:
                lines.append(f"- {error['message']}")
            lines.append("")

        return "\n".join(lines)

    def save_report(self, report: str, output_dir: Path) -> Path:
        """
        Save report to file with timestamp.

        Returns:
            Path to saved report file
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        filepath = output_dir / f"sync-report-{timestamp}.md"
        filepath.write_text(report, encoding="utf-8")
        return filepath

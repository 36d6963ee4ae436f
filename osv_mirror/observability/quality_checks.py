"""
Data quality checks for the mirrored store.

This module implements QualityChecker, which runs SQL-based validation checks
against the vulnerabilities and ecosystems tables after each sync run.

Checks implemented:
- Id matches payload: The row key equals the document's own id
- No empty payloads: Every stored document is a non-empty JSON object
- Default ecosystems present: The seed set exists in the ecosystems table
- Timestamps ordered: updated_at is never earlier than created_at

Design decisions:
- Each check returns a QualityCheckResult with pass/fail and details
- Checks are SQL-based and run against the database, not Python objects
"""
from typing import Iterable, List, Dict, Any, Optional
from dataclasses import dataclass


@dataclass
class QualityCheckResult:
    """
    Result of a single quality check.

    Attributes:
        check_name: Unique identifier for the check
        passed: True if check passed, False otherwise
        message: Human-readable summary of the result
        details: Optional dict with additional context (e.g., counts)
    """
    check_name: str
    passed: bool
    message: str
    details: Dict[str, Any] = None


class QualityChecker:
    """
    Runs data quality checks against the mirrored store.

    Each check method executes a SQL query against the database and returns
    a QualityCheckResult indicating pass/fail status.
    """

    def __init__(self, database, expected_ecosystems: Optional[Iterable[str]] = None):
        """
        Initialize quality checker.

        Args:
            database: Database instance with active connection
            expected_ecosystems: Ecosystem ids the seed step should have created
        """
        self.db = database
        self.expected_ecosystems = sorted(expected_ecosystems or [])

    def run_all_checks(self) -> List[QualityCheckResult]:
        """
        Run all quality checks.

        Returns:
            List of QualityCheckResult objects, one per check
        """
        results = []
        results.append(self.check_id_matches_payload())
        results.append(self.check_no_empty_payloads())
        results.append(self.check_default_ecosystems_present())
        results.append(self.check_timestamps_ordered())
        return results

    def check_id_matches_payload(self) -> QualityCheckResult:
        """Every row's key must equal the id inside its document."""
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM vulnerabilities
            WHERE json_extract_string(data, '$.id') IS DISTINCT FROM id
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="id_matches_payload",
            passed=result == 0,
            message=f"{result} rows whose key differs from the document id" if result > 0 else "All row keys match document ids",
            details={"mismatch_count": result}
        )

    def check_no_empty_payloads(self) -> QualityCheckResult:
        """Stored documents must be non-empty JSON objects."""
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM vulnerabilities
            WHERE json_type(data) <> 'OBJECT'
               OR trim(CAST(data AS VARCHAR)) = '{}'
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="no_empty_payloads",
            passed=result == 0,
            message=f"{result} empty or non-object documents" if result > 0 else "All documents are non-empty objects",
            details={"empty_count": result}
        )

    def check_default_ecosystems_present(self) -> QualityCheckResult:
        """The seeded ecosystems must all exist."""
        if not self.expected_ecosystems:
            return QualityCheckResult(
                check_name="default_ecosystems_present",
                passed=True,
                message="Check skipped (no expected ecosystems configured)"
            )

        conn = self.db.connect()
        present = {
            row[0] for row in conn.execute("SELECT id FROM ecosystems").fetchall()
        }
        missing = [eco for eco in self.expected_ecosystems if eco not in present]

        return QualityCheckResult(
            check_name="default_ecosystems_present",
            passed=not missing,
            message=f"Missing ecosystems: {', '.join(missing)}" if missing else "All default ecosystems present",
            details={"missing": missing}
        )

    def check_timestamps_ordered(self) -> QualityCheckResult:
        """updated_at must never precede created_at."""
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM vulnerabilities
            WHERE updated_at < created_at
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="timestamps_ordered",
            passed=result == 0,
            message=f"{result} rows updated before creation" if result > 0 else "All timestamps ordered",
            details={"unordered_count": result}
        )

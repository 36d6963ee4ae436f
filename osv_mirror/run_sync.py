#!/usr/bin/env python3
"""
Command-line entry point for the OSV feed mirror.

Runs one sync: detect remote changes, download the archive if needed,
import it into the DuckDB store if the store is empty, and print a summary.
Exits non-zero when the sync fails so a hosting process never starts
serving a missing or partial dataset.

Usage:
    python run_sync.py [--config path/to/config.yaml] [--force]
"""
import sys
import logging
import argparse
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from orchestration.orchestrator import SyncOrchestrator, load_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Synchronize the OSV vulnerability feed into the local store"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Import even if the store already contains advisories"
    )
    args = parser.parse_args()

    orchestrator = None
    try:
        config = load_config(args.config)
        if args.force:
            config.setdefault("import", {})["force"] = True

        orchestrator = SyncOrchestrator(config)
        result = orchestrator.run()
        metrics = result.metrics

        # Print summary
        print("\n" + "=" * 60)
        print("Sync Summary")
        print("=" * 60)
        print(f"Run ID: {result.run_id}")
        print(f"Final State: {result.final_state.value}")
        print(f"Path: {' -> '.join(result.path)}")
        print(f"Downloaded: {'yes' if result.downloaded else 'no'}")
        print(f"Imported: {'yes' if result.import_result.imported else 'no'}")
        print(f"Processed: {metrics.records_processed}")
        print(f"Skipped: {metrics.entries_skipped}")
        print(f"Failed: {metrics.records_failed}")
        print(f"Records in store: {metrics.records_total}")
        failed_checks = [qr for qr in result.quality_results if not qr.passed]
        if failed_checks:
            print("\nQuality warnings:")
            for qr in failed_checks:
                print(f"  {qr.check_name:28} {qr.message}")
        print("=" * 60)

        sys.exit(0)

    except Exception as e:
        logger.error(f"Sync failed: {e}")
        sys.exit(1)

    finally:
        if orchestrator is not None:
            orchestrator.close()


if __name__ == "__main__":
    main()

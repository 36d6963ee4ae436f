"""
Orchestration layer for the feed mirror.

Main exports:
- SyncOrchestrator: Runs change detection, download and import as one run
- SyncStateMachine / SyncState: Allowed order of a run's states
- SyncResult / SyncFailedError: Run outcomes
"""
from .orchestrator import (
    SyncFailedError,
    SyncOrchestrator,
    SyncResult,
    load_config,
    validate_config,
)
from .state_machine import InvalidTransitionError, SyncState, SyncStateMachine

__all__ = [
    "InvalidTransitionError",
    "SyncFailedError",
    "SyncOrchestrator",
    "SyncResult",
    "SyncState",
    "SyncStateMachine",
    "load_config",
    "validate_config",
]

"""
State machine for a single sync run.

Ensures the orchestrator moves through the run in the allowed order and
keeps the path it took for metrics and reporting.
"""
from typing import Dict, List, Optional, Set, Tuple
from enum import Enum
import logging


logger = logging.getLogger(__name__)


class SyncState(Enum):
    IDLE = "idle"
    CHECKING_REMOTE = "checking_remote"
    SKIP = "skip"
    DOWNLOADING = "downloading"
    CHECKING_LOCAL_STORE = "checking_local_store"
    SKIP_IMPORT = "skip_import"
    IMPORTING = "importing"
    DONE = "done"
    FAILED = "failed"


class InvalidTransitionError(RuntimeError):
    """Raised when the orchestrator attempts a transition the run does not allow."""


class SyncStateMachine:
    """
    Validates and records state transitions for one sync run.

    State model:
    - IDLE -> CHECKING_REMOTE
    - CHECKING_REMOTE -> SKIP | DOWNLOADING
    - SKIP | DOWNLOADING -> CHECKING_LOCAL_STORE
    - CHECKING_LOCAL_STORE -> SKIP_IMPORT | IMPORTING
    - SKIP_IMPORT | IMPORTING -> DONE
    - Any non-terminal state -> FAILED
    - DONE and FAILED are terminal
    """

    TRANSITIONS: Dict[SyncState, Set[SyncState]] = {
        SyncState.IDLE: {SyncState.CHECKING_REMOTE},
        SyncState.CHECKING_REMOTE: {SyncState.SKIP, SyncState.DOWNLOADING},
        SyncState.SKIP: {SyncState.CHECKING_LOCAL_STORE},
        SyncState.DOWNLOADING: {SyncState.CHECKING_LOCAL_STORE},
        SyncState.CHECKING_LOCAL_STORE: {SyncState.SKIP_IMPORT, SyncState.IMPORTING},
        SyncState.SKIP_IMPORT: {SyncState.DONE},
        SyncState.IMPORTING: {SyncState.DONE},
        SyncState.DONE: set(),
        SyncState.FAILED: set(),
    }

    TERMINAL_STATES: Set[SyncState] = {SyncState.DONE, SyncState.FAILED}

    def __init__(self):
        self.state = SyncState.IDLE
        self.history: List[Tuple[SyncState, SyncState]] = []
        self.failure_reason: Optional[str] = None

    def validate_transition(
        self,
        current_state: SyncState,
        new_state: SyncState
    ) -> tuple[bool, Optional[str]]:
        """
        Check whether a transition is allowed.

        Returns:
            Tuple of (is_valid, reason)
            - is_valid: True if transition is allowed
            - reason: Explanation if transition is rejected, None otherwise
        """
        if current_state in self.TERMINAL_STATES:
            return False, f"{current_state.value} is terminal"

        # Failure is reachable from every non-terminal state
        if new_state is SyncState.FAILED:
            return True, None

        if new_state not in self.TRANSITIONS[current_state]:
            return False, f"Transition not allowed: {current_state.value} -> {new_state.value}"

        return True, None

    def transition(self, new_state: SyncState) -> SyncState:
        """
        Move to new_state.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        is_valid, reason = self.validate_transition(self.state, new_state)
        if not is_valid:
            raise InvalidTransitionError(reason)

        logger.debug("Sync state: %s -> %s", self.state.value, new_state.value)
        self.history.append((self.state, new_state))
        self.state = new_state
        return new_state

    def fail(self, reason: str) -> SyncState:
        """Move to FAILED unless the run already ended."""
        self.failure_reason = reason
        if self.state not in self.TERMINAL_STATES:
            self.transition(SyncState.FAILED)
        return self.state

    def is_terminal(self) -> bool:
        return self.state in self.TERMINAL_STATES

    def path(self) -> List[str]:
        """States visited, starting from IDLE."""
        states = [SyncState.IDLE.value]
        states.extend(to_state.value for _, to_state in self.history)
        return states

"""
============================================================================
Funding Action Lifecycle State Machine
============================================================================

Reliability Level: FUNDS-CRITICAL
Traceability: All transitions include correlation_id for audit

FUNDING ACTION LIFECYCLE:
    Every value-moving action follows authorize-then-act:

    IDLE -> CHECKING_ALLOWANCE (allowance re-read, never cached)
    CHECKING_ALLOWANCE -> EXECUTING (allowance sufficient)
    CHECKING_ALLOWANCE -> AUTHORIZING (allowance insufficient)
    AUTHORIZING -> EXECUTING (approve confirmed)
    EXECUTING -> CONFIRMED (value-moving write mined successfully)
    any non-terminal -> FAILED

    Actions that move no value (createFund) go IDLE -> EXECUTING directly.

    Terminal States: CONFIRMED, FAILED

ERROR CODES:
    - GIFT-ORCH-001: Invalid state transition attempted

============================================================================
"""

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class FundingStateErrorCode:
    """State machine error codes for audit logging."""
    INVALID_TRANSITION = "GIFT-ORCH-001"


class FundingState(Enum):
    """Funding action lifecycle states."""
    IDLE = "IDLE"
    CHECKING_ALLOWANCE = "CHECKING_ALLOWANCE"
    AUTHORIZING = "AUTHORIZING"
    EXECUTING = "EXECUTING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


VALID_TRANSITIONS: Dict[str, List[str]] = {
    "IDLE": ["CHECKING_ALLOWANCE", "EXECUTING", "FAILED"],
    "CHECKING_ALLOWANCE": ["AUTHORIZING", "EXECUTING", "FAILED"],
    "AUTHORIZING": ["EXECUTING", "FAILED"],
    "EXECUTING": ["CONFIRMED", "FAILED"],
    "CONFIRMED": [],  # Terminal state
    "FAILED": [],  # Terminal state
}

TERMINAL_STATES: List[str] = ["CONFIRMED", "FAILED"]

VALID_STATES: List[str] = list(VALID_TRANSITIONS.keys())

# States in which a caller may still abandon the action
CANCELLABLE_STATES: List[str] = ["IDLE", "CHECKING_ALLOWANCE"]


class InvalidTransitionError(Exception):
    """Raised when a lifecycle transition is not allowed (GIFT-ORCH-001)."""
    pass


def validate_transition(
    current_state: str,
    target_state: str,
    correlation_id: Optional[str] = None
) -> Tuple[bool, Optional[str]]:
    """
    Validate a lifecycle transition.

    Returns:
        (True, None) if allowed, (False, "GIFT-ORCH-001") otherwise
    """
    if current_state not in VALID_STATES or target_state not in VALID_STATES:
        logger.error(
            f"[{FundingStateErrorCode.INVALID_TRANSITION}] Unknown state | "
            f"current={current_state} | target={target_state} | "
            f"correlation_id={correlation_id}"
        )
        return (False, FundingStateErrorCode.INVALID_TRANSITION)

    valid_targets = VALID_TRANSITIONS[current_state]

    if target_state not in valid_targets:
        valid_str = "/".join(valid_targets) if valid_targets else "NONE (terminal state)"
        logger.error(
            f"[{FundingStateErrorCode.INVALID_TRANSITION}] "
            f"Invalid state transition: {current_state} -> {target_state}. "
            f"Valid transitions from {current_state}: {valid_str} | "
            f"correlation_id={correlation_id}"
        )
        return (False, FundingStateErrorCode.INVALID_TRANSITION)

    return (True, None)


@dataclass(frozen=True)
class TransitionRecord:
    """One recorded lifecycle transition."""
    previous_state: FundingState
    new_state: FundingState
    reason: Optional[str]
    at: datetime


class FundingLifecycle:
    """
    Tracks one action's state and enforces VALID_TRANSITIONS.

    Example Usage:
        lifecycle = FundingLifecycle(correlation_id="abc-123")
        lifecycle.advance(FundingState.CHECKING_ALLOWANCE)
        lifecycle.advance(FundingState.EXECUTING, reason="allowance sufficient")
    """

    def __init__(self, correlation_id: str):
        self.correlation_id = correlation_id
        self.state = FundingState.IDLE
        self.history: List[TransitionRecord] = []

    @property
    def is_terminal(self) -> bool:
        return self.state.value in TERMINAL_STATES

    @property
    def is_cancellable(self) -> bool:
        return self.state.value in CANCELLABLE_STATES

    def advance(self, target: FundingState, reason: Optional[str] = None) -> None:
        """
        Move to target state.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        is_valid, error_code = validate_transition(
            self.state.value, target.value, self.correlation_id
        )
        if not is_valid:
            raise InvalidTransitionError(
                f"{error_code}: {self.state.value} -> {target.value}"
            )

        self.history.append(TransitionRecord(
            previous_state=self.state,
            new_state=target,
            reason=reason,
            at=datetime.now(timezone.utc),
        ))

        logger.info(
            f"[GIFT-ORCH] Transition | {self.state.value} -> {target.value} | "
            f"reason={reason} | correlation_id={self.correlation_id}"
        )
        self.state = target

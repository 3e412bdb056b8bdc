# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Exponential Backoff - Bounded Read Retries
# ============================================================================
#
# Reliability Level: FUNDS-CRITICAL
# Purpose: Delay calculator for retrying read-only ledger calls
#
# MANDATE:
#   - Only reads and receipt polls are retried
#   - Value-moving writes are NEVER passed through a retry loop
#
# ============================================================================

import random
import logging

logger = logging.getLogger(__name__)


class ExponentialBackoff:
    """
    Exponential backoff calculator.

    Formula: min(base * (multiplier ^ attempt), max_delay) + jitter

    Example Usage:
        backoff = ExponentialBackoff(base_delay=0.5)
        for attempt in range(retries):
            try:
                return await read()
            except LedgerUnavailable:
                await asyncio.sleep(backoff.get_delay())
    """

    def __init__(
        self,
        base_delay: float = 0.5,
        multiplier: float = 2.0,
        max_delay: float = 10.0,
        jitter: float = 0.25
    ):
        """
        Args:
            base_delay: Initial delay in seconds
            multiplier: Delay multiplier per attempt
            max_delay: Maximum delay cap in seconds (before jitter)
            jitter: Random jitter factor (0-1)
        """
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Backoff delays must be non-negative")
        if not 0 <= jitter <= 1:
            raise ValueError(f"jitter must be within [0, 1], got {jitter}")

        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter
        self._attempt = 0

    @property
    def attempt(self) -> int:
        return self._attempt

    def peek_delay(self) -> float:
        """Delay for the current attempt without jitter or side effects."""
        delay = self.base_delay * (self.multiplier ** self._attempt)
        return min(delay, self.max_delay)

    def get_delay(self) -> float:
        """
        Get next backoff delay and increment attempt counter.

        Returns:
            Delay in seconds with optional jitter
        """
        delay = self.peek_delay()

        if self.jitter > 0:
            delay += delay * self.jitter * random.random()

        self._attempt += 1
        return delay

    def reset(self) -> None:
        """Reset attempt counter after a successful call."""
        self._attempt = 0


# ============================================================================
# Reliability Audit
# ============================================================================
#
# [Reliability Audit]
# Bounded Delay: [Verified - capped at max_delay * (1 + jitter)]
# Scope: [Reads and receipt polls only]
#
# ============================================================================

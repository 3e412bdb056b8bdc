"""
============================================================================
Gift Fund Orchestrator v1.0.0
Prometheus Metrics - Funding Observability
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: Updates Prometheus metrics registry

METRICS EXPOSED
---------------
- giftfund_funding_actions_total: Orchestrated actions by action and outcome
- giftfund_authorizations_total: Approve writes by outcome
- giftfund_gifts_total: Batch recipients by status
- giftfund_confirmation_wait_seconds: Time spent waiting for receipts

Recording failures are logged, never raised.

============================================================================
"""

import logging
from typing import Optional

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


# ============================================================================
# PROMETHEUS METRICS DEFINITIONS
# ============================================================================

FUNDING_ACTIONS = Counter(
    "giftfund_funding_actions_total",
    "Total orchestrated funding actions",
    ["action", "outcome"]
)

AUTHORIZATIONS = Counter(
    "giftfund_authorizations_total",
    "Total approve writes that reached a final receipt",
    ["outcome"]
)

GIFTS = Counter(
    "giftfund_gifts_total",
    "Total batch recipients by issuance status",
    ["status"]
)

CONFIRMATION_WAIT = Histogram(
    "giftfund_confirmation_wait_seconds",
    "Time spent waiting for transaction receipts",
    ["function"],
    buckets=[0.5, 1, 2, 5, 10, 30, 60, 120, 300]
)


# ============================================================================
# METRIC UPDATE FUNCTIONS
# ============================================================================

def record_funding_action(
    action: str,
    outcome: str,
    correlation_id: Optional[str] = None
) -> None:
    """Count an orchestrated action reaching CONFIRMED or FAILED."""
    try:
        FUNDING_ACTIONS.labels(action=action, outcome=outcome).inc()
        logger.debug(
            "Metric: funding_action | action=%s | outcome=%s | correlation_id=%s",
            action, outcome, correlation_id
        )
    except Exception as e:
        logger.error(
            "[OBS-001] Failed to record funding_action metric | error=%s",
            str(e)
        )


def record_authorization(outcome: str) -> None:
    """Count an approve write by receipt outcome."""
    try:
        AUTHORIZATIONS.labels(outcome=outcome).inc()
    except Exception as e:
        logger.error(
            "[OBS-002] Failed to record authorization metric | error=%s",
            str(e)
        )


def record_gift(status: str) -> None:
    """Count one batch recipient by ISSUED / FAILED / SKIPPED."""
    try:
        GIFTS.labels(status=status).inc()
    except Exception as e:
        logger.error(
            "[OBS-003] Failed to record gift metric | error=%s",
            str(e)
        )


def record_confirmation_wait(function_name: str, seconds: float) -> None:
    """Observe how long a receipt wait took (including timeouts)."""
    try:
        CONFIRMATION_WAIT.labels(function=function_name).observe(max(seconds, 0.0))
    except Exception as e:
        logger.error(
            "[OBS-004] Failed to record confirmation_wait metric | error=%s",
            str(e)
        )

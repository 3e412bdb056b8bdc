"""
============================================================================
Gift Fund Orchestrator v1.0.0
Observability Module - Prometheus Metrics
============================================================================
"""

from giftfund.observability.metrics import (
    FUNDING_ACTIONS,
    AUTHORIZATIONS,
    GIFTS,
    CONFIRMATION_WAIT,
    record_funding_action,
    record_authorization,
    record_gift,
    record_confirmation_wait,
)

__all__ = [
    'FUNDING_ACTIONS',
    'AUTHORIZATIONS',
    'GIFTS',
    'CONFIRMATION_WAIT',
    'record_funding_action',
    'record_authorization',
    'record_gift',
    'record_confirmation_wait',
]

"""
============================================================================
Gift Fund Orchestrator v1.0.0
Error Taxonomy - Coded Exceptions
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: None

Every error carries a code for log correlation and, where it originates in
the funding pipeline, the step that failed. Ledger-dependent errors are
surfaced to the caller; value-moving writes are never retried here.

ERROR CODES:
    - GIFT-LED-001: Ledger unreachable (read or write)
    - GIFT-AUTH-001: Authorization write did not confirm
    - GIFT-CONF-001: Confirmation wait exceeded its bound (inconclusive)
    - GIFT-EXEC-001: Value-moving write reverted on the ledger
    - GIFT-IN-001: Batch input could not be decoded
    - GIFT-ISS-001: Single recipient gift write failed
    - GIFT-CFG-001: Configuration missing or LIVE mode unconfirmed
    - GIFT-DIR-001: Nonprofit directory request failed

============================================================================
"""

from typing import Optional


class ErrorCode:
    """Error codes used in log lines and exception messages."""
    LEDGER_UNAVAILABLE = "GIFT-LED-001"
    AUTHORIZATION_NOT_CONFIRMED = "GIFT-AUTH-001"
    CONFIRMATION_TIMEOUT = "GIFT-CONF-001"
    EXECUTION_REVERTED = "GIFT-EXEC-001"
    MALFORMED_INPUT = "GIFT-IN-001"
    RECIPIENT_ISSUANCE_FAILED = "GIFT-ISS-001"
    CONFIGURATION = "GIFT-CFG-001"
    DIRECTORY_UNAVAILABLE = "GIFT-DIR-001"


class GiftFundError(Exception):
    """
    Base exception for all gift fund errors.

    Args:
        message: Human-readable description
        step: Pipeline step that failed (e.g. "CHECKING_ALLOWANCE")
    """

    code = "GIFT-000"

    def __init__(self, message: str, step: Optional[str] = None):
        self.message = message
        self.step = step
        super().__init__(f"[{self.code}] {message}")


class FundingError(GiftFundError):
    """Base class for errors raised while moving value."""
    pass


class LedgerUnavailable(FundingError):
    """A read or write could not reach the remote ledger. Retryable by caller."""
    code = ErrorCode.LEDGER_UNAVAILABLE


class AuthorizationNotConfirmed(FundingError):
    """
    An approve write was submitted but did not confirm.

    No value moved: the Executing step never started.
    """
    code = ErrorCode.AUTHORIZATION_NOT_CONFIRMED


class ConfirmationTimeout(FundingError):
    """
    Waiting for a receipt exceeded the configured bound.

    Inconclusive: the transaction may still land. Callers must re-read ledger
    state before resubmitting anything.
    """
    code = ErrorCode.CONFIRMATION_TIMEOUT

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        transaction_hash: Optional[str] = None
    ):
        self.transaction_hash = transaction_hash
        super().__init__(message, step)


class ExecutionReverted(FundingError):
    """The value-moving write was mined but reverted."""
    code = ErrorCode.EXECUTION_REVERTED


class RecipientIssuanceFailed(FundingError):
    """One recipient's gift write failed. Never propagates to siblings."""
    code = ErrorCode.RECIPIENT_ISSUANCE_FAILED


class MalformedInput(GiftFundError):
    """Batch text could not be interpreted."""
    code = ErrorCode.MALFORMED_INPUT


class ConfigurationError(GiftFundError):
    """Required configuration is missing or invalid. Fail closed."""
    code = ErrorCode.CONFIGURATION


class DirectoryUnavailable(GiftFundError):
    """The nonprofit directory could not be queried."""
    code = ErrorCode.DIRECTORY_UNAVAILABLE


__all__ = [
    "ErrorCode",
    "GiftFundError",
    "FundingError",
    "LedgerUnavailable",
    "AuthorizationNotConfirmed",
    "ConfirmationTimeout",
    "ExecutionReverted",
    "RecipientIssuanceFailed",
    "MalformedInput",
    "ConfigurationError",
    "DirectoryUnavailable",
]

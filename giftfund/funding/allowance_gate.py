"""
============================================================================
Gift Fund Orchestrator v1.0.0
Allowance Gate - Spending Authorization Check
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: ensure_allowance() none; authorize() submits one approve write

PURPOSE:
    Answers one question before any value-moving write: has `owner`
    authorized `spender` to move at least `required` base units of the
    token? The answer is always read fresh from the ledger.

FAIL CLOSED:
    If the allowance cannot be read the gate raises LedgerUnavailable. It
    never assumes sufficiency. Reads (and only reads) are retried with
    bounded exponential backoff.

ERROR CODES:
    - GIFT-LED-001: Allowance could not be read, or was not a
      non-negative integer

============================================================================
"""

from dataclasses import dataclass
from typing import Any, Optional
import asyncio
import logging

from giftfund.errors import LedgerUnavailable
from giftfund.funding.models import AllowanceRecord
from giftfund.ledger.backoff import ExponentialBackoff
from giftfund.ledger.contracts import ContractRef, Signer
from giftfund.ledger.interfaces import LedgerReader, LedgerWriter, TransactionHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllowanceCheck:
    """Result of an allowance check."""
    sufficient: bool
    current_allowance: int
    required_amount: int

    @property
    def shortfall(self) -> int:
        return max(self.required_amount - self.current_allowance, 0)


class AllowanceGate:
    """
    Allowance check for one token contract.

    Example Usage:
        gate = AllowanceGate(ledger, network.stablecoin)
        check = await gate.ensure_allowance(owner, spender, 10_000_000)
        if not check.sufficient:
            handle = await gate.authorize(ledger, signer, spender, 10_000_000)
    """

    def __init__(
        self,
        reader: LedgerReader,
        token: ContractRef,
        read_retries: int = 1,
        backoff: Optional[ExponentialBackoff] = None
    ):
        if read_retries < 1:
            raise ValueError(f"read_retries must be >= 1, got {read_retries}")
        self.reader = reader
        self.token = token
        self.read_retries = read_retries
        self._backoff = backoff or ExponentialBackoff()

    def _to_amount(self, raw: Any, correlation_id: Optional[str]) -> int:
        """
        Coerce a raw allowance value to base units.

        Raises:
            LedgerUnavailable: On a missing, non-integral or negative value
        """
        amount: Optional[int] = None
        if not isinstance(raw, (bool, float)):
            try:
                amount = int(raw)
            except (TypeError, ValueError):
                amount = None

        if amount is None or amount < 0:
            logger.error(
                f"[GIFT-LED-001] Allowance read returned bad value | "
                f"token={self.token.address} | value={raw!r} | "
                f"correlation_id={correlation_id}"
            )
            raise LedgerUnavailable(
                f"Allowance read returned {raw!r}, expected a non-negative integer",
                step="CHECKING_ALLOWANCE"
            )
        return amount

    async def read_allowance(
        self,
        owner: str,
        spender: str,
        correlation_id: Optional[str] = None
    ) -> AllowanceRecord:
        """
        Read allowance(owner, spender) with bounded retries.

        Raises:
            LedgerUnavailable: If every attempt failed or the ledger returned
                something that is not a non-negative integer
        """
        self._backoff.reset()

        for attempt in range(1, self.read_retries + 1):
            try:
                raw = await self.reader.read(self.token, "allowance", [owner, spender])
            except LedgerUnavailable as e:
                if attempt == self.read_retries:
                    logger.error(
                        f"[GIFT-LED-001] Allowance read failed | token={self.token.address} | "
                        f"attempts={attempt} | error={e.message} | "
                        f"correlation_id={correlation_id}"
                    )
                    raise LedgerUnavailable(
                        f"Allowance read failed after {attempt} attempt(s): {e.message}",
                        step="CHECKING_ALLOWANCE"
                    ) from e

                delay = self._backoff.get_delay()
                logger.warning(
                    f"[GIFT-GATE] Allowance read retry | attempt={attempt}/{self.read_retries} | "
                    f"delay={delay:.2f}s | correlation_id={correlation_id}"
                )
                await asyncio.sleep(delay)
                continue

            amount = self._to_amount(raw, correlation_id)
            return AllowanceRecord(owner=owner, spender=spender, amount=amount)

        raise AssertionError("unreachable")

    async def ensure_allowance(
        self,
        owner: str,
        spender: str,
        required_amount: int,
        correlation_id: Optional[str] = None
    ) -> AllowanceCheck:
        """
        Check whether the current allowance covers `required_amount`.

        Never mutates ledger state.
        """
        if required_amount < 0:
            raise ValueError(f"required_amount must be non-negative, got {required_amount}")

        record = await self.read_allowance(owner, spender, correlation_id)
        check = AllowanceCheck(
            sufficient=record.amount >= required_amount,
            current_allowance=record.amount,
            required_amount=required_amount,
        )

        logger.info(
            f"[GIFT-GATE] Allowance checked | token={self.token.address} | "
            f"spender={spender} | current={check.current_allowance} | "
            f"required={required_amount} | sufficient={check.sufficient} | "
            f"correlation_id={correlation_id}"
        )
        return check

    async def authorize(
        self,
        writer: LedgerWriter,
        signer: Signer,
        spender: str,
        amount: int,
        correlation_id: Optional[str] = None
    ) -> TransactionHandle:
        """
        Submit approve(spender, amount). Does not wait for confirmation.

        Raises:
            LedgerUnavailable: If the write could not be submitted
        """
        handle = await writer.write(self.token, "approve", [spender, amount], signer)
        logger.info(
            f"[GIFT-GATE] Authorization submitted | token={self.token.address} | "
            f"spender={spender} | amount={amount} | mode={signer.mode} | "
            f"tx={handle.transaction_hash} | correlation_id={correlation_id}"
        )
        return handle

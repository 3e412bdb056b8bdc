"""
============================================================================
Gift Fund Orchestrator v1.0.0
Gift Batch Issuer - Per-Recipient Partial Failure
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: One approve (if needed) + one createGift write per recipient
Traceability: Batch correlation_id, per-recipient child correlation ids

WORKFLOW:
    1. Resolve every recipient's gift amount to base units
       - non-numeric, non-positive or sub-base-unit amounts -> SKIPPED
    2. ONE authorization for the total against the gift box
       - authorization failed -> every eligible recipient FAILED, no writes
    3. Sequentially, per eligible recipient:
       fresh redeem code -> createGift(fundToken, amount, code) -> confirm
    4. BatchReport with exactly one outcome per input recipient

ISOLATION:
    One recipient's failure never aborts the rest. A confirmation timeout
    marks that recipient FAILED and inconclusive: the gift may still exist
    on the ledger, so it must not be blindly reissued.
    An unexpected error is recorded the same way: FAILED, and inconclusive
    once the createGift write was accepted.

============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union
import logging
import uuid

from giftfund.errors import ConfirmationTimeout, FundingError, RecipientIssuanceFailed
from giftfund.funding.models import Fund, FundKind, Gift, Recipient
from giftfund.funding.orchestrator import (
    FundingOrchestrator,
    FundingResult,
    STEP_AWAIT_EXECUTE,
    create_gift_action,
)
from giftfund.funding.redeem_codes import DEFAULT_LENGTH, RedeemCodeBook, redact_code
from giftfund.ledger.contracts import ContractRef, NetworkContext, Signer
from giftfund.ledger.decimal_gateway import DecimalGateway
from giftfund.observability.metrics import record_gift

logger = logging.getLogger(__name__)


class GiftStatus(Enum):
    """Per-recipient issuance status."""
    ISSUED = "ISSUED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class RecipientOutcome:
    """
    What happened to one input recipient.

    Attributes:
        index: Position in the input batch
        recipient: The input row
        status: ISSUED, FAILED or SKIPPED
        amount_base_units: Resolved amount, None when skipped
        gift: The issued gift (ISSUED only)
        error_code: GIFT-* code of the failure, if any
        reason: Human-readable failure or skip reason
        inconclusive: True when the write may still land (timeout, or an
            unexpected error after the write was accepted)
    """
    index: int
    recipient: Recipient
    status: GiftStatus
    amount_base_units: Optional[int] = None
    gift: Optional[Gift] = None
    error_code: Optional[str] = None
    reason: Optional[str] = None
    inconclusive: bool = False

    @property
    def redeem_code(self) -> Optional[str]:
        return self.gift.redeem_code if self.gift else None


@dataclass
class BatchReport:
    """Outcome of one batch, one entry per input recipient, input order."""
    correlation_id: str
    fund_token: str
    total_requested: int
    outcomes: List[RecipientOutcome] = field(default_factory=list)
    authorization: Optional[FundingResult] = None

    def with_status(self, status: GiftStatus) -> List[RecipientOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def issued(self) -> List[RecipientOutcome]:
        return self.with_status(GiftStatus.ISSUED)

    @property
    def failed(self) -> List[RecipientOutcome]:
        return self.with_status(GiftStatus.FAILED)

    @property
    def skipped(self) -> List[RecipientOutcome]:
        return self.with_status(GiftStatus.SKIPPED)

    @property
    def total_issued(self) -> int:
        return sum(outcome.amount_base_units or 0 for outcome in self.issued)

    def failed_recipients(self) -> List[Recipient]:
        """Recipients worth retrying in a fresh batch (excludes inconclusive)."""
        return [
            outcome.recipient for outcome in self.failed
            if not outcome.inconclusive
        ]

    def summary(self) -> str:
        return (
            f"issued={len(self.issued)} failed={len(self.failed)} "
            f"skipped={len(self.skipped)} total_requested={self.total_requested}"
        )


class GiftBatchIssuer:
    """
    Issues redeemable gifts for a batch of recipients from one fund token.

    Example Usage:
        issuer = GiftBatchIssuer(orchestrator, network, code_format="XXXX-XXXX-XXXX-XXXX")
        report = await issuer.issue_batch(network.giving_fund_token, recipients,
                                          signer, owner)
        for outcome in report.failed:
            ...
    """

    def __init__(
        self,
        orchestrator: FundingOrchestrator,
        network: NetworkContext,
        code_format: Optional[str] = None,
        code_length: int = DEFAULT_LENGTH
    ):
        self.orchestrator = orchestrator
        self.network = network
        self.code_format = code_format
        self.code_length = code_length
        self._decimals = DecimalGateway(network.token_decimals)

    @staticmethod
    def _resolve_fund(
        fund: Union[Fund, ContractRef]
    ) -> Tuple[ContractRef, Optional[FundKind]]:
        if isinstance(fund, Fund):
            return ContractRef.token(fund.address, fund.display_name), fund.kind
        return fund, None

    def _resolve_amount(self, recipient: Recipient, correlation_id: str) -> Tuple[Optional[int], Optional[str]]:
        """Base units for a recipient, or (None, reason) when it must be skipped."""
        try:
            amount = self._decimals.parse_units(recipient.gift_amount, correlation_id)
        except ValueError as e:
            return None, str(e)
        if amount <= 0:
            return None, f"gift amount must be positive, got '{recipient.gift_amount}'"
        return amount, None

    async def issue_batch(
        self,
        fund: Union[Fund, ContractRef],
        recipients: Sequence[Recipient],
        signer: Signer,
        owner: str,
        correlation_id: Optional[str] = None
    ) -> BatchReport:
        """
        Issue one gift per eligible recipient.

        Never raises for ledger failures: every recipient ends up in the
        report as ISSUED, FAILED or SKIPPED.
        """
        cid = correlation_id or str(uuid.uuid4())
        fund_token, fund_kind = self._resolve_fund(fund)
        gift_box = self.network.gift_box

        slots: List[Optional[RecipientOutcome]] = [None] * len(recipients)
        eligible: List[Tuple[int, Recipient, int]] = []

        for index, recipient in enumerate(recipients):
            amount, reason = self._resolve_amount(recipient, cid)
            if amount is None:
                slots[index] = RecipientOutcome(
                    index=index, recipient=recipient,
                    status=GiftStatus.SKIPPED, reason=reason,
                )
            else:
                eligible.append((index, recipient, amount))

        total_requested = sum(amount for _, _, amount in eligible)
        report = BatchReport(
            correlation_id=cid,
            fund_token=fund_token.address,
            total_requested=total_requested,
        )

        logger.info(
            "[GIFT-ISS] Batch started | fund_token=%s | recipients=%d | eligible=%d | "
            "total_requested=%d | correlation_id=%s",
            fund_token.address, len(recipients), len(eligible), total_requested, cid
        )

        if eligible:
            authorization = await self.orchestrator.ensure_authorization(
                fund_token, owner, gift_box.address, total_requested, signer,
                correlation_id=cid, action_name="gift-batch"
            )
            report.authorization = authorization

            if not authorization.cleared_to_execute:
                error = authorization.error
                for index, recipient, amount in eligible:
                    slots[index] = RecipientOutcome(
                        index=index, recipient=recipient, status=GiftStatus.FAILED,
                        amount_base_units=amount,
                        error_code=error.code if error else None,
                        reason=f"authorization failed: {error.message if error else 'unknown'}",
                        inconclusive=False,
                    )
            else:
                book = RedeemCodeBook(self.code_length, self.code_format)
                for index, recipient, amount in eligible:
                    slots[index] = await self._issue_one(
                        index, recipient, amount, fund_token, fund_kind,
                        book, signer, f"{cid}:{index}"
                    )

        report.outcomes = [outcome for outcome in slots if outcome is not None]
        for outcome in report.outcomes:
            record_gift(outcome.status.value)

        logger.info(
            "[GIFT-ISS] Batch finished | %s | correlation_id=%s",
            report.summary(), cid
        )
        return report

    async def _issue_one(
        self,
        index: int,
        recipient: Recipient,
        amount: int,
        fund_token: ContractRef,
        fund_kind: Optional[FundKind],
        book: RedeemCodeBook,
        signer: Signer,
        correlation_id: str
    ) -> RecipientOutcome:
        code = book.issue()
        action = create_gift_action(self.network, fund_token, amount, code)
        trace: List[str] = []

        try:
            receipt = await self.orchestrator.submit_and_confirm(
                action, signer, correlation_id, trace
            )
        except FundingError as e:
            failure = RecipientIssuanceFailed(
                f"recipient {index} ({recipient.email}): {e.message}", step=e.step
            )
            logger.warning(
                "[%s] Recipient failed | index=%d | cause=%s | code=%s | correlation_id=%s",
                failure.code, index, e.code, redact_code(code), correlation_id
            )
            return RecipientOutcome(
                index=index, recipient=recipient, status=GiftStatus.FAILED,
                amount_base_units=amount,
                error_code=e.code,
                reason=failure.message,
                inconclusive=isinstance(e, ConfirmationTimeout),
            )
        except Exception as e:
            # Once the write was accepted the gift may exist on the ledger
            submitted = STEP_AWAIT_EXECUTE in trace
            failure = RecipientIssuanceFailed(
                f"recipient {index} ({recipient.email}): unexpected error: {e}",
                step="EXECUTING"
            )
            logger.error(
                "[%s] Recipient failed unexpectedly | index=%d | error=%s: %s | "
                "submitted=%s | code=%s | correlation_id=%s",
                failure.code, index, type(e).__name__, e, submitted,
                redact_code(code), correlation_id,
                exc_info=True
            )
            return RecipientOutcome(
                index=index, recipient=recipient, status=GiftStatus.FAILED,
                amount_base_units=amount,
                error_code=failure.code,
                reason=failure.message,
                inconclusive=submitted,
            )

        gift_id = receipt.return_value if receipt.return_value is not None else receipt.transaction_hash
        gift = Gift(
            fund_token=fund_token.address,
            amount_base_units=amount,
            redeem_code=code,
            fund_kind=fund_kind,
            gift_id=str(gift_id),
            transaction_hash=receipt.transaction_hash,
        )

        logger.info(
            "[GIFT-ISS] Gift issued | index=%d | gift_id=%s | amount=%d | code=%s | "
            "correlation_id=%s",
            index, gift.gift_id, amount, redact_code(code), correlation_id
        )
        return RecipientOutcome(
            index=index, recipient=recipient, status=GiftStatus.ISSUED,
            amount_base_units=amount, gift=gift,
        )

    async def issue_gift(
        self,
        fund: Union[Fund, ContractRef],
        recipient: Recipient,
        signer: Signer,
        owner: str,
        correlation_id: Optional[str] = None
    ) -> RecipientOutcome:
        """Single-recipient convenience wrapper around issue_batch()."""
        report = await self.issue_batch(fund, [recipient], signer, owner, correlation_id)
        return report.outcomes[0]

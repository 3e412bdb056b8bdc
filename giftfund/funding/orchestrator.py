"""
============================================================================
Gift Fund Orchestrator v1.0.0
Funding Transaction Orchestrator - Authorize-Then-Act
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: Ledger writes (approve + one value-moving write per action)
Traceability: Every transition and ledger call carries correlation_id

PROTOCOL:
    1. CHECKING_ALLOWANCE: re-read allowance for the resolved base units
    2. AUTHORIZING (only if insufficient): approve, await confirmation
       - reverted or unconfirmed -> FAILED (GIFT-AUTH-001), Executing never starts
       - no receipt within the bound -> FAILED (GIFT-CONF-001), inconclusive
    3. EXECUTING: the value-moving write through the session's Signer
    4. CONFIRMED: receipt returned to the caller
    5. FAILED: failed step + error reported; nothing to roll back because
       allowance is never cached

SAFETY MANDATE:
    - Value-moving writes are NEVER retried here. A caller that wants to
      retry must start a fresh action, which re-reads the allowance.
    - Confirmation waits are bounded. A timeout is INCONCLUSIVE: the
      transaction may still land.
    - Cancellation is honoured in IDLE and CHECKING_ALLOWANCE. Once a write
      is being submitted, cancellation is deferred until submission settles.

============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar
import asyncio
import logging
import time
import uuid

from giftfund.errors import (
    AuthorizationNotConfirmed,
    ConfirmationTimeout,
    ExecutionReverted,
    FundingError,
)
from giftfund.funding.allowance_gate import AllowanceCheck, AllowanceGate
from giftfund.funding.state_machine import FundingLifecycle, FundingState, TransitionRecord
from giftfund.ledger.backoff import ExponentialBackoff
from giftfund.ledger.contracts import ContractRef, NetworkContext, Signer
from giftfund.ledger.interfaces import LedgerReader, LedgerWriter, Receipt, TransactionHandle
from giftfund.observability.metrics import (
    record_authorization,
    record_confirmation_wait,
    record_funding_action,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Operation trace step names
STEP_READ_ALLOWANCE = "read-allowance"
STEP_WRITE_AUTHORIZE = "write-authorize"
STEP_AWAIT_CONFIRM = "await-confirm"
STEP_WRITE_EXECUTE = "write-execute"
STEP_AWAIT_EXECUTE = "await-execute"


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class FundingAction:
    """
    One ledger write plus the spending authorization it depends on.

    Attributes:
        name: Action label for logs and metrics (e.g. "add-funds")
        contract: Contract the value-moving write targets
        function_name: Function to call
        args: Call arguments (identical for both signer variants)
        required_base_units: Amount the spender will pull
        approval_token: Token whose allowance gates the write, None if the
            action moves no value
        spender: Address that must be authorized on approval_token
    """
    name: str
    contract: ContractRef
    function_name: str
    args: Tuple[Any, ...]
    required_base_units: int = 0
    approval_token: Optional[ContractRef] = None
    spender: Optional[str] = None

    def __post_init__(self) -> None:
        if self.required_base_units < 0:
            raise ValueError(
                f"required_base_units must be non-negative, got {self.required_base_units}"
            )
        if self.approval_token is not None and not self.spender:
            raise ValueError("An action gated by an approval token needs a spender")

    @property
    def moves_value(self) -> bool:
        return self.approval_token is not None


def add_funds_action(network: NetworkContext, amount: int) -> FundingAction:
    """Mint giving-fund tokens against stablecoin."""
    gft = network.giving_fund_token
    return FundingAction(
        name="add-funds",
        contract=gft,
        function_name="mint",
        args=(amount,),
        required_base_units=amount,
        approval_token=network.stablecoin,
        spender=gft.address,
    )


def increase_funding_action(
    network: NetworkContext,
    fund_address: str,
    amount: int
) -> FundingAction:
    """Move giving-fund tokens into a bespoke fund."""
    factory = network.bespoke_factory
    return FundingAction(
        name="increase-funding",
        contract=factory,
        function_name="increaseFunding",
        args=(amount, fund_address),
        required_base_units=amount,
        approval_token=network.giving_fund_token,
        spender=factory.address,
    )


def create_bespoke_fund_action(network: NetworkContext, name: str, symbol: str) -> FundingAction:
    return FundingAction(
        name="create-bespoke-fund",
        contract=network.bespoke_factory,
        function_name="createFund",
        args=(name, symbol),
    )


def create_matching_fund_action(
    network: NetworkContext,
    name: str,
    symbol: str,
    expires_at: int
) -> FundingAction:
    return FundingAction(
        name="create-matching-fund",
        contract=network.matching_factory,
        function_name="createFund",
        args=(name, symbol, expires_at),
    )


def create_gift_action(
    network: NetworkContext,
    fund_token: ContractRef,
    amount: int,
    redeem_code: str
) -> FundingAction:
    """Lock `amount` of a fund token in the gift box behind a redeem code."""
    gift_box = network.gift_box
    return FundingAction(
        name="create-gift",
        contract=gift_box,
        function_name="createGift",
        args=(fund_token.address, amount, redeem_code),
        required_base_units=amount,
        approval_token=fund_token,
        spender=gift_box.address,
    )


# =============================================================================
# Result
# =============================================================================

@dataclass
class FundingResult:
    """
    Outcome of one orchestrated action.

    state is CONFIRMED or FAILED for execute(). ensure_authorization()
    stops at EXECUTING when the spender is cleared to pull funds.
    """
    action: str
    state: FundingState
    correlation_id: str
    receipt: Optional[Receipt] = None
    authorization_receipt: Optional[Receipt] = None
    allowance_check: Optional[AllowanceCheck] = None
    failed_step: Optional[str] = None
    error: Optional[FundingError] = None
    trace: List[str] = field(default_factory=list)
    transitions: List[TransitionRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == FundingState.CONFIRMED

    @property
    def cleared_to_execute(self) -> bool:
        return self.state in (FundingState.EXECUTING, FundingState.CONFIRMED)

    @property
    def inconclusive(self) -> bool:
        return isinstance(self.error, ConfirmationTimeout)

    @property
    def return_value(self) -> Any:
        return self.receipt.return_value if self.receipt else None

    @property
    def transaction_hash(self) -> Optional[str]:
        return self.receipt.transaction_hash if self.receipt else None

    def raise_for_failure(self) -> "FundingResult":
        """Raise the recorded error if the action failed."""
        if self.error is not None:
            raise self.error
        return self


# =============================================================================
# Orchestrator
# =============================================================================

class FundingOrchestrator:
    """
    Drives FundingActions through the authorize-then-act lifecycle.

    Example Usage:
        orchestrator = FundingOrchestrator(ledger, ledger, confirmation_timeout=120)
        result = await orchestrator.execute(
            add_funds_action(network, 25_000_000), signer, owner
        )
        result.raise_for_failure()
    """

    DEFAULT_CONFIRMATION_TIMEOUT_SECONDS = 120.0

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
        read_retries: int = 1,
        backoff: Optional[ExponentialBackoff] = None
    ):
        if confirmation_timeout <= 0:
            raise ValueError(
                f"confirmation_timeout must be positive, got {confirmation_timeout}"
            )
        self.reader = reader
        self.writer = writer
        self.confirmation_timeout = confirmation_timeout
        self.read_retries = read_retries
        self._backoff = backoff

        logger.info(
            "FundingOrchestrator initialized | confirmation_timeout=%.1fs | read_retries=%d",
            confirmation_timeout, read_retries
        )

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    async def _submit(self, submission: Awaitable[T], correlation_id: str) -> T:
        """Await a write submission, deferring cancellation until it settles."""
        task = asyncio.ensure_future(submission)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.warning(
                "[GIFT-ORCH] Cancellation deferred until write submission settles | "
                "correlation_id=%s", correlation_id
            )
            await asyncio.wait([task])
            raise

    async def _confirm(
        self,
        handle: TransactionHandle,
        step: str,
        correlation_id: str
    ) -> Receipt:
        """
        Bounded confirmation wait.

        Raises:
            ConfirmationTimeout: If no receipt within confirmation_timeout
        """
        started = time.monotonic()
        try:
            receipt = await asyncio.wait_for(
                self.writer.await_confirmation(handle),
                timeout=self.confirmation_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "[GIFT-CONF-001] Confirmation wait exceeded | step=%s | tx=%s | "
                "timeout=%.1fs | correlation_id=%s",
                step, handle.transaction_hash, self.confirmation_timeout, correlation_id
            )
            raise ConfirmationTimeout(
                f"No confirmation for {handle.transaction_hash} within "
                f"{self.confirmation_timeout}s (inconclusive)",
                step=step,
                transaction_hash=handle.transaction_hash
            ) from None
        except ConfirmationTimeout as e:
            if e.step is None:
                e.step = step
            raise
        finally:
            record_confirmation_wait(handle.function_name, time.monotonic() - started)

        return receipt

    async def _authorize_leg(
        self,
        lifecycle: FundingLifecycle,
        result: FundingResult,
        token: ContractRef,
        owner: str,
        spender: str,
        amount: int,
        signer: Signer
    ) -> None:
        """CHECKING_ALLOWANCE -> (AUTHORIZING ->) EXECUTING."""
        cid = lifecycle.correlation_id
        gate = AllowanceGate(self.reader, token, self.read_retries, self._backoff)

        lifecycle.advance(FundingState.CHECKING_ALLOWANCE, reason=f"required={amount}")
        result.trace.append(STEP_READ_ALLOWANCE)
        check = await gate.ensure_allowance(owner, spender, amount, cid)
        result.allowance_check = check

        if check.sufficient:
            lifecycle.advance(FundingState.EXECUTING, reason="allowance sufficient")
            return

        lifecycle.advance(FundingState.AUTHORIZING, reason=f"shortfall={check.shortfall}")
        result.trace.append(STEP_WRITE_AUTHORIZE)
        handle = await self._submit(
            gate.authorize(self.writer, signer, spender, amount, cid), cid
        )

        result.trace.append(STEP_AWAIT_CONFIRM)
        try:
            receipt = await self._confirm(handle, FundingState.AUTHORIZING.value, cid)
        except ConfirmationTimeout:
            record_authorization("TIMEOUT")
            raise
        except FundingError as e:
            record_authorization("UNCONFIRMED")
            logger.warning(
                "[GIFT-AUTH-001] Authorization confirmation failed | tx=%s | cause=%s | "
                "correlation_id=%s",
                handle.transaction_hash, e.code, cid
            )
            raise AuthorizationNotConfirmed(
                f"approve({spender}, {amount}) not confirmed: {e.message}",
                step=FundingState.AUTHORIZING.value
            ) from e
        result.authorization_receipt = receipt

        if not receipt.succeeded:
            record_authorization("REVERTED")
            raise AuthorizationNotConfirmed(
                f"approve({spender}, {amount}) reverted: {receipt.revert_reason}",
                step=FundingState.AUTHORIZING.value
            )

        record_authorization("CONFIRMED")
        lifecycle.advance(FundingState.EXECUTING, reason="authorization confirmed")

    def _fail(
        self,
        lifecycle: FundingLifecycle,
        result: FundingResult,
        error: FundingError
    ) -> FundingResult:
        step = error.step or lifecycle.state.value
        error.step = step
        result.failed_step = step
        result.error = error

        if not lifecycle.is_terminal:
            lifecycle.advance(FundingState.FAILED, reason=error.code)

        result.state = lifecycle.state
        result.transitions = list(lifecycle.history)

        logger.error(
            "[%s] Funding action failed | action=%s | step=%s | error=%s | correlation_id=%s",
            error.code, result.action, step, error.message, lifecycle.correlation_id
        )
        record_funding_action(result.action, "FAILED")
        return result

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    async def submit_and_confirm(
        self,
        action: FundingAction,
        signer: Signer,
        correlation_id: Optional[str] = None,
        trace: Optional[List[str]] = None
    ) -> Receipt:
        """
        The EXECUTING leg on its own: one write, one bounded confirmation.

        Callers must already hold sufficient authorization.

        Raises:
            LedgerUnavailable: Submission failed
            ConfirmationTimeout: Inconclusive
            ExecutionReverted: Mined but reverted
        """
        cid = correlation_id or str(uuid.uuid4())
        trace = trace if trace is not None else []

        trace.append(STEP_WRITE_EXECUTE)
        handle = await self._submit(
            self.writer.write(action.contract, action.function_name, action.args, signer),
            cid
        )

        trace.append(STEP_AWAIT_EXECUTE)
        receipt = await self._confirm(handle, FundingState.EXECUTING.value, cid)

        if not receipt.succeeded:
            raise ExecutionReverted(
                f"{action.function_name} reverted: {receipt.revert_reason}",
                step=FundingState.EXECUTING.value
            )

        logger.info(
            "[GIFT-ORCH] Write confirmed | action=%s | tx=%s | block=%s | correlation_id=%s",
            action.name, receipt.transaction_hash, receipt.block_number, cid
        )
        return receipt

    async def ensure_authorization(
        self,
        token: ContractRef,
        owner: str,
        spender: str,
        amount: int,
        signer: Signer,
        correlation_id: Optional[str] = None,
        action_name: str = "authorize"
    ) -> FundingResult:
        """
        Run only the check and authorize legs.

        Returns a result in EXECUTING (spender cleared to pull `amount`) or
        FAILED. Used when several writes share one authorization.
        """
        cid = correlation_id or str(uuid.uuid4())
        lifecycle = FundingLifecycle(cid)
        result = FundingResult(action=action_name, state=lifecycle.state, correlation_id=cid)

        try:
            await self._authorize_leg(lifecycle, result, token, owner, spender, amount, signer)
        except FundingError as e:
            return self._fail(lifecycle, result, e)

        result.state = lifecycle.state
        result.transitions = list(lifecycle.history)
        return result

    async def execute(
        self,
        action: FundingAction,
        signer: Signer,
        owner: str,
        correlation_id: Optional[str] = None
    ) -> FundingResult:
        """
        Drive one action to CONFIRMED or FAILED.

        Ledger failures are reported on the result, never raised. Call
        raise_for_failure() to turn a failed result into an exception.
        """
        cid = correlation_id or str(uuid.uuid4())
        lifecycle = FundingLifecycle(cid)
        result = FundingResult(action=action.name, state=lifecycle.state, correlation_id=cid)

        logger.info(
            "[GIFT-ORCH] Action started | action=%s | function=%s | amount=%d | mode=%s | "
            "correlation_id=%s",
            action.name, action.function_name, action.required_base_units, signer.mode, cid
        )

        try:
            if action.moves_value:
                await self._authorize_leg(
                    lifecycle, result,
                    action.approval_token, owner, action.spender,
                    action.required_base_units, signer
                )
            else:
                lifecycle.advance(FundingState.EXECUTING, reason="no value moved")

            result.receipt = await self.submit_and_confirm(action, signer, cid, result.trace)
        except FundingError as e:
            return self._fail(lifecycle, result, e)

        lifecycle.advance(FundingState.CONFIRMED, reason=result.receipt.transaction_hash)
        result.state = lifecycle.state
        result.transitions = list(lifecycle.history)
        record_funding_action(action.name, "CONFIRMED")
        return result

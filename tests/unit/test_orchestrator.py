"""
Unit Tests for the Funding Transaction Orchestrator

Reliability Level: FUNDS-CRITICAL

Key Test Cases:
- Insufficient allowance: read -> approve -> confirm -> execute -> confirm
- Sufficient allowance: read -> execute -> confirm (no approve)
- Authorization revert or unreadable receipt: FAILED at AUTHORIZING, execute never submitted
- Read outage or missing allowance value: FAILED at CHECKING_ALLOWANCE, nothing written
- Bounded confirmation: GIFT-CONF-001, inconclusive
- Direct and relayed signers produce the same ledger effect
- Cancellation deferred while a write is being submitted
"""

import asyncio

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from giftfund.errors import (
    AuthorizationNotConfirmed,
    ConfirmationTimeout,
    ErrorCode,
    ExecutionReverted,
    LedgerUnavailable,
)
from giftfund.funding.fund_registry import FundRegistry
from giftfund.funding.models import FundKind
from giftfund.funding.orchestrator import (
    FundingAction,
    FundingOrchestrator,
    add_funds_action,
    create_bespoke_fund_action,
    create_matching_fund_action,
    increase_funding_action,
)
from giftfund.funding.state_machine import FundingState
from giftfund.ledger.contracts import DirectSigner, RelayedSigner, RelaySession
from giftfund.ledger.request_signer import RequestSigner
from giftfund.ledger.sim_ledger import InMemoryLedger, sim_address


OWNER = "0x00000000000000000000000000000000000a11ce"
NOW = 1_700_000_000

AUTHORIZE_TRACE = ["read-allowance", "write-authorize", "await-confirm", "write-execute", "await-execute"]
DIRECT_TRACE = ["read-allowance", "write-execute", "await-execute"]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger.bootstrap(clock=lambda: NOW)


@pytest.fixture
def signer() -> DirectSigner:
    return DirectSigner(OWNER, RequestSigner("test-key", "test-secret"))


@pytest.fixture
def relayed_signer() -> RelayedSigner:
    return RelayedSigner(RelaySession("session-token", smart_wallet_address=OWNER))


@pytest.fixture
def orchestrator(ledger) -> FundingOrchestrator:
    return FundingOrchestrator(ledger, ledger, confirmation_timeout=5.0)


class SlowLedger(InMemoryLedger):
    """Delays reads and writes so tests can cancel mid-flight."""

    delay = 0.05

    async def read(self, contract, function_name, args=()):
        await asyncio.sleep(self.delay)
        return await super().read(contract, function_name, args)

    async def write(self, contract, function_name, args, signer):
        await asyncio.sleep(self.delay)
        return await super().write(contract, function_name, args, signer)


class UnreadableApprovalLedger(InMemoryLedger):
    """Accepts approve writes but cannot report their receipts."""

    async def await_confirmation(self, handle):
        if handle.function_name == "approve":
            raise LedgerUnavailable(f"receipt store offline for {handle.transaction_hash}")
        return await super().await_confirmation(handle)


class NullAllowanceLedger(InMemoryLedger):
    """Answers allowance reads with no value."""

    async def read(self, contract, function_name, args=()):
        value = await super().read(contract, function_name, args)
        return None if function_name == "allowance" else value


# =============================================================================
# ACTIONS
# =============================================================================

class TestFundingAction:

    def test_negative_amount_rejected(self, ledger) -> None:
        with pytest.raises(ValueError):
            FundingAction("x", ledger.network.gift_box, "createGift", (), required_base_units=-1)

    def test_approval_token_needs_spender(self, ledger) -> None:
        with pytest.raises(ValueError):
            FundingAction(
                "x", ledger.network.gift_box, "createGift", (),
                required_base_units=1, approval_token=ledger.network.stablecoin
            )

    def test_add_funds_targets(self, ledger) -> None:
        action = add_funds_action(ledger.network, 7)
        assert action.moves_value
        assert action.contract == ledger.network.giving_fund_token
        assert action.approval_token == ledger.network.stablecoin
        assert action.spender == ledger.network.giving_fund_token.address
        assert action.args == (7,)

    def test_create_fund_moves_no_value(self, ledger) -> None:
        assert not create_bespoke_fund_action(ledger.network, "Ocean", "OCN").moves_value


# =============================================================================
# AUTHORIZE-THEN-ACT
# =============================================================================

class TestExecute:

    @pytest.mark.asyncio
    async def test_insufficient_allowance_authorizes_first(self, ledger, orchestrator, signer) -> None:
        ledger.credit(ledger.network.stablecoin, OWNER, 10_000_000)

        result = await orchestrator.execute(add_funds_action(ledger.network, 5_000_000), signer, OWNER)

        assert result.succeeded
        assert result.state == FundingState.CONFIRMED
        assert result.trace == AUTHORIZE_TRACE
        assert [w.function_name for w in ledger.writes()] == ["approve", "mint"]
        assert result.authorization_receipt.succeeded
        assert result.allowance_check.shortfall == 5_000_000
        assert ledger.balance_of(ledger.network.giving_fund_token, OWNER) == 5_000_000
        assert ledger.balance_of(ledger.network.stablecoin, OWNER) == 5_000_000
        assert [t.new_state for t in result.transitions] == [
            FundingState.CHECKING_ALLOWANCE,
            FundingState.AUTHORIZING,
            FundingState.EXECUTING,
            FundingState.CONFIRMED,
        ]

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_authorization(self, ledger, orchestrator, signer) -> None:
        network = ledger.network
        ledger.credit(network.stablecoin, OWNER, 10_000_000)
        ledger.set_allowance(network.stablecoin, OWNER, network.giving_fund_token.address, 10_000_000)

        result = await orchestrator.execute(add_funds_action(network, 4_000_000), signer, OWNER)

        assert result.succeeded
        assert result.trace == DIRECT_TRACE
        assert [w.function_name for w in ledger.writes()] == ["mint"]
        assert result.authorization_receipt is None
        assert result.return_value == 4_000_000

    @pytest.mark.asyncio
    async def test_allowance_is_read_fresh_every_action(self, ledger, orchestrator, signer) -> None:
        network = ledger.network
        ledger.credit(network.stablecoin, OWNER, 10_000_000)

        first = await orchestrator.execute(add_funds_action(network, 3_000_000), signer, OWNER)
        second = await orchestrator.execute(add_funds_action(network, 3_000_000), signer, OWNER)

        assert first.trace == AUTHORIZE_TRACE
        # The first mint consumed the allowance it approved
        assert second.trace == AUTHORIZE_TRACE
        reads = [r for r in ledger.call_log if r.function_name == "allowance"]
        assert len(reads) == 2

    @pytest.mark.asyncio
    async def test_authorization_revert_stops_before_execute(self, ledger, orchestrator, signer) -> None:
        ledger.credit(ledger.network.stablecoin, OWNER, 10_000_000)
        ledger.revert_when = lambda fn, args: "approvals paused" if fn == "approve" else None

        result = await orchestrator.execute(add_funds_action(ledger.network, 1_000_000), signer, OWNER)

        assert result.state == FundingState.FAILED
        assert result.failed_step == "AUTHORIZING"
        assert isinstance(result.error, AuthorizationNotConfirmed)
        assert result.error.code == ErrorCode.AUTHORIZATION_NOT_CONFIRMED
        assert "approvals paused" in result.error.message
        assert result.trace == ["read-allowance", "write-authorize", "await-confirm"]
        assert [w.function_name for w in ledger.writes()] == ["approve"]
        assert ledger.balance_of(ledger.network.giving_fund_token, OWNER) == 0

    @pytest.mark.asyncio
    async def test_allowance_read_outage_fails_closed(self, ledger, orchestrator, signer) -> None:
        ledger.fail_reads = 1

        result = await orchestrator.execute(add_funds_action(ledger.network, 1_000_000), signer, OWNER)

        assert result.state == FundingState.FAILED
        assert result.failed_step == "CHECKING_ALLOWANCE"
        assert isinstance(result.error, LedgerUnavailable)
        assert ledger.writes() == []

    @pytest.mark.asyncio
    async def test_missing_allowance_value_fails_closed(self, signer) -> None:
        ledger = NullAllowanceLedger.bootstrap(clock=lambda: NOW)
        ledger.credit(ledger.network.stablecoin, OWNER, 10_000_000)
        orchestrator = FundingOrchestrator(ledger, ledger)

        result = await orchestrator.execute(add_funds_action(ledger.network, 1_000_000), signer, OWNER)

        assert result.state == FundingState.FAILED
        assert result.failed_step == "CHECKING_ALLOWANCE"
        assert isinstance(result.error, LedgerUnavailable)
        assert result.transitions[-1].new_state == FundingState.FAILED
        assert ledger.writes() == []

    @pytest.mark.asyncio
    async def test_unreadable_authorization_receipt(self, signer) -> None:
        ledger = UnreadableApprovalLedger.bootstrap(clock=lambda: NOW)
        ledger.credit(ledger.network.stablecoin, OWNER, 10_000_000)
        orchestrator = FundingOrchestrator(ledger, ledger)

        result = await orchestrator.execute(add_funds_action(ledger.network, 1_000_000), signer, OWNER)

        assert result.state == FundingState.FAILED
        assert result.failed_step == "AUTHORIZING"
        assert isinstance(result.error, AuthorizationNotConfirmed)
        assert isinstance(result.error.__cause__, LedgerUnavailable)
        assert "receipt store offline" in result.error.message
        assert not result.inconclusive
        assert [w.function_name for w in ledger.writes()] == ["approve"]

    @pytest.mark.asyncio
    async def test_execution_revert(self, ledger, orchestrator, signer) -> None:
        network = ledger.network
        # Allowance but no stablecoin balance: mint reverts
        ledger.set_allowance(network.stablecoin, OWNER, network.giving_fund_token.address, 1_000_000)

        result = await orchestrator.execute(add_funds_action(network, 1_000_000), signer, OWNER)

        assert result.state == FundingState.FAILED
        assert result.failed_step == "EXECUTING"
        assert isinstance(result.error, ExecutionReverted)
        assert "exceeds balance" in result.error.message
        assert not result.inconclusive

    @pytest.mark.asyncio
    async def test_raise_for_failure(self, ledger, orchestrator, signer) -> None:
        ledger.fail_reads = 1
        result = await orchestrator.execute(add_funds_action(ledger.network, 1), signer, OWNER)

        with pytest.raises(LedgerUnavailable):
            result.raise_for_failure()

    @pytest.mark.asyncio
    async def test_correlation_id_is_kept(self, ledger, orchestrator, signer) -> None:
        result = await orchestrator.execute(
            create_bespoke_fund_action(ledger.network, "Ocean", "OCN"),
            signer, OWNER, correlation_id="cid-123"
        )
        assert result.correlation_id == "cid-123"


class TestValuelessActions:

    @pytest.mark.asyncio
    async def test_create_bespoke_fund(self, ledger, orchestrator, signer) -> None:
        result = await orchestrator.execute(
            create_bespoke_fund_action(ledger.network, "Ocean Cleanup", "OCN"), signer, OWNER
        )

        assert result.succeeded
        assert result.trace == ["write-execute", "await-execute"]
        assert result.return_value == sim_address(0x1000)
        assert [t.new_state for t in result.transitions] == [
            FundingState.EXECUTING, FundingState.CONFIRMED
        ]

    @pytest.mark.asyncio
    async def test_matching_fund_expiry_must_be_future(self, ledger, orchestrator, signer) -> None:
        past = await orchestrator.execute(
            create_matching_fund_action(ledger.network, "Match", "MCH", NOW - 1), signer, OWNER
        )
        future = await orchestrator.execute(
            create_matching_fund_action(ledger.network, "Match", "MCH", NOW + 86400), signer, OWNER
        )

        assert past.state == FundingState.FAILED
        assert future.succeeded

    @pytest.mark.asyncio
    async def test_increase_funding_updates_percentage(self, ledger, orchestrator, signer) -> None:
        network = ledger.network
        created = await orchestrator.execute(
            create_bespoke_fund_action(network, "Ocean", "OCN"), signer, OWNER
        )
        fund_address = created.return_value
        ledger.credit(network.giving_fund_token, OWNER, 8_000_000)

        result = await orchestrator.execute(
            increase_funding_action(network, fund_address, 3_000_000), signer, OWNER
        )

        assert result.succeeded
        assert result.trace == AUTHORIZE_TRACE
        fund = await FundRegistry(ledger, network).get_fund(fund_address, FundKind.BESPOKE)
        assert fund.funded_amount == 3_000_000
        assert fund.percentage_funded == "100"


# =============================================================================
# BOUNDED CONFIRMATION
# =============================================================================

class TestConfirmationTimeout:

    @pytest.mark.asyncio
    async def test_execute_timeout_is_inconclusive(self, ledger, signer) -> None:
        network = ledger.network
        ledger.credit(network.stablecoin, OWNER, 1_000_000)
        ledger.set_allowance(network.stablecoin, OWNER, network.giving_fund_token.address, 1_000_000)
        ledger.stall_functions.add("mint")
        orchestrator = FundingOrchestrator(ledger, ledger, confirmation_timeout=0.05)

        result = await orchestrator.execute(add_funds_action(network, 1_000_000), signer, OWNER)

        assert result.state == FundingState.FAILED
        assert result.failed_step == "EXECUTING"
        assert result.inconclusive
        assert isinstance(result.error, ConfirmationTimeout)
        assert result.error.code == ErrorCode.CONFIRMATION_TIMEOUT
        assert result.error.transaction_hash.startswith("0x")

    @pytest.mark.asyncio
    async def test_authorization_timeout_never_executes(self, ledger, signer) -> None:
        ledger.credit(ledger.network.stablecoin, OWNER, 1_000_000)
        ledger.stall_functions.add("approve")
        orchestrator = FundingOrchestrator(ledger, ledger, confirmation_timeout=0.05)

        result = await orchestrator.execute(add_funds_action(ledger.network, 1_000_000), signer, OWNER)

        assert result.failed_step == "AUTHORIZING"
        assert result.inconclusive
        assert isinstance(result.error, ConfirmationTimeout)
        assert [w.function_name for w in ledger.writes()] == ["approve"]

    def test_timeout_must_be_positive(self, ledger) -> None:
        with pytest.raises(ValueError):
            FundingOrchestrator(ledger, ledger, confirmation_timeout=0)


# =============================================================================
# SIGNER VARIANTS
# =============================================================================

class TestSignerVariants:

    @pytest.mark.asyncio
    async def test_direct_and_relayed_have_same_effect(self, signer, relayed_signer) -> None:
        balances = []
        for active in (signer, relayed_signer):
            ledger = InMemoryLedger.bootstrap(clock=lambda: NOW)
            ledger.credit(ledger.network.stablecoin, OWNER, 2_000_000)
            orchestrator = FundingOrchestrator(ledger, ledger)

            result = await orchestrator.execute(add_funds_action(ledger.network, 2_000_000), active, OWNER)

            assert result.succeeded
            assert {w.signer_mode for w in ledger.writes()} == {active.mode}
            balances.append((
                ledger.balance_of(ledger.network.giving_fund_token, OWNER),
                ledger.balance_of(ledger.network.stablecoin, OWNER),
                [(w.function_name, w.args) for w in ledger.writes()],
            ))

        assert balances[0] == balances[1]


# =============================================================================
# AUTHORIZATION ONLY
# =============================================================================

class TestEnsureAuthorization:

    @pytest.mark.asyncio
    async def test_stops_at_executing(self, ledger, orchestrator, signer) -> None:
        network = ledger.network
        result = await orchestrator.ensure_authorization(
            network.giving_fund_token, OWNER, network.gift_box.address, 9, signer
        )

        assert result.state == FundingState.EXECUTING
        assert result.cleared_to_execute
        assert not result.succeeded
        assert ledger.allowance_of(network.giving_fund_token, OWNER, network.gift_box.address) == 9

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, ledger, orchestrator, signer) -> None:
        ledger.fail_reads = 1
        network = ledger.network
        result = await orchestrator.ensure_authorization(
            network.giving_fund_token, OWNER, network.gift_box.address, 9, signer
        )

        assert result.state == FundingState.FAILED
        assert not result.cleared_to_execute


# =============================================================================
# CANCELLATION
# =============================================================================

class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_while_checking_allowance_writes_nothing(self, signer) -> None:
        ledger = SlowLedger.bootstrap(clock=lambda: NOW)
        ledger.credit(ledger.network.stablecoin, OWNER, 1_000_000)
        orchestrator = FundingOrchestrator(ledger, ledger)

        task = asyncio.ensure_future(
            orchestrator.execute(add_funds_action(ledger.network, 1_000_000), signer, OWNER)
        )
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert ledger.writes() == []

    @pytest.mark.asyncio
    async def test_cancel_during_submission_lets_write_settle(self, signer) -> None:
        ledger = SlowLedger.bootstrap(clock=lambda: NOW)
        orchestrator = FundingOrchestrator(ledger, ledger)

        task = asyncio.ensure_future(
            orchestrator.execute(create_bespoke_fund_action(ledger.network, "Ocean", "OCN"), signer, OWNER)
        )
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert [w.function_name for w in ledger.writes()] == ["createFund"]

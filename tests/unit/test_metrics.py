"""
Unit Tests for Funding Metrics

Reliability Level: FUNDS-CRITICAL

Key Test Cases:
- Counters and histogram move on record_* calls
- Orchestrated actions and batches record their outcomes
- Recording failures are logged, never raised
"""

from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from giftfund.funding.gift_issuer import GiftBatchIssuer
from giftfund.funding.models import Recipient
from giftfund.funding.orchestrator import FundingOrchestrator, add_funds_action
from giftfund.ledger.contracts import DirectSigner
from giftfund.ledger.request_signer import RequestSigner
from giftfund.ledger.sim_ledger import InMemoryLedger
from giftfund.observability import metrics


OWNER = "0x00000000000000000000000000000000000a11ce"


def sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestRecordFunctions:

    def test_funding_action(self) -> None:
        labels = {"action": "unit-test", "outcome": "CONFIRMED"}
        before = sample("giftfund_funding_actions_total", labels)

        metrics.record_funding_action("unit-test", "CONFIRMED", "cid-1")

        assert sample("giftfund_funding_actions_total", labels) == before + 1

    def test_authorization_and_gift(self) -> None:
        auth_before = sample("giftfund_authorizations_total", {"outcome": "unit-test"})
        gift_before = sample("giftfund_gifts_total", {"status": "unit-test"})

        metrics.record_authorization("unit-test")
        metrics.record_gift("unit-test")

        assert sample("giftfund_authorizations_total", {"outcome": "unit-test"}) == auth_before + 1
        assert sample("giftfund_gifts_total", {"status": "unit-test"}) == gift_before + 1

    def test_confirmation_wait_clamps_negative(self) -> None:
        labels = {"function": "unitTest"}
        count_before = sample("giftfund_confirmation_wait_seconds_count", labels)
        sum_before = sample("giftfund_confirmation_wait_seconds_sum", labels)

        metrics.record_confirmation_wait("unitTest", -3.0)

        assert sample("giftfund_confirmation_wait_seconds_count", labels) == count_before + 1
        assert sample("giftfund_confirmation_wait_seconds_sum", labels) == sum_before

    def test_failures_are_swallowed(self, caplog) -> None:
        with patch.object(metrics.FUNDING_ACTIONS, "labels", side_effect=RuntimeError("boom")):
            metrics.record_funding_action("x", "y")
        with patch.object(metrics.GIFTS, "labels", side_effect=RuntimeError("boom")):
            metrics.record_gift("x")

        assert "[OBS-001]" in caplog.text
        assert "[OBS-003]" in caplog.text


class TestRecordedByFlows:

    @pytest.mark.asyncio
    async def test_orchestrated_action(self) -> None:
        ledger = InMemoryLedger.bootstrap()
        network = ledger.network
        ledger.credit(network.stablecoin, OWNER, 5_000_000)
        signer = DirectSigner(OWNER, RequestSigner("test-key", "test-secret"))
        confirmed = {"action": "add-funds", "outcome": "CONFIRMED"}
        approved = {"outcome": "CONFIRMED"}
        before = sample("giftfund_funding_actions_total", confirmed)
        auth_before = sample("giftfund_authorizations_total", approved)

        result = await FundingOrchestrator(ledger, ledger).execute(
            add_funds_action(network, 5_000_000), signer, OWNER
        )

        assert result.succeeded
        assert sample("giftfund_funding_actions_total", confirmed) == before + 1
        assert sample("giftfund_authorizations_total", approved) == auth_before + 1

    @pytest.mark.asyncio
    async def test_batch_statuses(self) -> None:
        ledger = InMemoryLedger.bootstrap()
        ledger.credit(ledger.network.giving_fund_token, OWNER, 10_000_000)
        signer = DirectSigner(OWNER, RequestSigner("test-key", "test-secret"))
        issuer = GiftBatchIssuer(FundingOrchestrator(ledger, ledger), ledger.network)
        issued_before = sample("giftfund_gifts_total", {"status": "ISSUED"})
        skipped_before = sample("giftfund_gifts_total", {"status": "SKIPPED"})

        await issuer.issue_batch(ledger.network.giving_fund_token, [
            Recipient("Ada", "L", "ada@example.com", "", "1"),
            Recipient("Bob", "B", "bob@example.com", "", "-1"),
        ], signer, OWNER)

        assert sample("giftfund_gifts_total", {"status": "ISSUED"}) == issued_before + 1
        assert sample("giftfund_gifts_total", {"status": "SKIPPED"}) == skipped_before + 1

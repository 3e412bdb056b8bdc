"""
============================================================================
Gift Fund Orchestrator v1.0.0
Session Wiring - One Network Context, One Ledger
============================================================================

Builds everything a session needs from GiftFundConfig:

    DRY_RUN  -> InMemoryLedger with a simulated deployment
    LIVE     -> LedgerGatewayClient + contract addresses from the config

The NetworkContext is created here once and handed to every component.

============================================================================
"""

from dataclasses import dataclass
from typing import Optional
import logging

from giftfund.config import GiftFundConfig
from giftfund.funding.fund_registry import FundRegistry
from giftfund.funding.gift_issuer import GiftBatchIssuer
from giftfund.funding.orchestrator import FundingOrchestrator
from giftfund.ledger.backoff import ExponentialBackoff
from giftfund.ledger.contracts import NetworkContext
from giftfund.ledger.gateway_client import LedgerGatewayClient
from giftfund.ledger.interfaces import Ledger
from giftfund.ledger.sim_ledger import InMemoryLedger

logger = logging.getLogger(__name__)


@dataclass
class GiftFundSession:
    """Components sharing one ledger and one network context."""
    config: GiftFundConfig
    network: NetworkContext
    ledger: Ledger
    orchestrator: FundingOrchestrator
    issuer: GiftBatchIssuer
    registry: FundRegistry

    @property
    def is_dry_run(self) -> bool:
        return isinstance(self.ledger, InMemoryLedger)


def build_ledger(config: GiftFundConfig) -> Ledger:
    """Pick the ledger adapter for the configured mode."""
    if config.is_live:
        return LedgerGatewayClient(
            base_url=config.gateway_url,
            chain_id=config.chain_id,
            read_retries=config.read_retries,
            poll_interval=config.poll_interval_seconds,
            max_poll_attempts=config.max_poll_attempts,
        )

    logger.info("[GIFT-SESSION] DRY_RUN mode | using in-memory ledger")
    return InMemoryLedger.bootstrap(
        chain_id=config.chain_id,
        token_decimals=config.token_decimals,
    )


def build_session(
    config: GiftFundConfig,
    ledger: Optional[Ledger] = None
) -> GiftFundSession:
    """
    Wire a session.

    In LIVE mode the gateway client retries reads itself, so the allowance
    gate reads once. In DRY_RUN the gate carries the configured retries.
    """
    ledger = ledger or build_ledger(config)

    if isinstance(ledger, InMemoryLedger):
        network = ledger.network
        gate_retries = config.read_retries
    else:
        network = NetworkContext.from_addresses(
            config.chain_id, config.contract_addresses, config.token_decimals
        )
        gate_retries = 1

    orchestrator = FundingOrchestrator(
        reader=ledger,
        writer=ledger,
        confirmation_timeout=config.confirmation_timeout_seconds,
        read_retries=gate_retries,
        backoff=ExponentialBackoff(),
    )

    return GiftFundSession(
        config=config,
        network=network,
        ledger=ledger,
        orchestrator=orchestrator,
        issuer=GiftBatchIssuer(orchestrator, network, code_format=config.code_format),
        registry=FundRegistry(ledger, network),
    )

# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Ledger Module - Remote Ledger Connectivity
# ============================================================================
#
# Reliability Level: FUNDS-CRITICAL
# Purpose: Typed contract handles, ledger capabilities and their adapters
#
# Components:
#   - DecimalGateway: Human amounts <-> integer base units
#   - ContractRef / NetworkContext: Deployment handles for one session
#   - DirectSigner / RelayedSigner: The two execution modes
#   - LedgerReader / LedgerWriter: Capabilities the funding pipeline uses
#   - LedgerGatewayClient: LIVE adapter (httpx)
#   - InMemoryLedger: DRY_RUN adapter
#
# ============================================================================

from giftfund.ledger.decimal_gateway import DecimalGateway, parse_units, format_units
from giftfund.ledger.backoff import ExponentialBackoff
from giftfund.ledger.request_signer import RequestSigner, MissingCredentialsError
from giftfund.ledger.contracts import (
    ContractName,
    ContractRef,
    NetworkContext,
    RelaySession,
    DirectSigner,
    RelayedSigner,
    Signer,
    signer_from_environment,
)
from giftfund.ledger.interfaces import (
    ReceiptStatus,
    TransactionHandle,
    Receipt,
    LedgerReader,
    LedgerWriter,
    Ledger,
)
from giftfund.ledger.gateway_client import LedgerGatewayClient
from giftfund.ledger.sim_ledger import InMemoryLedger

__all__ = [
    'DecimalGateway',
    'parse_units',
    'format_units',
    'ExponentialBackoff',
    'RequestSigner',
    'MissingCredentialsError',
    'ContractName',
    'ContractRef',
    'NetworkContext',
    'RelaySession',
    'DirectSigner',
    'RelayedSigner',
    'Signer',
    'signer_from_environment',
    'ReceiptStatus',
    'TransactionHandle',
    'Receipt',
    'LedgerReader',
    'LedgerWriter',
    'Ledger',
    'LedgerGatewayClient',
    'InMemoryLedger',
]

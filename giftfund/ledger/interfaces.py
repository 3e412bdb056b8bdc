"""
============================================================================
Gift Fund Orchestrator v1.0.0
Ledger Capabilities - Read / Write Interfaces
============================================================================

The funding pipeline depends on two narrow capabilities instead of a
concrete client:

    LedgerReader.read(contract, function_name, args) -> value
    LedgerWriter.write(contract, function_name, args, signer) -> TransactionHandle
    LedgerWriter.await_confirmation(handle) -> Receipt

Implementations:
    - LedgerGatewayClient (giftfund.ledger.gateway_client) - LIVE
    - InMemoryLedger (giftfund.ledger.sim_ledger) - DRY_RUN and tests

Error contract:
    - An unreachable ledger raises LedgerUnavailable
    - A mined but reverted write is NOT an exception: the Receipt reports
      status=REVERTED and the caller decides what that means

============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from giftfund.ledger.contracts import ContractRef, Signer


class ReceiptStatus(Enum):
    """Final status of a mined transaction."""
    SUCCESS = "SUCCESS"
    REVERTED = "REVERTED"


@dataclass(frozen=True)
class TransactionHandle:
    """
    A submitted (not yet confirmed) write.

    Attributes:
        transaction_hash: Ledger transaction id
        contract: Target contract
        function_name: Called function
        signer_mode: "direct" or "relayed"
    """
    transaction_hash: str
    contract: ContractRef
    function_name: str
    signer_mode: str = "direct"


@dataclass(frozen=True)
class Receipt:
    """
    Outcome of a confirmed transaction.

    return_value carries what the call produced when the gateway decodes it
    (new fund address for createFund, gift id for createGift).
    """
    transaction_hash: str
    status: ReceiptStatus
    block_number: Optional[int] = None
    return_value: Any = None
    revert_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS


class LedgerReader(ABC):
    """Read capability over the remote ledger."""

    @abstractmethod
    async def read(
        self,
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any] = ()
    ) -> Any:
        """
        Call a view function.

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
        """


class LedgerWriter(ABC):
    """Write capability: submit through a signer and confirm."""

    @abstractmethod
    async def write(
        self,
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any],
        signer: Signer
    ) -> TransactionHandle:
        """
        Submit a state-changing call.

        Both signer variants produce the same on-ledger effect for the same
        (contract, function_name, args) triple.

        Raises:
            LedgerUnavailable: If the submission could not be delivered
        """

    @abstractmethod
    async def await_confirmation(self, handle: TransactionHandle) -> Receipt:
        """
        Wait until the transaction is mined.

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
            ConfirmationTimeout: If the implementation's own bound is exceeded
        """


class Ledger(LedgerReader, LedgerWriter):
    """Convenience base for implementations providing both capabilities."""


@dataclass
class CallRecord:
    """One call observed by a recording ledger."""
    kind: str
    contract: ContractRef
    function_name: str
    args: tuple = field(default_factory=tuple)
    signer_mode: Optional[str] = None


__all__ = [
    "ReceiptStatus",
    "TransactionHandle",
    "Receipt",
    "LedgerReader",
    "LedgerWriter",
    "Ledger",
    "CallRecord",
]

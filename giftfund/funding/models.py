"""
============================================================================
Gift Fund Orchestrator v1.0.0
Funding Data Model
============================================================================

Reliability Level: FUNDS-CRITICAL
Decimal Integrity: Ledger amounts are int base units, human amounts Decimal

Nothing here is persisted locally. Funds and allowances are refreshed from
the ledger on every read; allowance records in particular are never cached.

============================================================================
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from giftfund.funding.percentage import percentage_funded
from giftfund.ledger.decimal_gateway import DecimalGateway


class FundKind(Enum):
    """Sub-fund flavours created by the two fund factories."""
    BESPOKE = "BESPOKE"
    MATCHING = "MATCHING"


@dataclass(frozen=True)
class Fund:
    """
    A giving sub-fund backed by a fund token.

    funded_amount may exceed total_issuable; display code must cope.
    """
    address: str
    creator: str
    display_name: str
    symbol: str
    created_at: int
    total_issuable: int
    funded_amount: int
    kind: FundKind
    expires_at: Optional[int] = None

    @property
    def percentage_funded(self) -> str:
        return percentage_funded(self.funded_amount, self.total_issuable)


@dataclass(frozen=True)
class AllowanceRecord:
    """Spending authorization read from the token contract (transient)."""
    owner: str
    spender: str
    amount: int


@dataclass(frozen=True)
class PendingTransfer:
    """A requested move of value before it hits the ledger."""
    target_fund: str
    requested_amount: Decimal
    resolved_base_units: int

    @classmethod
    def resolve(
        cls,
        target_fund: str,
        requested: Union[str, int, Decimal],
        decimals: int,
        correlation_id: Optional[str] = None
    ) -> "PendingTransfer":
        """
        Pin a human amount to base units before any ledger call.

        Raises:
            ValueError: On unconvertible or sub-base-unit amounts
        """
        gateway = DecimalGateway(decimals)
        return cls(
            target_fund=target_fund,
            requested_amount=gateway.to_decimal(requested, correlation_id),
            resolved_base_units=gateway.parse_units(requested, correlation_id),
        )


@dataclass(frozen=True)
class Recipient:
    """
    One row of a recipient batch.

    gift_amount stays raw text; the issuer decides whether it is usable.
    """
    first_name: str
    last_name: str
    email: str
    phone_number: str
    gift_amount: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Gift:
    """A confirmed gift on the ledger."""
    fund_token: str
    amount_base_units: int
    redeem_code: str
    fund_kind: Optional[FundKind]
    gift_id: str
    transaction_hash: str

    def __post_init__(self) -> None:
        if self.amount_base_units <= 0:
            raise ValueError(
                f"Gift amount must be positive, got {self.amount_base_units}"
            )

    def __repr__(self) -> str:
        # Bearer token stays out of reprs and therefore out of logs
        return (
            f"Gift(gift_id={self.gift_id!r}, fund_token={self.fund_token!r}, "
            f"amount_base_units={self.amount_base_units}, redeem_code='[REDACTED]')"
        )

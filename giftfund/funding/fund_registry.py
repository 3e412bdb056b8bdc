"""
============================================================================
Gift Fund Orchestrator v1.0.0
Fund Registry - Ledger Reads for Funds and Balances
============================================================================

Reliability Level: READ-ONLY
Side Effects: Ledger reads only

Builds Fund views from the factories on every call. Nothing is cached:

    getUserFunds(owner)        on the factory -> fund token addresses
    getFundInfo(fund)          on the factory -> creator, name, symbol,
                                                 createdAt, exists, ...
    totalSupply()              on the fund token -> total issuable
    balanceOf(fund)            on the giving fund token -> funded amount

============================================================================
"""

from typing import Any, List, Optional, Sequence
import logging

from giftfund.funding.models import Fund, FundKind
from giftfund.ledger.contracts import ContractRef, NetworkContext
from giftfund.ledger.decimal_gateway import DecimalGateway
from giftfund.ledger.interfaces import LedgerReader

logger = logging.getLogger(__name__)


# getFundInfo tuple positions
_INFO_CREATOR = 0
_INFO_NAME = 1
_INFO_SYMBOL = 2
_INFO_CREATED_AT = 3
_INFO_EXISTS = 4
_INFO_EXPIRES_AT = 6


def _field(info: Sequence[Any], position: int, default: Any = None) -> Any:
    return info[position] if len(info) > position else default


class FundRegistry:
    """
    Read-side view over the fund factories.

    Example Usage:
        registry = FundRegistry(ledger, network)
        funds = await registry.list_user_funds(owner, FundKind.BESPOKE)
        for fund in funds:
            print(fund.display_name, fund.percentage_funded)
    """

    def __init__(self, reader: LedgerReader, network: NetworkContext):
        self.reader = reader
        self.network = network
        self._decimals = DecimalGateway(network.token_decimals)

    def _factory(self, kind: FundKind) -> ContractRef:
        if kind == FundKind.MATCHING:
            return self.network.matching_factory
        return self.network.bespoke_factory

    async def fund_addresses(self, owner: str, kind: FundKind) -> List[str]:
        addresses = await self.reader.read(self._factory(kind), "getUserFunds", [owner])
        return list(addresses or [])

    async def get_fund(self, fund_address: str, kind: FundKind) -> Optional[Fund]:
        """Read one fund; None if the factory does not know it."""
        info = await self.reader.read(self._factory(kind), "getFundInfo", [fund_address])
        if not info or not _field(info, _INFO_EXISTS, True):
            logger.warning(
                "[GIFT-REG] Fund not found | address=%s | kind=%s", fund_address, kind.value
            )
            return None

        fund_token = ContractRef.token(fund_address, str(_field(info, _INFO_NAME, "")))
        total_issuable = int(await self.reader.read(fund_token, "totalSupply", []))
        funded_amount = int(await self.reader.read(
            self.network.giving_fund_token, "balanceOf", [fund_address]
        ))

        expires_at = None
        if kind == FundKind.MATCHING:
            expires_at = int(_field(info, _INFO_EXPIRES_AT, 0)) or None

        return Fund(
            address=fund_address,
            creator=str(_field(info, _INFO_CREATOR, "")),
            display_name=str(_field(info, _INFO_NAME, "")),
            symbol=str(_field(info, _INFO_SYMBOL, "")),
            created_at=int(_field(info, _INFO_CREATED_AT, 0)),
            total_issuable=total_issuable,
            funded_amount=funded_amount,
            kind=kind,
            expires_at=expires_at,
        )

    async def list_user_funds(self, owner: str, kind: FundKind) -> List[Fund]:
        """All funds of one kind created by `owner`, in factory order."""
        funds = []
        for address in await self.fund_addresses(owner, kind):
            fund = await self.get_fund(address, kind)
            if fund is not None:
                funds.append(fund)

        logger.info(
            "[GIFT-REG] Funds listed | owner=%s | kind=%s | count=%d",
            owner, kind.value, len(funds)
        )
        return funds

    async def giving_balance(self, owner: str) -> int:
        """Giving fund token balance in base units."""
        return int(await self.reader.read(
            self.network.giving_fund_token, "balanceOf", [owner]
        ))

    async def formatted_giving_balance(self, owner: str) -> str:
        return self._decimals.format_units(await self.giving_balance(owner))

    async def token_balance(self, token: ContractRef, owner: str) -> int:
        return int(await self.reader.read(token, "balanceOf", [owner]))

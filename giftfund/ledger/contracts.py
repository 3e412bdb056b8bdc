"""
============================================================================
Gift Fund Orchestrator v1.0.0
Contract References, Network Context and Signers
============================================================================

Strongly typed handles passed between components:

    ContractRef     - one deployed contract (name, address, ABI schema id)
    NetworkContext  - every contract the session talks to, built once per
                      session by the caller and threaded through calls
    Signer          - DirectSigner | RelayedSigner, the two execution modes
                      a connected wallet can supply

Both signer variants accept the same (contract, function, args) triple and
must produce the same on-ledger effect. They differ only in who pays gas
and how the transaction reaches the ledger.

============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union
import logging
import os

from giftfund.errors import ConfigurationError
from giftfund.ledger.decimal_gateway import DEFAULT_TOKEN_DECIMALS
from giftfund.ledger.request_signer import RequestSigner

logger = logging.getLogger(__name__)


# =============================================================================
# Contract Names
# =============================================================================

class ContractName:
    """Canonical names for the contracts in a deployment."""
    STABLECOIN = "Stablecoin"
    GIVING_FUND_TOKEN = "GivingFundToken"
    BESPOKE_FUND_FACTORY = "BespokeFundTokenFactory"
    MATCHING_FUND_FACTORY = "MatchingFundTokenFactory"
    GIFT_BOX = "GiftBox"


# Environment variable suffix for each contract address
CONTRACT_ENV_KEYS: Dict[str, str] = {
    ContractName.STABLECOIN: "STABLECOIN",
    ContractName.GIVING_FUND_TOKEN: "GIVING_FUND_TOKEN",
    ContractName.BESPOKE_FUND_FACTORY: "BESPOKE_FUND_FACTORY",
    ContractName.MATCHING_FUND_FACTORY: "MATCHING_FUND_FACTORY",
    ContractName.GIFT_BOX: "GIFT_BOX",
}

# ABI schema ids understood by the ledger gateway
ABI_ERC20 = "erc20"
ABI_BY_CONTRACT: Dict[str, str] = {
    ContractName.STABLECOIN: ABI_ERC20,
    ContractName.GIVING_FUND_TOKEN: "giving-fund-token",
    ContractName.BESPOKE_FUND_FACTORY: "bespoke-fund-factory",
    ContractName.MATCHING_FUND_FACTORY: "matching-fund-factory",
    ContractName.GIFT_BOX: "gift-box",
}


# =============================================================================
# Contract Reference
# =============================================================================

@dataclass(frozen=True)
class ContractRef:
    """
    A deployed contract.

    Attributes:
        address: Opaque ledger identifier
        abi_id: ABI schema id the gateway uses to encode calls
        name: Display name (informational only)
    """
    address: str
    abi_id: str
    name: str = ""

    def __post_init__(self) -> None:
        if not self.address or not self.address.strip():
            raise ValueError("ContractRef.address must be non-empty")
        if not self.abi_id:
            raise ValueError("ContractRef.abi_id must be non-empty")

    @classmethod
    def token(cls, address: str, name: str = "") -> "ContractRef":
        """Reference an ERC20-compatible token (e.g. a bespoke fund token)."""
        return cls(address=address, abi_id=ABI_ERC20, name=name)


# =============================================================================
# Network Context
# =============================================================================

@dataclass(frozen=True)
class NetworkContext:
    """
    Every contract a session talks to, keyed by ContractName.

    Constructed once per session and passed down explicitly. Nothing in the
    package looks contracts up by an ambient chain id.
    """
    chain_id: int
    contracts: Mapping[str, ContractRef]
    token_decimals: int = DEFAULT_TOKEN_DECIMALS

    def contract(self, name: str) -> ContractRef:
        """
        Look up a contract by name.

        Raises:
            ConfigurationError: If the deployment has no such contract
        """
        try:
            return self.contracts[name]
        except KeyError:
            raise ConfigurationError(
                f"No '{name}' contract configured for chain {self.chain_id}"
            ) from None

    @property
    def stablecoin(self) -> ContractRef:
        return self.contract(ContractName.STABLECOIN)

    @property
    def giving_fund_token(self) -> ContractRef:
        return self.contract(ContractName.GIVING_FUND_TOKEN)

    @property
    def bespoke_factory(self) -> ContractRef:
        return self.contract(ContractName.BESPOKE_FUND_FACTORY)

    @property
    def matching_factory(self) -> ContractRef:
        return self.contract(ContractName.MATCHING_FUND_FACTORY)

    @property
    def gift_box(self) -> ContractRef:
        return self.contract(ContractName.GIFT_BOX)

    @classmethod
    def from_addresses(
        cls,
        chain_id: int,
        addresses: Mapping[str, str],
        token_decimals: int = DEFAULT_TOKEN_DECIMALS
    ) -> "NetworkContext":
        """Build a context from a {ContractName: address} deployment map."""
        contracts = {
            name: ContractRef(
                address=address,
                abi_id=ABI_BY_CONTRACT.get(name, ABI_ERC20),
                name=name,
            )
            for name, address in addresses.items()
            if address
        }
        return cls(chain_id=chain_id, contracts=contracts, token_decimals=token_decimals)

    @classmethod
    def from_environment(cls, chain_id: int, token_decimals: int) -> "NetworkContext":
        """
        Read contract addresses from GIFTFUND_CONTRACT_<NAME> variables.

        Contracts left unset are absent from the context; asking for one
        later raises ConfigurationError.
        """
        addresses = {
            name: os.getenv(f"GIFTFUND_CONTRACT_{suffix}", "").strip()
            for name, suffix in CONTRACT_ENV_KEYS.items()
        }
        context = cls.from_addresses(chain_id, addresses, token_decimals)
        logger.info(
            f"[GIFT-NET] Network context loaded | chain_id={chain_id} | "
            f"contracts={sorted(context.contracts)}"
        )
        return context


# =============================================================================
# Signers
# =============================================================================

@dataclass(frozen=True)
class RelaySession:
    """Smart-wallet session issued by the wallet provider."""
    session_token: str = field(repr=False)
    smart_wallet_address: str = ""


@dataclass(frozen=True)
class DirectSigner:
    """An externally owned identity that signs and pays for its own writes."""
    address: str
    credentials: RequestSigner = field(repr=False)

    @property
    def identity(self) -> str:
        return self.address

    @property
    def mode(self) -> str:
        return "direct"


@dataclass(frozen=True)
class RelayedSigner:
    """A smart wallet whose writes are relayed (gas sponsored)."""
    session: RelaySession

    @property
    def identity(self) -> str:
        return self.session.smart_wallet_address

    @property
    def mode(self) -> str:
        return "relayed"


Signer = Union[DirectSigner, RelayedSigner]


def signer_from_environment(address: Optional[str] = None) -> Signer:
    """
    Pick the signer the connected wallet supplies.

    A relay session token wins when present (smart wallet connected),
    otherwise direct credentials are required.

    Raises:
        ConfigurationError: If neither execution mode is configured
    """
    session_token = os.getenv("GIFTFUND_RELAY_SESSION_TOKEN", "").strip()
    address = address or os.getenv("GIFTFUND_SIGNER_ADDRESS", "").strip()

    if session_token:
        logger.info(f"[GIFT-NET] Relayed signer selected | identity={address}")
        return RelayedSigner(RelaySession(session_token, smart_wallet_address=address))

    if not address:
        raise ConfigurationError(
            "GIFTFUND_SIGNER_ADDRESS or GIFTFUND_RELAY_SESSION_TOKEN must be set"
        )

    credentials = RequestSigner.from_environment()

    logger.info(f"[GIFT-NET] Direct signer selected | identity={address}")
    return DirectSigner(address=address, credentials=credentials)


__all__ = [
    "ContractName",
    "ContractRef",
    "NetworkContext",
    "RelaySession",
    "DirectSigner",
    "RelayedSigner",
    "Signer",
    "signer_from_environment",
    "ABI_ERC20",
]

"""
============================================================================
Gift Fund Orchestrator v1.0.0
In-Memory Ledger - DRY_RUN Simulation
============================================================================

Reliability Level: SIMULATION (no value moves)
Side Effects: None outside this process

Implements both ledger capabilities against an in-process model of the
deployment so DRY_RUN sessions and tests exercise the same code paths as
LIVE:

    Stablecoin / fund tokens   ERC20 balances, allowances, approve, transfer
    GivingFundToken            ERC20 + mint(amount) pulling stablecoin
    Bespoke factory            createFund(name, symbol), increaseFunding,
                               getUserFunds, getFundInfo
    Matching factory           createFund(name, symbol, expiration), reads
    GiftBox                    createGift(fundToken, amount, code)

A transferFrom without enough allowance or balance REVERTS the write (the
receipt says so) exactly like the real contracts. Every call is recorded in
call_log so tests can assert on the operation sequence.

Failure injection for tests:
    - fail_reads: next N reads raise LedgerUnavailable
    - revert_when: callback returning a revert reason for a write
    - stall_functions: writes whose confirmation never arrives

============================================================================
"""

import asyncio
import hashlib
import itertools
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from giftfund.errors import LedgerUnavailable
from giftfund.ledger.contracts import (
    ABI_BY_CONTRACT,
    ContractName,
    ContractRef,
    NetworkContext,
    Signer,
)
from giftfund.ledger.interfaces import (
    CallRecord,
    Ledger,
    Receipt,
    ReceiptStatus,
    TransactionHandle,
)

logger = logging.getLogger(__name__)


class _Revert(Exception):
    """Internal: a simulated contract call reverted."""


def sim_address(seed: int) -> str:
    """Deterministic 20-byte hex address for simulated contracts and funds."""
    return f"0x{seed:040x}"


class InMemoryLedger(Ledger):
    """
    Dry-run ledger implementing LedgerReader and LedgerWriter.

    Example Usage:
        ledger = InMemoryLedger.bootstrap()
        ledger.credit(ledger.network.stablecoin, "0xabc", 100_000_000)
        allowance = await ledger.read(ledger.network.stablecoin,
                                      "allowance", ["0xabc", spender])
    """

    DEFAULT_CHAIN_ID = 31337

    def __init__(
        self,
        network: NetworkContext,
        clock: Optional[Callable[[], int]] = None
    ):
        self.network = network
        self._clock = clock or (lambda: int(time.time()))

        self._balances: Dict[str, Dict[str, int]] = {}
        self._allowances: Dict[str, Dict[Tuple[str, str], int]] = {}
        self._supply: Dict[str, int] = {}
        self._funds: Dict[str, Dict[str, Any]] = {}
        self._user_funds: Dict[Tuple[str, str], List[str]] = {}
        self._gifts: Dict[int, Dict[str, Any]] = {}
        self._receipts: Dict[str, Receipt] = {}

        self._address_seq = itertools.count(0x1000)
        self._tx_seq = itertools.count(1)
        self._gift_seq = itertools.count(1)
        self._block = 0

        self.call_log: List[CallRecord] = []
        self.fail_reads = 0
        self.revert_when: Optional[Callable[[str, Tuple[Any, ...]], Optional[str]]] = None
        self.stall_functions: Set[str] = set()

        self._readers = {
            "allowance": self._read_allowance,
            "balanceOf": self._read_balance_of,
            "totalSupply": self._read_total_supply,
            "getUserFunds": self._read_user_funds,
            "getFundInfo": self._read_fund_info,
            "getGift": self._read_gift,
        }
        self._writers = {
            "approve": self._write_approve,
            "transfer": self._write_transfer,
            "mint": self._write_mint,
            "createFund": self._write_create_fund,
            "increaseFunding": self._write_increase_funding,
            "createGift": self._write_create_gift,
        }

        logger.info(
            "[GIFT-SIM] InMemoryLedger initialized | chain_id=%s | contracts=%s",
            network.chain_id, sorted(network.contracts)
        )

    @classmethod
    def bootstrap(
        cls,
        chain_id: int = DEFAULT_CHAIN_ID,
        token_decimals: int = 6,
        clock: Optional[Callable[[], int]] = None
    ) -> "InMemoryLedger":
        """Create a ledger with a full simulated deployment."""
        names = [
            ContractName.STABLECOIN,
            ContractName.GIVING_FUND_TOKEN,
            ContractName.BESPOKE_FUND_FACTORY,
            ContractName.MATCHING_FUND_FACTORY,
            ContractName.GIFT_BOX,
        ]
        addresses = {name: sim_address(i + 1) for i, name in enumerate(names)}
        network = NetworkContext.from_addresses(chain_id, addresses, token_decimals)
        return cls(network, clock=clock)

    # ------------------------------------------------------------------------
    # Test / dry-run seeding
    # ------------------------------------------------------------------------

    def credit(self, token: ContractRef, owner: str, amount: int) -> None:
        """Mint token balance out of thin air (simulation only)."""
        self._mint(token.address, owner, amount)

    def set_allowance(self, token: ContractRef, owner: str, spender: str, amount: int) -> None:
        self._allowances.setdefault(token.address, {})[(owner, spender)] = amount

    def balance_of(self, token: ContractRef, owner: str) -> int:
        return self._balances.get(token.address, {}).get(owner, 0)

    def allowance_of(self, token: ContractRef, owner: str, spender: str) -> int:
        return self._allowances.get(token.address, {}).get((owner, spender), 0)

    def gifts(self) -> List[Dict[str, Any]]:
        return [dict(gift, gift_id=gift_id) for gift_id, gift in self._gifts.items()]

    def writes(self) -> List[CallRecord]:
        return [record for record in self.call_log if record.kind == "write"]

    # ------------------------------------------------------------------------
    # Token bookkeeping
    # ------------------------------------------------------------------------

    def _mint(self, token: str, owner: str, amount: int) -> None:
        balances = self._balances.setdefault(token, {})
        balances[owner] = balances.get(owner, 0) + amount
        self._supply[token] = self._supply.get(token, 0) + amount

    def _move(self, token: str, sender: str, recipient: str, amount: int) -> None:
        balances = self._balances.setdefault(token, {})
        if balances.get(sender, 0) < amount:
            raise _Revert("ERC20: transfer amount exceeds balance")
        balances[sender] -= amount
        balances[recipient] = balances.get(recipient, 0) + amount

    def _transfer_from(self, token: str, owner: str, spender: str, recipient: str, amount: int) -> None:
        allowances = self._allowances.setdefault(token, {})
        current = allowances.get((owner, spender), 0)
        if current < amount:
            raise _Revert("ERC20: insufficient allowance")
        self._move(token, owner, recipient, amount)
        allowances[(owner, spender)] = current - amount

    @staticmethod
    def _amount(value: Any) -> int:
        amount = int(value)
        if amount < 0:
            raise _Revert("amount must be non-negative")
        return amount

    def _factory_kind(self, contract: ContractRef) -> str:
        if contract.abi_id == ABI_BY_CONTRACT[ContractName.MATCHING_FUND_FACTORY]:
            return "MATCHING"
        return "BESPOKE"

    # ------------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------------

    def _read_allowance(self, contract: ContractRef, args: Sequence[Any]) -> int:
        owner, spender = args
        return self._allowances.get(contract.address, {}).get((owner, spender), 0)

    def _read_balance_of(self, contract: ContractRef, args: Sequence[Any]) -> int:
        (owner,) = args
        return self._balances.get(contract.address, {}).get(owner, 0)

    def _read_total_supply(self, contract: ContractRef, args: Sequence[Any]) -> int:
        return self._supply.get(contract.address, 0)

    def _read_user_funds(self, contract: ContractRef, args: Sequence[Any]) -> List[str]:
        (owner,) = args
        return list(self._user_funds.get((contract.address, owner), []))

    def _read_fund_info(self, contract: ContractRef, args: Sequence[Any]) -> List[Any]:
        (fund_address,) = args
        fund = self._funds.get(fund_address)
        if fund is None or fund["factory"] != contract.address:
            return ["", "", "", 0, False, 0, 0]
        return [
            fund["creator"],
            fund["name"],
            fund["symbol"],
            fund["created_at"],
            True,
            self._balances.get(self.network.giving_fund_token.address, {}).get(fund_address, 0),
            fund["expires_at"] or 0,
        ]

    def _read_gift(self, contract: ContractRef, args: Sequence[Any]) -> List[Any]:
        (gift_id,) = args
        gift = self._gifts.get(int(gift_id))
        if gift is None:
            return ["", "", 0, False]
        return [gift["sender"], gift["fund_token"], gift["amount"], gift["redeemed"]]

    async def read(
        self,
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any] = ()
    ) -> Any:
        self.call_log.append(CallRecord("read", contract, function_name, tuple(args)))

        if self.fail_reads > 0:
            self.fail_reads -= 1
            logger.warning(
                "[GIFT-SIM] Injected read failure | function=%s | remaining=%d",
                function_name, self.fail_reads
            )
            raise LedgerUnavailable(f"Simulated outage reading {function_name}")

        reader = self._readers.get(function_name)
        if reader is None:
            raise LedgerUnavailable(f"Unknown view function '{function_name}'")
        return reader(contract, args)

    # ------------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------------

    def _write_approve(self, contract: ContractRef, sender: str, args: Sequence[Any]) -> bool:
        spender, amount = args
        self._allowances.setdefault(contract.address, {})[(sender, spender)] = self._amount(amount)
        return True

    def _write_transfer(self, contract: ContractRef, sender: str, args: Sequence[Any]) -> bool:
        recipient, amount = args
        self._move(contract.address, sender, recipient, self._amount(amount))
        return True

    def _write_mint(self, contract: ContractRef, sender: str, args: Sequence[Any]) -> int:
        (amount,) = args
        amount = self._amount(amount)
        self._transfer_from(
            self.network.stablecoin.address, sender, contract.address, contract.address, amount
        )
        self._mint(contract.address, sender, amount)
        return amount

    def _write_create_fund(self, contract: ContractRef, sender: str, args: Sequence[Any]) -> str:
        kind = self._factory_kind(contract)
        if kind == "MATCHING":
            name, symbol, expiration = args
            expires_at = int(expiration)
            if expires_at <= self._clock():
                raise _Revert("expiration must be in the future")
        else:
            name, symbol = args
            expires_at = None

        if not name or not symbol:
            raise _Revert("name and symbol are required")

        fund_address = sim_address(next(self._address_seq))
        self._funds[fund_address] = {
            "factory": contract.address,
            "creator": sender,
            "name": name,
            "symbol": symbol,
            "created_at": self._clock(),
            "kind": kind,
            "expires_at": expires_at,
        }
        self._supply.setdefault(fund_address, 0)
        self._user_funds.setdefault((contract.address, sender), []).append(fund_address)
        return fund_address

    def _write_increase_funding(self, contract: ContractRef, sender: str, args: Sequence[Any]) -> int:
        amount, fund_address = args
        amount = self._amount(amount)
        fund = self._funds.get(fund_address)
        if fund is None or fund["factory"] != contract.address:
            raise _Revert("unknown fund")
        self._transfer_from(
            self.network.giving_fund_token.address, sender, contract.address, fund_address, amount
        )
        self._mint(fund_address, sender, amount)
        return amount

    def _write_create_gift(self, contract: ContractRef, sender: str, args: Sequence[Any]) -> int:
        fund_token, amount, redeem_code = args
        amount = self._amount(amount)
        if amount == 0:
            raise _Revert("gift amount must be positive")
        if any(gift["code_hash"] == _code_hash(redeem_code) for gift in self._gifts.values()):
            raise _Revert("redeem code already used")
        self._transfer_from(fund_token, sender, contract.address, contract.address, amount)

        gift_id = next(self._gift_seq)
        self._gifts[gift_id] = {
            "sender": sender,
            "fund_token": fund_token,
            "amount": amount,
            "code_hash": _code_hash(redeem_code),
            "redeemed": False,
        }
        return gift_id

    def _next_tx_hash(self) -> str:
        seq = next(self._tx_seq)
        return "0x" + hashlib.sha256(f"giftfund-sim-{seq}".encode("utf-8")).hexdigest()

    async def write(
        self,
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any],
        signer: Signer
    ) -> TransactionHandle:
        args = tuple(args)
        self.call_log.append(
            CallRecord("write", contract, function_name, args, signer.mode)
        )

        writer = self._writers.get(function_name)
        if writer is None:
            raise LedgerUnavailable(f"Unknown write function '{function_name}'")

        tx_hash = self._next_tx_hash()
        self._block += 1

        reason = self.revert_when(function_name, args) if self.revert_when else None
        return_value = None
        if reason is None:
            try:
                return_value = writer(contract, signer.identity, args)
            except _Revert as e:
                reason = str(e)

        if reason is None:
            status = ReceiptStatus.SUCCESS
        else:
            status = ReceiptStatus.REVERTED
            logger.info(
                "[GIFT-SIM] Write reverted | function=%s | reason=%s | tx=%s",
                function_name, reason, tx_hash
            )

        self._receipts[tx_hash] = Receipt(
            transaction_hash=tx_hash,
            status=status,
            block_number=self._block,
            return_value=return_value,
            revert_reason=reason,
        )

        return TransactionHandle(
            transaction_hash=tx_hash,
            contract=contract,
            function_name=function_name,
            signer_mode=signer.mode,
        )

    async def await_confirmation(self, handle: TransactionHandle) -> Receipt:
        if handle.function_name in self.stall_functions:
            # Never confirms; the caller's bound decides when to give up
            await asyncio.Event().wait()

        receipt = self._receipts.get(handle.transaction_hash)
        if receipt is None:
            raise LedgerUnavailable(f"Unknown transaction {handle.transaction_hash}")
        return receipt


def _code_hash(redeem_code: str) -> str:
    return hashlib.sha256(str(redeem_code).encode("utf-8")).hexdigest()

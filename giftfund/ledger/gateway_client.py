"""
============================================================================
Gift Fund Orchestrator v1.0.0
Ledger Gateway Client - LIVE Read/Write Adapter
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: Network I/O to the ledger gateway

Talks to a JSON ledger gateway that encodes contract calls by ABI schema id
and relays them to the chain:

    POST {base}/v1/chains/{chain_id}/calls                  view call
    POST {base}/v1/chains/{chain_id}/transactions           direct signer write
    POST {base}/v1/chains/{chain_id}/relay                  relayed signer write
    GET  {base}/v1/chains/{chain_id}/receipts/{tx_hash}     receipt poll

RETRY POLICY:
    - Reads: bounded retries with ExponentialBackoff on transport errors,
      HTTP 429 and HTTP 5xx
    - Receipt polls: fixed interval, bounded attempts, then GIFT-CONF-001
    - Writes: submitted exactly once. A failed submission is surfaced as
      GIFT-LED-001 and never resent from here.

============================================================================
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from giftfund.errors import ConfirmationTimeout, LedgerUnavailable
from giftfund.ledger.backoff import ExponentialBackoff
from giftfund.ledger.contracts import ContractRef, DirectSigner, RelayedSigner, Signer
from giftfund.ledger.interfaces import (
    Ledger,
    Receipt,
    ReceiptStatus,
    TransactionHandle,
)

logger = logging.getLogger(__name__)


RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class LedgerGatewayClient(Ledger):
    """
    httpx-based implementation of both ledger capabilities.

    Example Usage:
        client = LedgerGatewayClient("https://gateway.example", chain_id=8453)
        allowance = await client.read(usdc, "allowance", [owner, spender])
        handle = await client.write(usdc, "approve", [spender, amount], signer)
        receipt = await client.await_confirmation(handle)
    """

    REQUEST_TIMEOUT = 30.0
    DEFAULT_READ_RETRIES = 3
    DEFAULT_POLL_INTERVAL_SECONDS = 2.0
    DEFAULT_MAX_POLL_ATTEMPTS = 60

    def __init__(
        self,
        base_url: str,
        chain_id: int,
        read_retries: int = DEFAULT_READ_RETRIES,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        backoff: Optional[ExponentialBackoff] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not base_url:
            raise ValueError("base_url must be non-empty")
        if read_retries < 1:
            raise ValueError(f"read_retries must be >= 1, got {read_retries}")
        if max_poll_attempts < 1:
            raise ValueError(f"max_poll_attempts must be >= 1, got {max_poll_attempts}")

        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.read_retries = read_retries
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._backoff = backoff or ExponentialBackoff()
        self._transport = transport

        logger.info(
            "[GIFT-GW] LedgerGatewayClient initialized | base_url=%s | chain_id=%s | "
            "read_retries=%d | poll_interval=%.1fs | max_poll_attempts=%d",
            self.base_url, chain_id, read_retries, poll_interval, max_poll_attempts
        )

    def _chain_path(self, suffix: str) -> str:
        return f"/v1/chains/{self.chain_id}{suffix}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.REQUEST_TIMEOUT,
            transport=self._transport,
        )

    @staticmethod
    def _call_payload(
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any]
    ) -> Dict[str, Any]:
        return {
            "contract": contract.address,
            "abi": contract.abi_id,
            "function": function_name,
            "args": list(args),
        }

    @staticmethod
    def _json_object(response: httpx.Response, what: str) -> Dict[str, Any]:
        """
        Decode a gateway response body as a JSON object.

        Raises:
            LedgerUnavailable: If the body is not JSON or not an object
        """
        try:
            data = response.json()
        except ValueError as e:
            raise LedgerUnavailable(
                f"{what}: malformed gateway response: {response.text[:200]!r}"
            ) from e
        if not isinstance(data, dict):
            raise LedgerUnavailable(
                f"{what}: expected a JSON object, got {type(data).__name__}"
            )
        return data

    # ------------------------------------------------------------------------
    # Read capability
    # ------------------------------------------------------------------------

    async def read(
        self,
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any] = ()
    ) -> Any:
        """
        Call a view function with bounded retries.

        Raises:
            LedgerUnavailable: After retries are exhausted or on a
                non-retryable gateway error
        """
        path = self._chain_path("/calls")
        payload = self._call_payload(contract, function_name, args)
        self._backoff.reset()
        last_error = ""

        for attempt in range(1, self.read_retries + 1):
            try:
                async with self._client() as client:
                    response = await client.post(path, json=payload)
            except httpx.RequestError as e:
                last_error = f"request error: {e}"
            else:
                if response.status_code == 200:
                    try:
                        data = self._json_object(response, f"Read {function_name}")
                    except LedgerUnavailable as e:
                        last_error = e.message
                    else:
                        self._backoff.reset()
                        return data.get("result")
                else:
                    last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                    if response.status_code not in RETRYABLE_STATUS_CODES:
                        break

            if attempt < self.read_retries:
                delay = self._backoff.get_delay()
                logger.warning(
                    "[GIFT-GW] Read failed, retrying | function=%s | attempt=%d/%d | "
                    "delay=%.2fs | error=%s",
                    function_name, attempt, self.read_retries, delay, last_error
                )
                await asyncio.sleep(delay)

        logger.error(
            "[GIFT-LED-001] Read failed | contract=%s | function=%s | error=%s",
            contract.address, function_name, last_error
        )
        raise LedgerUnavailable(
            f"Read {function_name} on {contract.address} failed: {last_error}"
        )

    # ------------------------------------------------------------------------
    # Write capability
    # ------------------------------------------------------------------------

    def _submission(
        self,
        signer: Signer,
        payload: Dict[str, Any]
    ) -> Tuple[str, Dict[str, str], str]:
        """
        Resolve path, headers and body for a signer.

        The call payload is identical for both variants; only the delivery
        route and authentication differ.
        """
        if isinstance(signer, DirectSigner):
            path = self._chain_path("/transactions")
            body = json.dumps({**payload, "from": signer.address}, sort_keys=True)
            headers = signer.credentials.sign_submission(path, signer.address, body)
        elif isinstance(signer, RelayedSigner):
            path = self._chain_path("/relay")
            body = json.dumps(
                {**payload, "smartWallet": signer.session.smart_wallet_address},
                sort_keys=True
            )
            headers = {"Authorization": f"Bearer {signer.session.session_token}"}
        else:
            raise TypeError(f"Unsupported signer type: {type(signer).__name__}")

        headers["Content-Type"] = "application/json"
        return path, headers, body

    async def write(
        self,
        contract: ContractRef,
        function_name: str,
        args: Sequence[Any],
        signer: Signer
    ) -> TransactionHandle:
        """
        Submit a write exactly once.

        Raises:
            LedgerUnavailable: If the gateway could not accept the submission
        """
        payload = self._call_payload(contract, function_name, args)
        path, headers, body = self._submission(signer, payload)

        try:
            async with self._client() as client:
                response = await client.post(path, headers=headers, content=body)
        except httpx.RequestError as e:
            logger.error(
                "[GIFT-LED-001] Write request failed | function=%s | mode=%s | error=%s",
                function_name, signer.mode, str(e)
            )
            raise LedgerUnavailable(f"Write {function_name} failed: {e}") from e

        if response.status_code not in (200, 201, 202):
            logger.error(
                "[GIFT-LED-001] Write rejected | function=%s | mode=%s | status=%d | "
                "response=%s",
                function_name, signer.mode, response.status_code, response.text[:200]
            )
            raise LedgerUnavailable(
                f"Write {function_name} rejected: HTTP {response.status_code}"
            )

        try:
            data = self._json_object(response, f"Write {function_name}")
        except LedgerUnavailable as e:
            logger.error(
                "[GIFT-LED-001] Write response unreadable | function=%s | mode=%s | "
                "error=%s",
                function_name, signer.mode, e.message
            )
            raise

        tx_hash = data.get("transactionHash") or data.get("hash")
        if not tx_hash:
            raise LedgerUnavailable(
                f"Write {function_name} accepted without a transaction hash"
            )

        logger.info(
            "[GIFT-GW] Write submitted | contract=%s | function=%s | mode=%s | tx=%s",
            contract.address, function_name, signer.mode, tx_hash
        )

        return TransactionHandle(
            transaction_hash=tx_hash,
            contract=contract,
            function_name=function_name,
            signer_mode=signer.mode,
        )

    async def _fetch_receipt(self, tx_hash: str) -> Optional[Receipt]:
        """Return the receipt, or None while the transaction is pending."""
        path = self._chain_path(f"/receipts/{tx_hash}")

        try:
            async with self._client() as client:
                response = await client.get(path)
        except httpx.RequestError as e:
            raise LedgerUnavailable(f"Receipt fetch failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise LedgerUnavailable(
                f"Receipt fetch failed: HTTP {response.status_code}"
            )

        data = self._json_object(response, "Receipt fetch")
        status = str(data.get("status", "")).upper()
        if status in ("", "PENDING"):
            return None

        return Receipt(
            transaction_hash=tx_hash,
            status=ReceiptStatus.SUCCESS if status == "SUCCESS" else ReceiptStatus.REVERTED,
            block_number=data.get("blockNumber"),
            return_value=data.get("returnValue"),
            revert_reason=data.get("revertReason"),
        )

    async def await_confirmation(self, handle: TransactionHandle) -> Receipt:
        """
        Poll for the receipt at a fixed interval.

        Transient poll failures are logged and polling continues; the bound
        is max_poll_attempts.

        Raises:
            ConfirmationTimeout: If no receipt appeared within the bound
        """
        tx_hash = handle.transaction_hash

        for attempt in range(1, self.max_poll_attempts + 1):
            try:
                receipt = await self._fetch_receipt(tx_hash)
            except LedgerUnavailable as e:
                logger.warning(
                    "[GIFT-GW] Receipt poll failed | tx=%s | attempt=%d/%d | error=%s",
                    tx_hash, attempt, self.max_poll_attempts, e.message
                )
                receipt = None

            if receipt is not None:
                logger.info(
                    "[GIFT-GW] Receipt | tx=%s | status=%s | block=%s",
                    tx_hash, receipt.status.value, receipt.block_number
                )
                return receipt

            if attempt < self.max_poll_attempts:
                await asyncio.sleep(self.poll_interval)

        logger.warning(
            "[GIFT-CONF-001] Receipt not found within bound | tx=%s | attempts=%d",
            tx_hash, self.max_poll_attempts
        )
        raise ConfirmationTimeout(
            f"No receipt for {tx_hash} after {self.max_poll_attempts} polls",
            transaction_hash=tx_hash
        )


# ============================================================================
# Reliability Audit
# ============================================================================
#
# [Reliability Audit]
# Write Idempotency: [Verified - single submission, no retry loop]
# Read Retries: [Bounded - read_retries with exponential backoff]
# Confirmation Wait: [Bounded - max_poll_attempts * poll_interval]
# Credential Hygiene: [Signature and bearer token never logged]
#
# ============================================================================

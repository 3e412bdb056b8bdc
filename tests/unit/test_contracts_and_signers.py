"""
Unit Tests for Contract References, Network Context and Signers

Key Test Cases:
- ContractRef validation and token refs
- NetworkContext lookups fail with GIFT-CFG-001 when a contract is missing
- signer_from_environment picks relayed over direct
- RequestSigner binds the chain path, signer address and body digest
- ExponentialBackoff growth, cap and reset
"""

import hashlib
import hmac
from unittest.mock import patch

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from giftfund.errors import ConfigurationError
from giftfund.ledger.backoff import ExponentialBackoff
from giftfund.ledger.contracts import (
    ABI_ERC20,
    ContractName,
    ContractRef,
    DirectSigner,
    NetworkContext,
    RelayedSigner,
    signer_from_environment,
)
from giftfund.ledger.request_signer import MissingCredentialsError, RequestSigner


OWNER = "0x00000000000000000000000000000000000a11ce"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in list(os.environ):
        if var.startswith("GIFTFUND_"):
            monkeypatch.delenv(var)


class TestContractRef:

    def test_requires_address(self) -> None:
        with pytest.raises(ValueError):
            ContractRef("  ", ABI_ERC20)

    def test_requires_abi(self) -> None:
        with pytest.raises(ValueError):
            ContractRef("0x1", "")

    def test_token_ref(self) -> None:
        ref = ContractRef.token("0xfund", "Ocean")
        assert ref.abi_id == ABI_ERC20
        assert ref.name == "Ocean"


class TestNetworkContext:

    def test_from_addresses(self) -> None:
        network = NetworkContext.from_addresses(8453, {
            ContractName.STABLECOIN: "0x1",
            ContractName.GIFT_BOX: "0x5",
            ContractName.MATCHING_FUND_FACTORY: "",
        })

        assert network.stablecoin.address == "0x1"
        assert network.gift_box.abi_id == "gift-box"
        assert ContractName.MATCHING_FUND_FACTORY not in network.contracts

    def test_missing_contract(self) -> None:
        network = NetworkContext.from_addresses(1, {})
        with pytest.raises(ConfigurationError) as exc_info:
            network.bespoke_factory
        assert "GIFT-CFG-001" in str(exc_info.value)

    def test_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("GIFTFUND_CONTRACT_GIVING_FUND_TOKEN", " 0x2 ")
        network = NetworkContext.from_environment(8453, 6)

        assert network.giving_fund_token.address == "0x2"
        assert list(network.contracts) == [ContractName.GIVING_FUND_TOKEN]


class TestSignerSelection:

    def test_relay_session_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("GIFTFUND_RELAY_SESSION_TOKEN", "token")
        monkeypatch.setenv("GIFTFUND_SIGNER_ADDRESS", OWNER)
        monkeypatch.setenv("GIFTFUND_API_KEY", "key")
        monkeypatch.setenv("GIFTFUND_API_SECRET", "secret")

        signer = signer_from_environment()

        assert isinstance(signer, RelayedSigner)
        assert signer.identity == OWNER
        assert signer.mode == "relayed"
        assert "token" not in repr(signer)

    def test_direct_signer(self, monkeypatch) -> None:
        monkeypatch.setenv("GIFTFUND_API_KEY", "key")
        monkeypatch.setenv("GIFTFUND_API_SECRET", "secret")

        signer = signer_from_environment(address=OWNER)

        assert isinstance(signer, DirectSigner)
        assert signer.identity == OWNER
        assert signer.mode == "direct"

    def test_nothing_configured(self) -> None:
        with pytest.raises(ConfigurationError):
            signer_from_environment()

    def test_direct_without_credentials(self) -> None:
        with pytest.raises(ConfigurationError):
            signer_from_environment(address=OWNER)


class TestRequestSigner:

    PATH = "/v1/chains/8453/transactions"

    def test_signature_covers_path_signer_and_body(self) -> None:
        signer = RequestSigner("api-key-123456", "secret")
        body = '{"a": 1}'
        headers = signer.sign_submission(self.PATH, "0xABCdef", body, timestamp=1700)

        message = "1700\n/v1/chains/8453/transactions\n0xabcdef\n" + hashlib.sha256(body.encode()).hexdigest()
        expected = hmac.new(b"secret", message.encode(), hashlib.sha512).hexdigest()
        assert headers == {
            "X-GIFTFUND-API-KEY": "api-key-123456",
            "X-GIFTFUND-SIGNER": "0xabcdef",
            "X-GIFTFUND-TIMESTAMP": "1700",
            "X-GIFTFUND-SIGNATURE": expected,
        }

    @pytest.mark.parametrize("path,address,body", [
        ("/v1/chains/1/transactions", OWNER, '{"a": 1}'),
        (PATH, "0x00000000000000000000000000000000000b0b00", '{"a": 1}'),
        (PATH, OWNER, '{"a": 2}'),
    ])
    def test_signature_bound_to_each_part(self, path, address, body) -> None:
        signer = RequestSigner("api-key-123456", "secret")
        baseline = signer.sign_submission(self.PATH, OWNER, '{"a": 1}', timestamp=1700)

        other = signer.sign_submission(path, address, body, timestamp=1700)

        assert other["X-GIFTFUND-SIGNATURE"] != baseline["X-GIFTFUND-SIGNATURE"]

    def test_signer_address_case_insensitive(self) -> None:
        signer = RequestSigner("api-key-123456", "secret")
        upper = signer.sign_submission(self.PATH, "0xABCDEF", "{}", timestamp=1)
        lower = signer.sign_submission(self.PATH, "0xabcdef", "{}", timestamp=1)
        assert upper == lower

    @pytest.mark.parametrize("path,address", [
        ("/relay", OWNER),
        (PATH, ""),
    ])
    def test_rejects_bad_submission(self, path, address) -> None:
        with pytest.raises(ValueError):
            RequestSigner("api-key-123456", "secret").sign_submission(path, address, "{}")

    def test_missing_credentials(self) -> None:
        with pytest.raises(MissingCredentialsError, match="GIFTFUND_API_SECRET") as exc_info:
            RequestSigner("api-key-123456", "")
        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.code == "GIFT-CFG-001"

    def test_repr_hides_credentials(self) -> None:
        text = repr(RequestSigner("api-key-123456", "secret"))
        assert "api-key-123456" not in text
        assert "secret" not in text


class TestExponentialBackoff:

    def test_growth_and_cap(self) -> None:
        backoff = ExponentialBackoff(base_delay=1, multiplier=2, max_delay=5, jitter=0)
        assert [backoff.get_delay() for _ in range(5)] == [1, 2, 4, 5, 5]
        assert backoff.attempt == 5

    def test_reset(self) -> None:
        backoff = ExponentialBackoff(base_delay=1, jitter=0)
        backoff.get_delay()
        backoff.get_delay()
        backoff.reset()
        assert backoff.peek_delay() == 1

    def test_jitter_bounded(self) -> None:
        backoff = ExponentialBackoff(base_delay=2, jitter=0.5)
        with patch("giftfund.ledger.backoff.random.random", return_value=1.0):
            assert backoff.get_delay() == 3.0

    @pytest.mark.parametrize("kwargs", [{"base_delay": -1}, {"jitter": 1.5}])
    def test_invalid(self, kwargs) -> None:
        with pytest.raises(ValueError):
            ExponentialBackoff(**kwargs)

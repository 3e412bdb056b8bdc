"""
Integration Tests for the Command Line Entry Point

Reliability Level: FUNDS-CRITICAL

Key Test Cases:
- Local commands (percentage, codes, template, parse-batch)
- Ledger commands run against the DRY_RUN ledger with a seeded balance
- Invalid amounts exit 2, configuration errors exit 1
- Fund listing shows a progress bar capped at 100%
- Gift issuance resolves the fund by kind and prints the kind on every gift
"""

import argparse
import re
from unittest.mock import MagicMock, patch

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

import main
from giftfund.config import GiftFundConfig
from giftfund.directory.nonprofit_client import Organization, SearchPage
from giftfund.funding.models import Fund, FundKind
from giftfund.funding.orchestrator import create_bespoke_fund_action, increase_funding_action
from giftfund.ledger.contracts import ContractRef, DirectSigner
from giftfund.ledger.request_signer import RequestSigner
from giftfund.session import build_session


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for var in list(os.environ):
        if var.startswith("GIFTFUND_"):
            monkeypatch.delenv(var)
    monkeypatch.setattr(main, "load_dotenv", lambda: False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def batch_file(tmp_path):
    path = tmp_path / "recipients.csv"
    path.write_text(
        "First Name,Last Name,Email,Phone Number,Gift Amount\n"
        "Ada,Lovelace,ada@example.com,555-0100,10\n"
        "Bob,Babbage,bob@example.com,555-0101,0\n"
        "short,row\n"
    )
    return path


async def funded_session():
    """DRY_RUN session with a bespoke fund holding 40 giving fund tokens."""
    session = build_session(GiftFundConfig())
    signer = DirectSigner(main.DRY_RUN_ADDRESS, RequestSigner("dry-run-key", "dry-run-secret"))
    main.seed_dry_run(session, signer.identity, "100")
    created = await session.orchestrator.execute(
        create_bespoke_fund_action(session.network, "Ocean", "OCN"), signer, signer.identity
    )
    await session.orchestrator.execute(
        increase_funding_action(session.network, created.return_value, 40_000_000), signer, signer.identity
    )
    return session, signer, created.return_value


class TestLocalCommands:

    def test_percentage(self, capsys) -> None:
        assert main.main(["percentage", "333", "1000"]) == 0
        assert capsys.readouterr().out.strip() == "33.3"

    def test_percentage_zero_available(self, capsys) -> None:
        assert main.main(["percentage", "5", "0"]) == 0
        assert capsys.readouterr().out.strip() == "0.00"

    def test_negative_percentage_exits_2(self, capsys) -> None:
        assert main.main(["percentage", "-1", "10"]) == 2
        assert "non-negative" in capsys.readouterr().err

    def test_codes(self, capsys) -> None:
        assert main.main(["codes", "--count", "3", "--format", "XXX-XXX"]) == 0
        codes = capsys.readouterr().out.split()
        assert len(codes) == len(set(codes)) == 3
        assert all(re.fullmatch(r"[A-Z0-9]{3}-[A-Z0-9]{3}", code) for code in codes)

    def test_template(self, capsys) -> None:
        assert main.main(["template"]) == 0
        assert capsys.readouterr().out == "First Name,Last Name,Email,Phone Number,Gift Amount\n"

    def test_parse_batch(self, capsys, batch_file) -> None:
        assert main.main(["parse-batch", str(batch_file)]) == 0
        out = capsys.readouterr().out
        assert "Ada Lovelace" in out
        assert "2 recipient(s)" in out


class TestLedgerCommands:

    def test_add_funds(self, capsys) -> None:
        assert main.main(["add-funds", "25.5"]) == 0
        out = capsys.readouterr().out
        assert "state:          CONFIRMED" in out
        assert "read-allowance -> write-authorize -> await-confirm -> write-execute -> await-execute" in out
        # Seeded 1000 plus 25.5 minted
        assert "giving balance: 1025.5" in out

    def test_add_funds_over_balance_fails(self, capsys) -> None:
        assert main.main(["--dry-run-balance", "1", "add-funds", "2"]) == 1
        out = capsys.readouterr().out
        assert "state:          FAILED" in out
        assert "failed step:    EXECUTING" in out

    def test_add_funds_too_precise_exits_2(self, capsys) -> None:
        assert main.main(["add-funds", "0.0000001"]) == 2
        assert "GIFT-DEC-002" in capsys.readouterr().err

    def test_create_matching_fund_requires_expiry(self, capsys) -> None:
        assert main.main(["create-fund", "matching", "Match", "MCH"]) == 2
        assert "--expires-at" in capsys.readouterr().err

    def test_create_bespoke_fund(self, capsys) -> None:
        assert main.main(["create-fund", "bespoke", "Ocean", "OCN"]) == 0
        assert "result:         0x" in capsys.readouterr().out

    def test_issue_gifts_requires_fund_token(self, capsys, batch_file) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main.main(["issue-gifts", str(batch_file)])
        assert exc_info.value.code == 2
        assert "--fund-token" in capsys.readouterr().err

    def test_issue_gifts_unknown_fund_exits_1(self, capsys, batch_file) -> None:
        code = main.main(["issue-gifts", str(batch_file), "--fund-token", "0xdead", "--kind", "matching"])

        assert code == 1
        assert "unknown matching fund 0xdead" in capsys.readouterr().err

    def test_list_funds_empty(self, capsys) -> None:
        assert main.main(["list-funds", "bespoke"]) == 0
        assert "0 bespoke fund(s)" in capsys.readouterr().out

    def test_live_without_confirmation_exits_1(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv("GIFTFUND_LEDGER_MODE", "LIVE")
        assert main.main(["list-funds", "bespoke"]) == 1
        assert "GIFT-CFG-001" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_list_funds_with_progress(self, capsys) -> None:
        session, signer, _ = await funded_session()

        code = await main.cmd_list_funds(session, signer, argparse.Namespace(kind="bespoke"), "cid")

        out = capsys.readouterr().out
        assert code == 0
        assert "Ocean" in out
        assert "40 OCN" in out
        assert "[####################] 100%" in out
        assert "1 bespoke fund(s)" in out

    @pytest.mark.asyncio
    async def test_issue_gifts_carries_fund_kind(self, capsys, batch_file) -> None:
        session, signer, fund_address = await funded_session()
        args = argparse.Namespace(
            file=str(batch_file), delimiter=",", fund_token=fund_address,
            kind="bespoke", sender="Grace", preview=True,
        )

        code = await main.cmd_issue_gifts(session, signer, args, "cid")

        out = capsys.readouterr().out
        assert code == 0
        assert "fund:           Ocean (OCN, BESPOKE)" in out
        assert "[ISSUED ] Ada Lovelace" in out
        assert "kind=BESPOKE" in out
        assert "[SKIPPED] Bob Babbage" in out
        assert "issued=1 failed=0 skipped=1" in out
        assert "To: ada@example.com" in out
        assert "Grace sent you a gift" in out
        assert session.ledger.balance_of(ContractRef.token(fund_address), signer.identity) == 30_000_000

    @pytest.mark.asyncio
    async def test_issue_gifts_kind_must_match_fund(self, capsys, batch_file) -> None:
        session, signer, fund_address = await funded_session()
        args = argparse.Namespace(
            file=str(batch_file), delimiter=",", fund_token=fund_address,
            kind="matching", sender=None, preview=False,
        )

        code = await main.cmd_issue_gifts(session, signer, args, "cid")

        assert code == 1
        assert f"unknown matching fund {fund_address}" in capsys.readouterr().err
        assert [w.function_name for w in session.ledger.writes()].count("createGift") == 0


class TestProgressBar:

    @pytest.mark.parametrize("funded,total,expected", [
        (0, 0, "[--------------------]"),
        (1, 3, "[######--------------]"),
        (30, 10, "[####################]"),
    ])
    def test_capped(self, funded, total, expected) -> None:
        fund = Fund("0xf", "0xa", "Ocean", "OCN", 0, total, funded, FundKind.BESPOKE)
        assert main.progress_bar(fund) == expected


class TestSearchNonprofits:

    def test_search_prints_page(self, capsys) -> None:
        page = SearchPage(
            organizations=[Organization(ein=123456789, name="Ocean Trust", city="Austin", state="TX", ntee_code="C32")],
            total_results=1,
            current_page=0,
            total_pages=1,
        )
        client = MagicMock()
        client.search.return_value = page

        with patch.object(main, "NonprofitDirectoryClient", return_value=client):
            assert main.main(["search-nonprofits", "ocean", "--state", "TX"]) == 0

        client.search.assert_called_once_with("ocean", page=0, state="TX", category=None)
        out = capsys.readouterr().out
        assert "Ocean Trust" in out
        assert "page 1/1 | 1 result(s)" in out

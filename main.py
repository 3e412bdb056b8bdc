#!/usr/bin/env python3
"""
============================================================================
Gift Fund Orchestrator v1.0.0
Command Line Entry Point
============================================================================

Reliability Level: FUNDS-CRITICAL
Traceability: Every ledger command runs under one correlation_id

COMMANDS:
    percentage FUNDED AVAILABLE          percentage funded (base units)
    codes [--count N] [--format F]       redeem codes
    template                             recipient batch template header
    parse-batch FILE                     parse a recipient batch
    add-funds AMOUNT                     approve stablecoin, mint giving fund
    create-fund KIND NAME SYMBOL         bespoke or matching fund
    increase-funding FUND (--amount A | --target-percent P)
    issue-gifts FILE --fund-token F [--kind K]
    list-funds KIND                      funds created by the signer
    search-nonprofits [QUERY]            nonprofit directory search

MODE:
    GIFTFUND_LEDGER_MODE=DRY_RUN (default) runs every ledger command against
    an in-memory ledger seeded with --dry-run-balance. LIVE requires
    GIFTFUND_LIVE_CONFIRMED=TRUE.

USAGE:
    python main.py issue-gifts recipients.csv --fund-token 0xFUND --kind bespoke --sender "Daisy"

============================================================================
"""

import argparse
import asyncio
import logging
import sys
import uuid
from decimal import Decimal
from typing import List, Optional

from dotenv import load_dotenv

from giftfund.config import GiftFundConfig
from giftfund.directory.nonprofit_client import (
    NTEE_MAJOR_GROUPS,
    NonprofitDirectoryClient,
    filter_organizations,
)
from giftfund.errors import GiftFundError
from giftfund.funding.gift_notice import notices_for_report
from giftfund.funding.models import Fund, FundKind, PendingTransfer
from giftfund.funding.orchestrator import (
    FundingResult,
    add_funds_action,
    create_bespoke_fund_action,
    create_matching_fund_action,
    increase_funding_action,
)
from giftfund.funding.percentage import (
    clamped_percentage_funded,
    funding_required,
    percentage_funded,
)
from giftfund.funding.recipient_parser import load_batch_file, recipient_template
from giftfund.funding.redeem_codes import generate_batch
from giftfund.ledger.contracts import DirectSigner, Signer, signer_from_environment
from giftfund.ledger.decimal_gateway import DecimalGateway
from giftfund.ledger.request_signer import RequestSigner
from giftfund.ledger.sim_ledger import InMemoryLedger
from giftfund.session import GiftFundSession, build_session
from giftfund.utils.formatting import format_amount, format_date, format_tx_hash

logger = logging.getLogger("GIFTFUND")

VERSION = "1.0.0"

DRY_RUN_ADDRESS = "0x00000000000000000000000000000000000000d1"


# =============================================================================
# Session Helpers
# =============================================================================

def resolve_signer(session: GiftFundSession) -> Signer:
    """
    Signer from the environment. DRY_RUN falls back to a local identity.

    Raises:
        ConfigurationError: In LIVE mode when no signer is configured
    """
    try:
        return signer_from_environment()
    except GiftFundError:
        if not session.is_dry_run:
            raise
        logger.info("[GIFT-CLI] DRY_RUN signer | identity=%s", DRY_RUN_ADDRESS)
        return DirectSigner(
            address=DRY_RUN_ADDRESS,
            credentials=RequestSigner("dry-run-key", "dry-run-secret"),
        )


def seed_dry_run(session: GiftFundSession, owner: str, balance: str) -> None:
    """Give the dry-run identity stablecoin and giving fund balances."""
    if not isinstance(session.ledger, InMemoryLedger):
        return
    amount = DecimalGateway(session.network.token_decimals).parse_units(balance)
    session.ledger.credit(session.network.stablecoin, owner, amount)
    session.ledger.credit(session.network.giving_fund_token, owner, amount)


def progress_bar(fund: Fund, width: int = 20) -> str:
    """Funding progress capped at 100%, e.g. [#######-------------]."""
    percent = Decimal(clamped_percentage_funded(fund.funded_amount, fund.total_issuable))
    filled = int(percent * width // 100)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def print_result(result: FundingResult) -> int:
    """Print an orchestrated action's outcome; returns the exit code."""
    print(f"action:         {result.action}")
    print(f"state:          {result.state.value}")
    print(f"trace:          {' -> '.join(result.trace)}")
    if result.succeeded:
        print(f"transaction:    {format_tx_hash(result.transaction_hash)}")
        if result.return_value is not None:
            print(f"result:         {result.return_value}")
        return 0

    print(f"failed step:    {result.failed_step}")
    print(f"error:          {result.error}")
    if result.inconclusive:
        print("NOTE: confirmation timed out; re-read ledger state before retrying")
    return 1


# =============================================================================
# Commands
# =============================================================================

def cmd_percentage(args: argparse.Namespace) -> int:
    print(percentage_funded(args.funded, args.available))
    return 0


def cmd_codes(args: argparse.Namespace) -> int:
    for code in generate_batch(args.count, length=args.length, format=args.format):
        print(code)
    return 0


def cmd_template(args: argparse.Namespace) -> int:
    sys.stdout.write(recipient_template(args.delimiter))
    return 0


def cmd_parse_batch(args: argparse.Namespace) -> int:
    recipients = load_batch_file(args.file, args.delimiter)
    for recipient in recipients:
        print(
            f"{recipient.display_name:<30} {recipient.email:<30} "
            f"{recipient.phone_number:<16} {recipient.gift_amount}"
        )
    print(f"{len(recipients)} recipient(s)")
    return 0


async def cmd_add_funds(session: GiftFundSession, signer: Signer, args: argparse.Namespace, cid: str) -> int:
    transfer = PendingTransfer.resolve(
        session.network.giving_fund_token.address, args.amount, session.network.token_decimals, cid
    )
    result = await session.orchestrator.execute(
        add_funds_action(session.network, transfer.resolved_base_units), signer, signer.identity, cid
    )
    code = print_result(result)
    if result.succeeded:
        print(f"giving balance: {await session.registry.formatted_giving_balance(signer.identity)}")
    return code


async def cmd_create_fund(session: GiftFundSession, signer: Signer, args: argparse.Namespace, cid: str) -> int:
    if args.kind == "matching":
        if args.expires_at is None:
            print("matching funds require --expires-at (unix seconds)", file=sys.stderr)
            return 2
        action = create_matching_fund_action(session.network, args.name, args.symbol, args.expires_at)
    else:
        action = create_bespoke_fund_action(session.network, args.name, args.symbol)

    return print_result(await session.orchestrator.execute(action, signer, signer.identity, cid))


async def cmd_increase_funding(session: GiftFundSession, signer: Signer, args: argparse.Namespace, cid: str) -> int:
    gateway = DecimalGateway(session.network.token_decimals)

    if args.target_percent is not None:
        fund = await session.registry.get_fund(args.fund, FundKind.BESPOKE)
        if fund is None:
            print(f"unknown bespoke fund {args.fund}", file=sys.stderr)
            return 1
        amount = funding_required(fund.funded_amount, fund.total_issuable, args.target_percent)
        print(
            f"{fund.display_name}: {fund.percentage_funded}% funded, "
            f"{gateway.format_units(amount)} required for {args.target_percent}%"
        )
        if amount == 0:
            return 0
        transfer = PendingTransfer(args.fund, Decimal(gateway.format_units(amount)), amount)
    else:
        transfer = PendingTransfer.resolve(args.fund, args.amount, gateway.decimals, cid)

    action = increase_funding_action(session.network, transfer.target_fund, transfer.resolved_base_units)
    return print_result(await session.orchestrator.execute(action, signer, signer.identity, cid))


async def cmd_issue_gifts(session: GiftFundSession, signer: Signer, args: argparse.Namespace, cid: str) -> int:
    recipients = load_batch_file(args.file, args.delimiter)
    kind = FundKind.MATCHING if args.kind == "matching" else FundKind.BESPOKE
    fund = await session.registry.get_fund(args.fund_token, kind)
    if fund is None:
        print(f"unknown {args.kind} fund {args.fund_token}", file=sys.stderr)
        return 1

    report = await session.issuer.issue_batch(
        fund, recipients, signer, signer.identity, correlation_id=cid
    )
    gateway = DecimalGateway(session.network.token_decimals)

    print(f"fund:           {fund.display_name} ({fund.symbol}, {fund.kind.value})")
    for outcome in report.outcomes:
        amount = (
            gateway.format_units(outcome.amount_base_units)
            if outcome.amount_base_units is not None else outcome.recipient.gift_amount
        )
        line = f"[{outcome.status.value:<7}] {outcome.recipient.display_name:<30} {amount:>12}"
        if outcome.gift:
            line += (
                f"  gift={outcome.gift.gift_id} kind={outcome.gift.fund_kind.value} "
                f"tx={format_tx_hash(outcome.gift.transaction_hash)}"
            )
        elif outcome.reason:
            line += f"  {outcome.reason}"
        if outcome.inconclusive:
            line += "  (inconclusive)"
        print(line)

    print(report.summary())

    if args.preview:
        for notice in notices_for_report(report, args.sender or "", session.network.token_decimals):
            print("-" * 60)
            print(f"To: {notice.recipient.email}")
            print(notice.render_email())

    return 0 if not report.failed else 1


async def cmd_list_funds(session: GiftFundSession, signer: Signer, args: argparse.Namespace, cid: str) -> int:
    kind = FundKind.MATCHING if args.kind == "matching" else FundKind.BESPOKE
    funds = await session.registry.list_user_funds(signer.identity, kind)
    decimals = session.network.token_decimals

    for fund in funds:
        line = (
            f"{fund.display_name:<30} {fund.symbol:<8} {format_date(fund.created_at):<14} "
            f"{format_amount(fund.funded_amount, decimals):>12} / "
            f"{format_amount(fund.total_issuable, decimals, fund.symbol):<16} "
            f"{progress_bar(fund)} {fund.percentage_funded}%"
        )
        if fund.expires_at:
            line += f"  expires {format_date(fund.expires_at)}"
        print(line)

    print(f"{len(funds)} {kind.value.lower()} fund(s)")
    return 0


def cmd_search_nonprofits(config: GiftFundConfig, args: argparse.Namespace) -> int:
    client = NonprofitDirectoryClient(base_url=config.directory_url)
    page = client.search(args.query, page=args.page, state=args.state, category=args.category)
    organizations = filter_organizations(page.organizations, states=args.states or ())

    for org in organizations:
        group = NTEE_MAJOR_GROUPS.get(org.major_group, "") if org.major_group else ""
        print(f"{org.ein:>10}  {org.name:<50} {org.location:<28} {group}")

    print(
        f"page {page.current_page + 1}/{max(page.total_pages, 1)} | "
        f"{page.total_results} result(s)"
    )
    return 0


LEDGER_COMMANDS = {
    "add-funds": cmd_add_funds,
    "create-fund": cmd_create_fund,
    "increase-funding": cmd_increase_funding,
    "issue-gifts": cmd_issue_gifts,
    "list-funds": cmd_list_funds,
}

LOCAL_COMMANDS = {
    "percentage": cmd_percentage,
    "codes": cmd_codes,
    "template": cmd_template,
    "parse-batch": cmd_parse_batch,
}


# =============================================================================
# Argument Parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="giftfund",
        description="Charitable giving fund orchestrator"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "--dry-run-balance",
        default="1000",
        help="Stablecoin and giving fund balance seeded in DRY_RUN mode"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("percentage", help="Percentage funded from base units")
    p.add_argument("funded", type=int)
    p.add_argument("available", type=int)

    p = sub.add_parser("codes", help="Generate redeem codes")
    p.add_argument("--count", type=int, default=1)
    p.add_argument("--length", type=int, default=16)
    p.add_argument("--format", default=None, help="Template, each X is replaced")

    p = sub.add_parser("template", help="Print the recipient batch template header")
    p.add_argument("--delimiter", default=",")

    p = sub.add_parser("parse-batch", help="Parse a recipient batch file")
    p.add_argument("file")
    p.add_argument("--delimiter", default=",")

    p = sub.add_parser("add-funds", help="Mint giving fund tokens against stablecoin")
    p.add_argument("amount", help="Human amount, e.g. 25.50")

    p = sub.add_parser("create-fund", help="Create a bespoke or matching fund")
    p.add_argument("kind", choices=["bespoke", "matching"])
    p.add_argument("name")
    p.add_argument("symbol")
    p.add_argument("--expires-at", type=int, default=None, help="Matching fund expiry (unix seconds)")

    p = sub.add_parser("increase-funding", help="Move giving fund tokens into a bespoke fund")
    p.add_argument("fund", help="Bespoke fund token address")
    amount_group = p.add_mutually_exclusive_group(required=True)
    amount_group.add_argument("--amount", help="Human amount")
    amount_group.add_argument("--target-percent", type=int, help="Fund up to this percentage")

    p = sub.add_parser("issue-gifts", help="Issue one gift per batch recipient")
    p.add_argument("file")
    p.add_argument("--delimiter", default=",")
    p.add_argument("--fund-token", required=True, help="Fund token address to issue from")
    p.add_argument("--kind", choices=["bespoke", "matching"], default="bespoke", help="Kind of the fund")
    p.add_argument("--sender", default=None, help="Sender name for notice previews")
    p.add_argument("--preview", action="store_true", help="Print email notices for issued gifts")

    p = sub.add_parser("list-funds", help="List funds created by the signer")
    p.add_argument("kind", choices=["bespoke", "matching"])

    p = sub.add_parser("search-nonprofits", help="Search the nonprofit directory")
    p.add_argument("query", nargs="?", default="")
    p.add_argument("--page", type=int, default=0)
    p.add_argument("--state", default=None, help="Two-letter state filter (server side)")
    p.add_argument("--states", nargs="*", help="Additional client-side state selection")
    p.add_argument("--category", type=int, default=None, choices=sorted(NTEE_MAJOR_GROUPS))

    return parser


async def run_ledger_command(config: GiftFundConfig, args: argparse.Namespace) -> int:
    cid = str(uuid.uuid4())
    session = build_session(config)
    signer = resolve_signer(session)

    if session.is_dry_run:
        seed_dry_run(session, signer.identity, args.dry_run_balance)

    logger.info(
        "[GIFT-CLI] Command started | command=%s | mode=%s | signer=%s | correlation_id=%s",
        args.command, config.mode.value, signer.mode, cid
    )
    return await LEDGER_COMMANDS[args.command](session, signer, args, cid)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        if args.command in LOCAL_COMMANDS:
            return LOCAL_COMMANDS[args.command](args)

        config = GiftFundConfig.from_environment()
        if args.command == "search-nonprofits":
            return cmd_search_nonprofits(config, args)
        return asyncio.run(run_ledger_command(config, args))
    except GiftFundError as e:
        logger.error("[%s] %s", e.code, e.message)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())

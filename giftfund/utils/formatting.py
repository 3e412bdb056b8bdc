"""
Display helpers for transaction hashes, dates and token amounts.
"""

from datetime import datetime, timezone
from typing import Optional

from giftfund.ledger.decimal_gateway import DEFAULT_TOKEN_DECIMALS, format_units


def format_tx_hash(tx_hash: Optional[str], start_chars: int = 6, end_chars: int = 4) -> str:
    """Shorten a hash to '0x1234...abcd'. Empty input gives ''."""
    if not tx_hash:
        return ""
    if len(tx_hash) <= start_chars + end_chars:
        return tx_hash
    return f"{tx_hash[:start_chars]}...{tx_hash[-end_chars:]}"


def format_date(unix_seconds: Optional[int]) -> str:
    """Ledger timestamp (seconds) as a UTC calendar date, e.g. 'Jan 20, 2025'."""
    if unix_seconds is None:
        return ""
    moment = datetime.fromtimestamp(int(unix_seconds), tz=timezone.utc)
    return f"{moment.strftime('%b')} {moment.day}, {moment.year}"


def format_amount(base_units: int, decimals: int = DEFAULT_TOKEN_DECIMALS, symbol: str = "") -> str:
    """Base units as a human amount, optionally suffixed with a symbol."""
    text = format_units(base_units, decimals)
    return f"{text} {symbol}" if symbol else text

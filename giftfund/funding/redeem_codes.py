"""
============================================================================
Gift Fund Orchestrator v1.0.0
Redeem Code Generator
============================================================================

Reliability Level: FUNDS-CRITICAL
Side Effects: None (reads the OS CSPRNG)

A redeem code is a bearer token: whoever holds it can claim the gift. Codes
are drawn from `secrets`, never from `random`.

    generate_code()                        16 random characters
    generate_code(format="XXXX-XXXX")      each X replaced, rest kept

Uniqueness is guaranteed within one batch only. Codes are never logged in
clear; use redact_code() for log lines.

============================================================================
"""

from typing import List, Optional, Set
import logging
import secrets
import string

logger = logging.getLogger(__name__)


DEFAULT_CHARSET = string.ascii_uppercase + string.digits
DEFAULT_LENGTH = 16
PLACEHOLDER = "X"


def _validate(length: int, format: Optional[str], charset: str) -> None:
    if not charset:
        raise ValueError("charset must be non-empty")
    if format is None and length <= 0:
        raise ValueError(f"length must be positive, got {length}")


def generate_code(
    length: int = DEFAULT_LENGTH,
    format: Optional[str] = None,
    charset: str = DEFAULT_CHARSET
) -> str:
    """
    Generate one redeem code.

    Args:
        length: Number of characters when no format is given
        format: Template where each 'X' becomes a random character
        charset: Alphabet to draw from

    Raises:
        ValueError: On non-positive length or empty charset
    """
    _validate(length, format, charset)

    if format is not None:
        return "".join(
            secrets.choice(charset) if ch == PLACEHOLDER else ch
            for ch in format
        )

    return "".join(secrets.choice(charset) for _ in range(length))


def code_space(
    length: int = DEFAULT_LENGTH,
    format: Optional[str] = None,
    charset: str = DEFAULT_CHARSET
) -> int:
    """Number of distinct codes a length/format can produce."""
    _validate(length, format, charset)
    slots = format.count(PLACEHOLDER) if format is not None else length
    return len(set(charset)) ** slots


def redact_code(code: str) -> str:
    """Last 4 characters only, for log lines."""
    if len(code) <= 4:
        return "[REDACTED]"
    return f"...{code[-4:]}"


class RedeemCodeBook:
    """
    Issues codes for one batch, never repeating a code.

    Example Usage:
        book = RedeemCodeBook(format="XXXX-XXXX-XXXX-XXXX")
        code = book.issue()
    """

    def __init__(
        self,
        length: int = DEFAULT_LENGTH,
        format: Optional[str] = None,
        charset: str = DEFAULT_CHARSET
    ):
        self.length = length
        self.format = format
        self.charset = charset
        self.capacity = code_space(length, format, charset)
        self._issued: Set[str] = set()
        self._order: List[str] = []

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, code: object) -> bool:
        return code in self._issued

    @property
    def issued(self) -> List[str]:
        return list(self._order)

    def issue(self) -> str:
        """
        Return a code not previously issued by this book.

        Raises:
            ValueError: If the code space is exhausted
        """
        if len(self._issued) >= self.capacity:
            raise ValueError(
                f"Code space exhausted: {self.capacity} codes already issued"
            )

        while True:
            code = generate_code(self.length, self.format, self.charset)
            if code not in self._issued:
                break
            logger.debug("[GIFT-CODE] Collision regenerated | code=%s", redact_code(code))

        self._issued.add(code)
        self._order.append(code)
        return code


def generate_batch(
    count: int,
    length: int = DEFAULT_LENGTH,
    format: Optional[str] = None,
    charset: str = DEFAULT_CHARSET
) -> List[str]:
    """
    Generate `count` pairwise-distinct codes in generation order.

    Raises:
        ValueError: If count is negative or exceeds the code space
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")

    book = RedeemCodeBook(length, format, charset)
    if count > book.capacity:
        raise ValueError(
            f"Cannot generate {count} distinct codes from a space of {book.capacity}"
        )

    for _ in range(count):
        book.issue()
    return book.issued

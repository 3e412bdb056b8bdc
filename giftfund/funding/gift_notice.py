"""
============================================================================
Gift Fund Orchestrator v1.0.0
Gift Notice - Email and Text Previews
============================================================================

Renders the notice a recipient receives for an issued gift. This module
only composes text; delivery is out of scope.

The redeem code appears in the rendered body by necessity. Rendered
notices must not be logged.

============================================================================
"""

from dataclasses import dataclass
from typing import List, Optional

from giftfund.funding.gift_issuer import BatchReport
from giftfund.funding.models import Recipient
from giftfund.ledger.decimal_gateway import DecimalGateway


DEFAULT_SENDER_NAME = "Sender Name"
DEFAULT_OCCASION = "occasion"

DEFAULT_MESSAGE = (
    "I wanted to give you something that feels right for who you are.\n\n"
    "So I'm sending you a {amount} charity fund gift to donate wherever your "
    "heart tells you to.\n\n"
    "Thank you for being the kind of person you are."
)


@dataclass(frozen=True)
class GiftNotice:
    """One recipient's notice."""
    sender_name: str
    recipient: Recipient
    redeem_code: str
    amount: str
    message: str = DEFAULT_MESSAGE
    occasion: Optional[str] = None

    @property
    def sender(self) -> str:
        return self.sender_name.strip() or DEFAULT_SENDER_NAME

    def paragraphs(self) -> List[str]:
        body = self.message.replace("{amount}", f"${self.amount}")
        return [paragraph.strip() for paragraph in body.split("\n\n") if paragraph.strip()]

    def email_subject(self) -> str:
        return f"{self.sender} sent you a gift to share the joy of giving back"

    def render_email(self) -> str:
        lines = [
            f"{self.sender} sent you a gift to share the joy of giving back.",
            "",
        ]
        for paragraph in self.paragraphs():
            lines.extend([paragraph, ""])
        lines.extend([
            f"Gift Amount: ${self.amount}",
            f"Redemption Code: {self.redeem_code}",
        ])
        return "\n".join(lines) + "\n"

    def render_text(self) -> str:
        first_name = self.recipient.first_name or "there"
        occasion = self.occasion or DEFAULT_OCCASION
        return (
            f"Hey {first_name}, {self.sender} sent you a gift to share the joy "
            f"of giving for your {occasion}. "
            f"Please use code {self.redeem_code} to redeem your gift. "
            f"Reply STOP to opt out."
        )


def notices_for_report(
    report: BatchReport,
    sender_name: str,
    decimals: int,
    message: str = DEFAULT_MESSAGE,
    occasion: Optional[str] = None
) -> List[GiftNotice]:
    """Build notices for every ISSUED recipient of a batch, in input order."""
    gateway = DecimalGateway(decimals)
    notices = []
    for outcome in report.issued:
        notices.append(GiftNotice(
            sender_name=sender_name,
            recipient=outcome.recipient,
            redeem_code=outcome.gift.redeem_code,
            amount=gateway.format_units(outcome.gift.amount_base_units),
            message=message,
            occasion=occasion,
        ))
    return notices

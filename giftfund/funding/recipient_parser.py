# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Recipient Batch Parser
# ============================================================================
#
# Reliability Level: INPUT BOUNDARY
# Purpose: Turns uploaded delimited text into Recipient rows
#
# Rules:
#   - First line is a header and is discarded
#   - Fields are whitespace-stripped, extra trailing fields ignored
#   - Rows with fewer than 5 fields are dropped silently
#   - File order kept, no dedup, no email or phone validation
#
# Error Codes:
#   - GIFT-IN-001: Input is not text or not valid UTF-8
#
# ============================================================================

from pathlib import Path
from typing import List, Union
import logging

from giftfund.errors import MalformedInput
from giftfund.funding.models import Recipient

logger = logging.getLogger(__name__)


FIELD_COUNT = 5
TEMPLATE_HEADER = ("First Name", "Last Name", "Email", "Phone Number", "Gift Amount")


def _decode(raw: Union[str, bytes]) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            # utf-8-sig drops the BOM spreadsheet exports prepend
            return bytes(raw).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            logger.warning(f"[GIFT-IN-001] Batch is not valid UTF-8 | error={e}")
            raise MalformedInput(f"Batch is not valid UTF-8: {e}") from e
    raise MalformedInput(f"Batch must be text or bytes, got {type(raw).__name__}")


def parse_batch(raw: Union[str, bytes], delimiter: str = ",") -> List[Recipient]:
    """
    Parse a recipient batch.

    Example:
        parse_batch("H1,H2,H3,H4,H5\\nA,B,c@d.com,555,10\\n")
        -> [Recipient("A", "B", "c@d.com", "555", "10")]

    Raises:
        MalformedInput: If the input cannot be decoded as text
    """
    if not delimiter:
        raise ValueError("delimiter must be non-empty")

    lines = _decode(raw).splitlines()
    recipients: List[Recipient] = []
    dropped = 0

    for line in lines[1:]:
        if not line.strip():
            continue

        fields = [field.strip() for field in line.split(delimiter)]
        if len(fields) < FIELD_COUNT:
            dropped += 1
            continue

        recipients.append(Recipient(*fields[:FIELD_COUNT]))

    logger.info(
        f"[GIFT-IN] Batch parsed | recipients={len(recipients)} | dropped={dropped}"
    )
    return recipients


def recipient_template(delimiter: str = ",") -> str:
    """Header line of the downloadable batch template."""
    return delimiter.join(TEMPLATE_HEADER) + "\n"


def load_batch_file(path: Union[str, Path], delimiter: str = ",") -> List[Recipient]:
    """Read and parse a batch file from disk."""
    return parse_batch(Path(path).read_bytes(), delimiter)

# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Fixed-Point Percentage Calculator
# ============================================================================
#
# Reliability Level: FUNDS-CRITICAL
# Purpose: Percentage funded of a fund, computed on integer base units
#
# MANDATE:
#   - Integer arithmetic only (no float, no Decimal rounding)
#   - Two decimal digits, truncated toward zero, trailing zeros trimmed
#   - Over-funding renders above 100, never raises
#
# ============================================================================

from typing import Any


# Rendered when there is nothing to fund
ZERO_AVAILABLE = "0.00"


def _require_base_units(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int of base units, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def _render_hundredths(hundredths: int) -> str:
    text = "%d.%02d" % divmod(hundredths, 100)
    return text.rstrip("0").rstrip(".")


def percentage_funded(funded: int, available: int) -> str:
    """
    Percentage of `available` covered by `funded`, as display text.

    Examples:
        percentage_funded(333, 1000)   -> "33.3"
        percentage_funded(1000, 1000)  -> "100"
        percentage_funded(1500, 1000)  -> "150"
        percentage_funded(5, 0)        -> "0.00"

    Raises:
        ValueError: If either argument is negative or not an int
    """
    funded = _require_base_units("funded", funded)
    available = _require_base_units("available", available)

    if available == 0:
        return ZERO_AVAILABLE

    return _render_hundredths((funded * 10000) // available)


def clamped_percentage_funded(funded: int, available: int, cap: int = 100) -> str:
    """Percentage funded capped at `cap` for progress displays."""
    funded = _require_base_units("funded", funded)
    available = _require_base_units("available", available)
    cap = _require_base_units("cap", cap)

    if available == 0:
        return ZERO_AVAILABLE

    return _render_hundredths(min((funded * 10000) // available, cap * 100))


def funding_required(funded: int, available: int, target_percent: int) -> int:
    """
    Additional base units needed to reach `target_percent` of `available`.

    Rounded up so the target is actually reached; zero when the fund is
    already at or above the target.
    """
    funded = _require_base_units("funded", funded)
    available = _require_base_units("available", available)
    target_percent = _require_base_units("target_percent", target_percent)

    target_units = -(-(available * target_percent) // 100)
    return max(target_units - funded, 0)

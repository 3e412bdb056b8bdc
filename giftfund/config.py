"""
============================================================================
Gift Fund Orchestrator - Configuration
============================================================================

Reliability Level: FUNDS-CRITICAL

This module provides configuration management for the orchestrator:
- Environment variable parsing with type safety
- Default values for optional configuration
- DRY_RUN by default; LIVE requires explicit confirmation
- Fail-closed behavior on missing required config (GIFT-CFG-001)

ENVIRONMENT VARIABLES:
    - GIFTFUND_LEDGER_MODE: DRY_RUN (default) or LIVE
    - GIFTFUND_LIVE_CONFIRMED: Must be TRUE for LIVE mode
    - GIFTFUND_GATEWAY_URL: Ledger gateway base URL (REQUIRED for LIVE)
    - GIFTFUND_CHAIN_ID: Chain id of the deployment (default: 31337)
    - GIFTFUND_TOKEN_DECIMALS: Stablecoin / fund token decimals (default: 6)
    - GIFTFUND_CONFIRMATION_TIMEOUT_SECONDS: Receipt wait bound (default: 120)
    - GIFTFUND_POLL_INTERVAL_SECONDS: Receipt poll interval (default: 2)
    - GIFTFUND_READ_RETRIES: Attempts per ledger read (default: 3)
    - GIFTFUND_CODE_FORMAT: Redeem code template (default: XXXX-XXXX-XXXX-XXXX)
    - GIFTFUND_DIRECTORY_URL: Nonprofit directory base URL
    - GIFTFUND_CONTRACT_<NAME>: Contract addresses (REQUIRED for LIVE)

ERROR CODES:
    - GIFT-CFG-001: Required configuration missing or invalid

============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import logging
import os

from giftfund.errors import ConfigurationError
from giftfund.directory.nonprofit_client import DEFAULT_DIRECTORY_URL
from giftfund.ledger.contracts import CONTRACT_ENV_KEYS
from giftfund.ledger.decimal_gateway import DEFAULT_TOKEN_DECIMALS

logger = logging.getLogger(__name__)


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_CHAIN_ID = 31337
DEFAULT_CONFIRMATION_TIMEOUT_SECONDS = 120.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_READ_RETRIES = 3
DEFAULT_CODE_FORMAT = "XXXX-XXXX-XXXX-XXXX"


class LedgerMode(Enum):
    """Where writes go."""
    DRY_RUN = "DRY_RUN"  # In-memory ledger, nothing leaves the process
    LIVE = "LIVE"        # Ledger gateway, real value moves


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"[GIFT-CONFIG] Invalid {name} value: {raw}, using default: {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning(f"[GIFT-CONFIG] Invalid {name} value: {raw}, using default: {default}")
        return default


@dataclass
class GiftFundConfig:
    """
    Orchestrator configuration.

    Example Usage:
        load_dotenv()
        config = GiftFundConfig.from_environment()
        if config.is_live:
            ...
    """

    mode: LedgerMode = LedgerMode.DRY_RUN
    live_confirmed: bool = False
    gateway_url: str = ""
    chain_id: int = DEFAULT_CHAIN_ID
    token_decimals: int = DEFAULT_TOKEN_DECIMALS
    confirmation_timeout_seconds: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    read_retries: int = DEFAULT_READ_RETRIES
    code_format: Optional[str] = DEFAULT_CODE_FORMAT
    directory_url: str = DEFAULT_DIRECTORY_URL
    contract_addresses: Dict[str, str] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.mode == LedgerMode.LIVE

    @property
    def max_poll_attempts(self) -> int:
        """Receipt polls that fit inside the confirmation bound (at least 1)."""
        if self.poll_interval_seconds <= 0:
            return 1
        return max(int(self.confirmation_timeout_seconds // self.poll_interval_seconds), 1)

    def validate(self) -> None:
        """
        Validate configuration completeness.

        Raises:
            ConfigurationError: If required configuration is missing (GIFT-CFG-001)
        """
        errors: List[str] = []

        if self.token_decimals < 0:
            errors.append(f"GIFTFUND_TOKEN_DECIMALS must be non-negative, got: {self.token_decimals}")

        if self.confirmation_timeout_seconds <= 0:
            errors.append(
                "GIFTFUND_CONFIRMATION_TIMEOUT_SECONDS must be positive, "
                f"got: {self.confirmation_timeout_seconds}"
            )

        if self.poll_interval_seconds <= 0:
            errors.append(
                f"GIFTFUND_POLL_INTERVAL_SECONDS must be positive, got: {self.poll_interval_seconds}"
            )

        if self.read_retries < 1:
            errors.append(f"GIFTFUND_READ_RETRIES must be >= 1, got: {self.read_retries}")

        if self.is_live:
            if not self.live_confirmed:
                errors.append("LIVE mode requires GIFTFUND_LIVE_CONFIRMED=TRUE")
            if not self.gateway_url:
                errors.append("GIFTFUND_GATEWAY_URL must be set in LIVE mode")
            missing = [
                f"GIFTFUND_CONTRACT_{suffix}"
                for name, suffix in CONTRACT_ENV_KEYS.items()
                if not self.contract_addresses.get(name)
            ]
            if missing:
                errors.append(f"Missing contract addresses: {', '.join(missing)}")

        if errors:
            error_msg = "Configuration validation failed: " + "; ".join(errors)
            logger.error(f"[{ConfigurationError.code}] {error_msg}")
            raise ConfigurationError(error_msg)

        if self.is_live:
            logger.warning("[GIFT-CONFIG] LIVE LEDGER MODE ENABLED | value will move")

        logger.info(
            f"[GIFT-CONFIG] Configuration validated | mode={self.mode.value} | "
            f"chain_id={self.chain_id} | token_decimals={self.token_decimals} | "
            f"confirmation_timeout={self.confirmation_timeout_seconds}s"
        )

    @classmethod
    def from_environment(cls, validate: bool = True) -> "GiftFundConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigurationError: On an unknown mode or failed validation
        """
        mode_str = os.environ.get("GIFTFUND_LEDGER_MODE", LedgerMode.DRY_RUN.value).strip().upper()
        try:
            mode = LedgerMode(mode_str)
        except ValueError:
            raise ConfigurationError(
                f"GIFTFUND_LEDGER_MODE must be DRY_RUN or LIVE, got: {mode_str}"
            ) from None

        code_format = os.environ.get("GIFTFUND_CODE_FORMAT", DEFAULT_CODE_FORMAT).strip()

        config = cls(
            mode=mode,
            live_confirmed=os.environ.get("GIFTFUND_LIVE_CONFIRMED", "").strip().upper() == "TRUE",
            gateway_url=os.environ.get("GIFTFUND_GATEWAY_URL", "").strip(),
            chain_id=_env_int("GIFTFUND_CHAIN_ID", DEFAULT_CHAIN_ID),
            token_decimals=_env_int("GIFTFUND_TOKEN_DECIMALS", DEFAULT_TOKEN_DECIMALS),
            confirmation_timeout_seconds=_env_float(
                "GIFTFUND_CONFIRMATION_TIMEOUT_SECONDS", DEFAULT_CONFIRMATION_TIMEOUT_SECONDS
            ),
            poll_interval_seconds=_env_float(
                "GIFTFUND_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            read_retries=_env_int("GIFTFUND_READ_RETRIES", DEFAULT_READ_RETRIES),
            code_format=code_format or None,
            directory_url=os.environ.get("GIFTFUND_DIRECTORY_URL", DEFAULT_DIRECTORY_URL).strip(),
            contract_addresses={
                name: os.environ.get(f"GIFTFUND_CONTRACT_{suffix}", "").strip()
                for name, suffix in CONTRACT_ENV_KEYS.items()
            },
        )

        logger.info(
            f"[GIFT-CONFIG] Loading configuration from environment | "
            f"GIFTFUND_LEDGER_MODE={mode.value} | GIFTFUND_CHAIN_ID={config.chain_id}"
        )

        if validate:
            config.validate()

        return config

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "live_confirmed": self.live_confirmed,
            "gateway_url": self.gateway_url,
            "chain_id": self.chain_id,
            "token_decimals": self.token_decimals,
            "confirmation_timeout_seconds": self.confirmation_timeout_seconds,
            "poll_interval_seconds": self.poll_interval_seconds,
            "read_retries": self.read_retries,
            "code_format": self.code_format,
            "directory_url": self.directory_url,
            "contract_addresses": dict(self.contract_addresses),
        }


# =============================================================================
# Module-Level Configuration Instance
# =============================================================================

_config_instance: Optional[GiftFundConfig] = None


def get_giftfund_config(validate: bool = True) -> GiftFundConfig:
    """Get the global configuration instance (lazy-loaded)."""
    global _config_instance

    if _config_instance is None:
        _config_instance = GiftFundConfig.from_environment(validate=validate)

    return _config_instance


def reset_giftfund_config() -> None:
    """Reset the global configuration instance (tests and reloads)."""
    global _config_instance
    _config_instance = None


__all__ = [
    "LedgerMode",
    "GiftFundConfig",
    "get_giftfund_config",
    "reset_giftfund_config",
]

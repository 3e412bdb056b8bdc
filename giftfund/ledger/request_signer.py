# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Request Signer - Direct Signer Credentials
# ============================================================================
#
# Reliability Level: FUNDS-CRITICAL
# Purpose: Binds a gateway write submission to the directly held identity
#          that authorized it
#
# MANDATE:
#   - API credentials loaded ONLY from explicit arguments or environment
#   - Credentials NEVER appear in logs or reprs
#   - GIFT-CFG-001 raised if credentials missing
#
# Signed Message (newline separated):
#   timestamp
#   chain submission path     e.g. /v1/chains/8453/transactions
#   signer address            lower-cased
#   SHA-256 hex digest of the request body
#
#   signature = HMAC-SHA512(api_secret, message)
#
# A signature replayed against another chain or on behalf of another
# address does not verify.
#
# ============================================================================

import hmac
import hashlib
import time
import os
import logging
from typing import Optional, Dict

from giftfund.errors import ConfigurationError

logger = logging.getLogger(__name__)


SUBMISSION_PATH_PREFIX = "/v1/chains/"


class MissingCredentialsError(ConfigurationError):
    """Raised when direct signer credentials are missing."""
    pass


class RequestSigner:
    """
    HMAC-SHA512 submission signer for the ledger gateway.

    Example Usage:
        credentials = RequestSigner.from_environment()
        headers = credentials.sign_submission(
            "/v1/chains/8453/transactions", "0xA11CE...", body
        )

    Environment Variables:
        GIFTFUND_API_KEY: Gateway API key bound to the signing identity
        GIFTFUND_API_SECRET: Gateway API secret
    """

    ENV_API_KEY = 'GIFTFUND_API_KEY'
    ENV_API_SECRET = 'GIFTFUND_API_SECRET'

    def __init__(self, api_key: str, api_secret: str):
        missing = [
            name for name, value in (
                (self.ENV_API_KEY, api_key),
                (self.ENV_API_SECRET, api_secret),
            ) if not value
        ]
        if missing:
            logger.error(
                f"[{ConfigurationError.code}] Missing signer credentials | missing={missing}"
            )
            raise MissingCredentialsError(
                f"Missing gateway credentials: {', '.join(missing)}"
            )

        self._api_key = api_key
        self._api_secret = api_secret

    @classmethod
    def from_environment(cls) -> "RequestSigner":
        """Load credentials from the environment only."""
        return cls(
            api_key=os.getenv(cls.ENV_API_KEY, ''),
            api_secret=os.getenv(cls.ENV_API_SECRET, ''),
        )

    @staticmethod
    def submission_message(
        path: str,
        signer_address: str,
        body: str,
        timestamp: int
    ) -> str:
        """Canonical message covered by the signature."""
        body_digest = hashlib.sha256(body.encode('utf-8')).hexdigest()
        return "\n".join([str(timestamp), path, signer_address.lower(), body_digest])

    def sign_submission(
        self,
        path: str,
        signer_address: str,
        body: str,
        timestamp: Optional[int] = None
    ) -> Dict[str, str]:
        """
        Generate signature headers for one write submission.

        Args:
            path: Chain submission path (e.g. "/v1/chains/8453/transactions")
            signer_address: Address the write is submitted from
            body: Serialized request body, exactly as sent
            timestamp: Unix timestamp in milliseconds (auto-generated if None)

        Returns:
            Dict with X-GIFTFUND-API-KEY, X-GIFTFUND-SIGNER,
            X-GIFTFUND-TIMESTAMP and X-GIFTFUND-SIGNATURE

        Raises:
            ValueError: If path is not a chain path or signer_address is empty
        """
        if not path.startswith(SUBMISSION_PATH_PREFIX):
            raise ValueError(f"Not a chain submission path: {path}")
        if not signer_address:
            raise ValueError("signer_address must be non-empty")

        if timestamp is None:
            timestamp = int(time.time() * 1000)

        message = self.submission_message(path, signer_address, body, timestamp)
        signature = hmac.new(
            self._api_secret.encode('utf-8'),
            message.encode('utf-8'),
            hashlib.sha512
        ).hexdigest()

        logger.debug(
            f"[GIFT-SIGN] Submission signed | path={path} | "
            f"signer={signer_address} | timestamp={timestamp} | signature=[REDACTED]"
        )

        return {
            'X-GIFTFUND-API-KEY': self._api_key,
            'X-GIFTFUND-SIGNER': signer_address.lower(),
            'X-GIFTFUND-TIMESTAMP': str(timestamp),
            'X-GIFTFUND-SIGNATURE': signature,
        }

    def __repr__(self) -> str:
        return "RequestSigner(api_key=[REDACTED])"

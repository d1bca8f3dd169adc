"""
Slack request signature verification.

Slack signs every Events API request with the app's signing secret:

    basestring = "v0:" + X-Slack-Request-Timestamp + ":" + raw body
    signature  = "v0=" + hex(HMAC-SHA256(signing_secret, basestring))

The body must be hashed exactly as received, so callers pass the raw bytes
read from the transport, never a re-serialized payload. The digest comes from
slack_sdk's signing helper; its ``is_valid`` is not used because it also
rejects requests older than five minutes.
"""

import hmac
from typing import Optional, Union

from slack_sdk.signature import SignatureVerifier as SlackRequestSigner

from support_bridge.core.logging_config import get_logger

logger = get_logger(__name__)


class SignatureVerifier:
    """Validates that a webhook request was sent by Slack."""

    def __init__(self, signing_secret: str):
        self.signing_secret = signing_secret
        self._signer = SlackRequestSigner(signing_secret)

    def compute_signature(self, timestamp: str, raw_body: Union[bytes, str]) -> str:
        return self._signer.generate_signature(timestamp=timestamp, body=raw_body)

    def is_valid(
        self,
        raw_body: Union[bytes, str],
        timestamp: Optional[str],
        signature: Optional[str],
    ) -> bool:
        """
        Return True iff the signature matches the timestamp and raw body.

        Never raises: a missing header, an unset secret or any hashing
        failure is reported as an invalid signature.
        """
        if not self.signing_secret or not timestamp or not signature or raw_body is None:
            logger.debug(
                "slack_signature_incomplete",
                has_secret=bool(self.signing_secret),
                has_timestamp=bool(timestamp),
                has_signature=bool(signature),
            )
            return False

        try:
            expected = self.compute_signature(timestamp, raw_body)
            return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
        except Exception as e:
            logger.warning("slack_signature_check_failed", error=str(e), error_type=type(e).__name__)
            return False

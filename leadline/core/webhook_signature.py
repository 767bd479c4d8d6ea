"""
Telnyx Webhook Signature Verification
Ed25519 check of the telnyx-signature-ed25519 / telnyx-timestamp headers.

Telnyx signs "{timestamp}|{raw_body}" with its account key; the public half
is published in the portal as base64 and configured as TELNYX_PUBLIC_KEY.
"""
import base64
import binascii
import logging
import time
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "telnyx-signature-ed25519"
TIMESTAMP_HEADER = "telnyx-timestamp"


class WebhookSignatureError(Exception):
    """Raised when a webhook signature cannot be verified"""
    pass


class TelnyxSignatureVerifier:
    """
    Verifies Telnyx webhook signatures.

    Usage:
        verifier = TelnyxSignatureVerifier(public_key_b64)
        verifier.verify(raw_body, signature, timestamp)
    """

    def __init__(self, public_key_b64: str, tolerance_seconds: int = 300):
        try:
            key_bytes = base64.b64decode(public_key_b64)
            self._public_key = Ed25519PublicKey.from_public_bytes(key_bytes)
        except (binascii.Error, ValueError) as e:
            raise WebhookSignatureError(f"Invalid Telnyx public key: {e}") from e
        self.tolerance_seconds = tolerance_seconds

    def verify(
        self,
        payload: bytes,
        signature_b64: Optional[str],
        timestamp: Optional[str],
        now: Optional[float] = None
    ) -> None:
        """
        Verify a signed payload.

        Raises:
            WebhookSignatureError: On missing headers, stale timestamp or bad signature
        """
        if not signature_b64 or not timestamp:
            raise WebhookSignatureError("Missing signature headers")

        try:
            sent_at = int(timestamp)
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid timestamp header: {timestamp}") from e

        current = now if now is not None else time.time()
        if abs(current - sent_at) > self.tolerance_seconds:
            raise WebhookSignatureError(
                f"Timestamp outside tolerance ({int(current - sent_at)}s)"
            )

        try:
            signature = base64.b64decode(signature_b64)
        except binascii.Error as e:
            raise WebhookSignatureError("Signature is not valid base64") from e

        signed_payload = f"{timestamp}|".encode() + payload
        try:
            self._public_key.verify(signature, signed_payload)
        except InvalidSignature as e:
            raise WebhookSignatureError("Signature mismatch") from e

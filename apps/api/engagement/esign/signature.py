from __future__ import annotations

import base64
import hashlib
import hmac
import logging

from engagement.errors import AuthenticationError


logger = logging.getLogger("engagement.esign")

SIGNATURE_HEADER = "X-BoldSign-Signature"


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class SignatureVerifier:
    """Checks the provider's HMAC-SHA256 signature over the exact webhook body.

    With no secret configured verification is skipped. That is an operator escape hatch
    (e.g. while registering the webhook with the provider) and is logged as a warning the
    first time a request goes through unverified; it is never applied silently.
    """

    def __init__(self, secret: str | None) -> None:
        self._secret = secret or None
        self._warned = False

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    def verify(self, raw_body: bytes, signature: str | None) -> None:
        if self._secret is None:
            if not self._warned:
                logger.warning("webhook.signature_verification_disabled")
                self._warned = True
            return

        if not signature:
            raise AuthenticationError("Missing webhook signature")

        expected = compute_signature(raw_body, self._secret)
        if not hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8")):
            raise AuthenticationError("Invalid webhook signature")

"""
Operator Webhook Verification.

Operators push declared scores to the engine as signed JSON bodies. The
signature is Ed25519 over the raw body, base64-encoded in the
``x-trustfuse-signature`` header. Transport (the HTTP endpoint) is the
application's responsibility.
"""

import base64
import binascii
import json
from collections.abc import Mapping
from typing import Any

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from trustfuse.core.exceptions import ValidationError
from trustfuse.core.logging import get_logger
from trustfuse.core.types import SourceKind

logger = get_logger("webhooks.parser")

SIGNATURE_HEADER = "x-trustfuse-signature"


class InvalidSignatureError(ValidationError):
    """Raised when webhook signature verification fails."""

    pass


def load_verification_key(verification_key: str) -> Ed25519PublicKey:
    """
    Load an Ed25519 public key from PEM, hex or base64 text.

    Raises:
        InvalidSignatureError: If the key cannot be parsed or is not Ed25519
    """
    public_key = None

    # 1. Try PEM
    if "-----BEGIN PUBLIC KEY-----" in verification_key:
        try:
            public_key = serialization.load_pem_public_key(verification_key.encode("utf-8"))
        except (ValueError, UnsupportedAlgorithm) as e:
            raise InvalidSignatureError(f"Invalid PEM key: {e}") from e

    # 2. Try Hex
    if public_key is None:
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(verification_key))
        except ValueError:
            pass

    # 3. Try Base64
    if public_key is None:
        try:
            key_bytes = base64.b64decode(verification_key, validate=True)
            public_key = Ed25519PublicKey.from_public_bytes(key_bytes)
        except (binascii.Error, ValueError):
            pass

    if public_key is None:
        raise InvalidSignatureError(
            "Could not parse verification key (expected PEM, Hex, or Base64)"
        )
    if not isinstance(public_key, Ed25519PublicKey):
        raise InvalidSignatureError("Key is not an Ed25519PublicKey")
    return public_key


class WebhookVerifier:
    """
    Verifies and decodes operator webhook bodies.

    The decoded mapping is the raw payload for OperatorWebhookAdapter.
    """

    def __init__(self, verification_key: str | None = None) -> None:
        """
        Args:
            verification_key: Operator's Ed25519 public key. Without one,
                signatures are not checked (development only).
        """
        self.verification_key = verification_key
        self._public_key = load_verification_key(verification_key) if verification_key else None
        if self._public_key is None:
            logger.warning("WebhookVerifier has no verification key; signatures are not checked")

    def verify_signature(self, payload: str | bytes, headers: Mapping[str, str]) -> bool:
        """
        Verify the webhook signature.

        Raises:
            InvalidSignatureError: On a missing, malformed or mismatched signature
        """
        if self._public_key is None:
            return True

        signature = _header(headers, SIGNATURE_HEADER)
        if not signature:
            raise InvalidSignatureError(f"Missing {SIGNATURE_HEADER} header")

        try:
            signature_bytes = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidSignatureError("Invalid base64 signature") from None

        payload_bytes = payload.encode("utf-8") if isinstance(payload, str) else payload
        try:
            self._public_key.verify(signature_bytes, payload_bytes)
        except InvalidSignature:
            raise InvalidSignatureError("Signature mismatch") from None
        return True

    def parse(self, body: str | bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        """
        Verify and decode a webhook body.

        Raises:
            InvalidSignatureError: If the signature is invalid
            ValidationError: If the body is not a JSON object
        """
        self.verify_signature(body, headers)

        try:
            text = body.decode("utf-8") if isinstance(body, bytes) else body
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid JSON payload: {e}") from e

        if not isinstance(data, dict):
            raise ValidationError(
                "Webhook payload must be a JSON object",
                details={"type": type(data).__name__},
            )
        return data

    def parse_payloads(
        self, body: str | bytes, headers: Mapping[str, str]
    ) -> dict[SourceKind, dict[str, Any]]:
        """Parse a body into the ``payloads`` mapping accepted by ReputationEngine.score()."""
        return {SourceKind.OPERATOR_WEBHOOK: self.parse(body, headers)}


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


__all__ = ["InvalidSignatureError", "SIGNATURE_HEADER", "WebhookVerifier", "load_verification_key"]

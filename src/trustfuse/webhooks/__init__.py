"""Operator webhook verification."""

from trustfuse.webhooks.parser import (
    SIGNATURE_HEADER,
    InvalidSignatureError,
    WebhookVerifier,
    load_verification_key,
)

__all__ = ["InvalidSignatureError", "SIGNATURE_HEADER", "WebhookVerifier", "load_verification_key"]

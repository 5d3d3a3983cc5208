import base64
import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from trustfuse.core.exceptions import ValidationError
from trustfuse.core.types import SourceKind
from trustfuse.sources import OperatorWebhookAdapter
from trustfuse.webhooks.parser import InvalidSignatureError, WebhookVerifier, load_verification_key


@pytest.fixture
def key_pair():
    private_key = ed25519.Ed25519PrivateKey.generate()
    public_key = private_key.public_key()
    return private_key, public_key


@pytest.fixture
def verifier(key_pair):
    _, public_key = key_pair
    # Use hex format for default verifier
    pub_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
    )
    return WebhookVerifier(verification_key=pub_bytes.hex())


def sign_payload(private_key, payload: str | bytes) -> str:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    signature = private_key.sign(payload)
    return base64.b64encode(signature).decode("utf-8")


WEBHOOK_BODY = json.dumps(
    {
        "source": "internal-metrics",
        "agent_address": "agent-1",
        "score": 8200,
        "evidence": ["uptime", "latency"],
        "timestamp": "2026-10-15T00:00:00Z",
    }
)


def test_verify_signature_valid(verifier, key_pair):
    private_key, _ = key_pair
    payload = '{"test": "data"}'
    signature = sign_payload(private_key, payload)
    headers = {"x-trustfuse-signature": signature}

    assert verifier.verify_signature(payload, headers) is True


def test_verify_signature_header_case_insensitive(verifier, key_pair):
    private_key, _ = key_pair
    payload = '{"test": "data"}'
    headers = {"X-TrustFuse-Signature": sign_payload(private_key, payload)}

    assert verifier.verify_signature(payload, headers) is True


def test_verify_signature_invalid_signature(verifier):
    payload = '{"test": "data"}'
    # Random signature
    signature = base64.b64encode(b"0" * 64).decode("utf-8")
    headers = {"x-trustfuse-signature": signature}

    with pytest.raises(InvalidSignatureError, match="Signature mismatch"):
        verifier.verify_signature(payload, headers)


def test_verify_signature_not_base64(verifier):
    headers = {"x-trustfuse-signature": "not base64 at all!"}

    with pytest.raises(InvalidSignatureError, match="Invalid base64 signature"):
        verifier.verify_signature("data", headers)


def test_verify_signature_tampered_payload(verifier, key_pair):
    private_key, _ = key_pair
    payload = '{"test": "data"}'
    signature = sign_payload(private_key, payload)
    headers = {"x-trustfuse-signature": signature}

    # Verify with modified payload
    with pytest.raises(InvalidSignatureError, match="Signature mismatch"):
        verifier.verify_signature('{"test": "hacked"}', headers)


def test_verify_signature_missing_header(verifier):
    with pytest.raises(InvalidSignatureError, match="Missing x-trustfuse-signature header"):
        verifier.verify_signature('{"test": "data"}', {})


def test_verify_signature_base64_key(key_pair):
    private_key, public_key = key_pair
    pub_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
    )
    b64_key = base64.b64encode(pub_bytes).decode("utf-8")

    verifier = WebhookVerifier(verification_key=b64_key)
    payload = "data"
    headers = {"x-trustfuse-signature": sign_payload(private_key, payload)}

    assert verifier.verify_signature(payload, headers) is True


def test_verify_signature_pem_key(key_pair):
    private_key, public_key = key_pair
    pem_key = public_key.public_bytes(
        encoding=serialization.Encoding.PEM, format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("utf-8")

    verifier = WebhookVerifier(verification_key=pem_key)
    payload = "data"
    headers = {"x-trustfuse-signature": sign_payload(private_key, payload)}

    assert verifier.verify_signature(payload, headers) is True


def test_unparseable_key_rejected():
    with pytest.raises(InvalidSignatureError, match="Could not parse verification key"):
        load_verification_key("definitely-not-a-key")


def test_no_verification_key():
    verifier = WebhookVerifier(verification_key=None)
    assert verifier.verify_signature("data", {}) is True


def test_parse_returns_adapter_ready_payload(verifier, key_pair):
    private_key, _ = key_pair
    headers = {"x-trustfuse-signature": sign_payload(private_key, WEBHOOK_BODY)}

    data = verifier.parse(WEBHOOK_BODY.encode("utf-8"), headers)

    assert data["score"] == 8200
    reading = OperatorWebhookAdapter().interpret("agent-1", data)
    assert reading.normalized_score == 820
    assert reading.data_point_count == 2


def test_parse_payloads_keys_by_operator_webhook(verifier, key_pair):
    private_key, _ = key_pair
    headers = {"x-trustfuse-signature": sign_payload(private_key, WEBHOOK_BODY)}

    payloads = verifier.parse_payloads(WEBHOOK_BODY, headers)

    assert list(payloads) == [SourceKind.OPERATOR_WEBHOOK]


def test_parse_rejects_bad_signature_before_decoding(verifier):
    headers = {"x-trustfuse-signature": base64.b64encode(b"1" * 64).decode("utf-8")}

    with pytest.raises(InvalidSignatureError):
        verifier.parse("not json", headers)


def test_parse_invalid_json(verifier, key_pair):
    private_key, _ = key_pair
    body = "{not json"
    headers = {"x-trustfuse-signature": sign_payload(private_key, body)}

    with pytest.raises(ValidationError, match="Invalid JSON payload"):
        verifier.parse(body, headers)


def test_parse_non_object_json(verifier, key_pair):
    private_key, _ = key_pair
    body = "[1, 2, 3]"
    headers = {"x-trustfuse-signature": sign_payload(private_key, body)}

    with pytest.raises(ValidationError, match="must be a JSON object"):
        verifier.parse(body, headers)

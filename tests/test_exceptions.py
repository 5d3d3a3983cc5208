"""Unit tests for exceptions module."""

import pytest

from trustfuse.core.exceptions import (
    ConfigurationError,
    InvalidPayloadError,
    OutOfRangeRawScoreError,
    SourceError,
    SourceUnavailableError,
    TrustFuseError,
    UnknownSourceKindError,
    ValidationError,
)
from trustfuse.core.types import SourceKind
from trustfuse.webhooks import InvalidSignatureError


class TestTrustFuseError:
    """Tests for base exception."""

    def test_basic_error(self) -> None:
        error = TrustFuseError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details == {}

    def test_error_with_details(self) -> None:
        error = TrustFuseError("Bad weight", details={"weight_bps": -1})

        assert str(error) == "Bad weight | Details: {'weight_bps': -1}"
        assert error.details["weight_bps"] == -1


class TestConfigurationErrors:
    """Tests for configuration errors."""

    def test_unknown_kind_is_configuration_error(self) -> None:
        error = UnknownSourceKindError("twitter")

        assert isinstance(error, ConfigurationError)
        assert isinstance(error, TrustFuseError)
        assert error.kind == "twitter"
        assert str(error) == "Unknown source kind: 'twitter'"


class TestSourceErrors:
    """Tests for per-source errors."""

    def test_source_error_prefixes_kind(self) -> None:
        error = SourceError("boom", kind=SourceKind.ATTESTATION_FEED)
        assert str(error) == "[attestation_feed] boom"

    def test_source_error_without_kind(self) -> None:
        assert str(SourceError("boom")) == "boom"

    def test_invalid_payload_error(self) -> None:
        error = InvalidPayloadError(
            "Missing required field 'commits'",
            kind=SourceKind.CODE_HOSTING_ACTIVITY,
            field="commits",
        )

        assert isinstance(error, SourceError)
        assert error.field == "commits"
        assert str(error) == "[code_hosting_activity] Missing required field 'commits'"

    def test_out_of_range_error(self) -> None:
        error = OutOfRangeRawScoreError(
            "Score 120 outside declared scale [0.0, 100.0]",
            value=120,
            scale_min=0.0,
            scale_max=100.0,
            kind=SourceKind.ATTESTATION_FEED,
        )

        assert isinstance(error, SourceError)
        assert (error.value, error.scale_min, error.scale_max) == (120, 0.0, 100.0)

    def test_source_unavailable_error(self) -> None:
        error = SourceUnavailableError(
            "HTTP 503 from https://attest.example.com",
            kind=SourceKind.ATTESTATION_FEED,
            url="https://attest.example.com",
            status_code=503,
        )

        assert isinstance(error, SourceError)
        assert error.status_code == 503
        assert error.url == "https://attest.example.com"


class TestValidationErrors:
    """Tests for webhook validation errors."""

    def test_invalid_signature_is_validation_error(self) -> None:
        error = InvalidSignatureError("Signature mismatch")
        assert isinstance(error, ValidationError)
        assert isinstance(error, TrustFuseError)

    def test_catch_all_with_base(self) -> None:
        with pytest.raises(TrustFuseError):
            raise InvalidPayloadError("bad", kind=SourceKind.OPERATOR_WEBHOOK)

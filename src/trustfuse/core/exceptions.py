"""
Exception hierarchy for TrustFuse.

All package-specific exceptions inherit from TrustFuseError for easy catching.
"""

from __future__ import annotations

from typing import Any


class TrustFuseError(Exception):
    """
    Base exception for all TrustFuse errors.

    Catch this to handle any reputation-engine exception.

    Example:
        >>> try:
        ...     registry.configure("github", config)
        ... except TrustFuseError as e:
        ...     print(f"Reputation engine error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(TrustFuseError):
    """
    Configuration is missing or invalid.

    Raised when:
    - A SourceConfig carries an out-of-range weight or reliability
    - Environment variables hold values that cannot be parsed
    - A config is registered under a kind it does not describe
    """

    pass


class UnknownSourceKindError(ConfigurationError):
    """
    A source kind outside the closed SourceKind enumeration was used.

    This is a deployment/configuration bug and is meant to surface at
    configuration time, not while scoring.
    """

    def __init__(
        self,
        kind: Any,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Unknown source kind: {kind!r}", details)
        self.kind = kind


class SourceError(TrustFuseError):
    """
    Base exception for a single source's contribution.

    A SourceError excludes that source from the current aggregation run;
    every other source proceeds unaffected.
    """

    def __init__(
        self,
        message: str,
        kind: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.kind = kind

    def __str__(self) -> str:
        kind = getattr(self.kind, "value", self.kind)
        base = super().__str__()
        if kind:
            return f"[{kind}] {base}"
        return base


class InvalidPayloadError(SourceError):
    """
    The raw payload does not match the shape the adapter requires.

    Raised when:
    - The payload is not a mapping
    - A required field is absent
    - A field has the wrong type, is negative, or is not finite
    """

    def __init__(
        self,
        message: str,
        kind: Any = None,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, kind, details)
        self.field = field


class OutOfRangeRawScoreError(SourceError):
    """
    A declared-scale source reported a score outside its declared range.

    The value is rejected rather than clamped so misbehaving integrations
    become visible.
    """

    def __init__(
        self,
        message: str,
        value: float,
        scale_min: float,
        scale_max: float,
        kind: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, kind, details)
        self.value = value
        self.scale_min = scale_min
        self.scale_max = scale_max


class SourceUnavailableError(SourceError):
    """
    The upstream fetch for a source failed.

    Raised by the fetch layer only; adapters never see an unavailable source.
    """

    def __init__(
        self,
        message: str,
        kind: Any = None,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, kind, details)
        self.url = url
        self.status_code = status_code


class ValidationError(TrustFuseError):
    """
    Input validation error outside the adapters.

    Raised when:
    - A webhook body is not valid JSON
    - A webhook body is not a JSON object
    """

    pass

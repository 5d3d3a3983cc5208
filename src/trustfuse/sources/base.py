"""
Source adapter contract.

A SourceAdapter turns one source-specific raw payload, already fetched by
the caller, into a normalized SourceReading. Adapters are pure: no I/O,
no shared mutable state, so one instance can serve every agent and every
thread concurrently.

Each adapter validates its payload explicitly. A missing or mistyped
field becomes an InvalidPayloadError instead of a silently-defaulted value.
"""

from __future__ import annotations

import hashlib
import json
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar

from trustfuse.core.exceptions import ConfigurationError, InvalidPayloadError
from trustfuse.core.logging import get_logger
from trustfuse.core.types import SourceConfig, SourceKind, SourceReading, clamp_score, utc_now

logger = get_logger("sources")

SECONDS_PER_DAY = 86_400

# Epoch values above this are interpreted as milliseconds (year ~5138 in seconds)
_EPOCH_MILLIS_THRESHOLD = 1e11

_MISSING: Any = object()


@dataclass(frozen=True)
class SourceEvaluation:
    """Intermediate result of an adapter's source-specific formula."""

    normalized_score: float   # 0-1000 before clamping
    data_point_count: int
    reliability: float        # 0-1 before the declared ceiling


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def saturating_points(value: float, breakpoints: Sequence[tuple[float, float]]) -> float:
    """
    Piecewise-linear saturating curve.

    ``breakpoints`` is an ascending sequence of ``(input, points)`` pairs.
    Values below the first breakpoint get its points, values between two
    breakpoints are interpolated linearly, values beyond the last breakpoint
    saturate at its points.

    Example:
        >>> saturating_points(550, [(0, 0), (100, 10), (1000, 20)])
        15.0
    """
    if not breakpoints:
        return 0.0

    first_x, first_y = breakpoints[0]
    if value <= first_x:
        return float(first_y)

    for (x0, y0), (x1, y1) in zip(breakpoints, breakpoints[1:]):
        if value <= x1:
            return y0 + (y1 - y0) * (value - x0) / (x1 - x0)

    return float(breakpoints[-1][1])


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts datetimes (naive ones are treated as UTC), ISO-8601 strings
    (a trailing ``Z`` is allowed), and epoch seconds or milliseconds.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, bool):
        raise ValueError("boolean is not a timestamp")

    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(value):
                raise ValueError("timestamp must be finite")
            seconds = value / 1000 if abs(value) > _EPOCH_MILLIS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {value}") from e

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parse_timestamp(parsed)

    raise ValueError(f"unsupported timestamp type: {type(value).__name__}")


def age_in_days(then: datetime, now: datetime) -> float:
    """Age of ``then`` relative to ``now`` in days, never negative."""
    return max(0.0, (now - then).total_seconds() / SECONDS_PER_DAY)


def payload_digest(payload: Any) -> str:
    """SHA-256 of the payload's canonical JSON, for audit and debugging."""
    try:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        # Mixed-type keys cannot be sorted
        canonical = repr(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Adapter base class
# ---------------------------------------------------------------------------


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses set ``kind`` and implement ``_evaluate``; the base class owns
    the shared parts of the contract: payload shape checks, the declared
    reliability ceiling, defensive clamping and the audit digest.
    """

    kind: ClassVar[SourceKind]

    def interpret(
        self,
        agent_id: str,
        raw_payload: Any,
        *,
        config: SourceConfig | None = None,
        now: datetime | None = None,
    ) -> SourceReading:
        """
        Validate and normalize one raw payload into a SourceReading.

        Args:
            agent_id: The agent identity being scored
            raw_payload: Source-specific payload fetched by the caller
            config: The source's configuration; its options tune the formula
                and its declared reliability caps the computed reliability
            now: Reference time for age computations and ``fetched_at``

        Returns:
            SourceReading with a score in [0, 1000] and reliability in [0, 1]

        Raises:
            InvalidPayloadError: If the payload does not have the required shape
            OutOfRangeRawScoreError: If a declared-scale score is out of range
        """
        if config is not None and config.kind != self.kind:
            raise ConfigurationError(
                f"Config for {config.kind.value} passed to {self.kind.value} adapter"
            )
        if not isinstance(agent_id, str) or not agent_id.strip():
            raise InvalidPayloadError(
                "agent_id must be a non-empty string", kind=self.kind, field="agent_id"
            )
        if not isinstance(raw_payload, Mapping):
            raise InvalidPayloadError(
                f"Payload must be a mapping, got {type(raw_payload).__name__}",
                kind=self.kind,
            )

        now = parse_timestamp(now) if now is not None else utc_now()
        options: Mapping[str, Any] = config.options if config is not None else {}

        evaluation = self._evaluate(agent_id, raw_payload, options, now)

        reliability = evaluation.reliability
        if config is not None:
            reliability = min(reliability, config.declared_reliability)

        reading = SourceReading(
            kind=self.kind,
            normalized_score=clamp_score(evaluation.normalized_score),
            data_point_count=evaluation.data_point_count,
            computed_reliability=reliability,
            raw_payload_digest=payload_digest(raw_payload),
            fetched_at=now,
        )
        logger.debug(
            f"{self.kind.value} reading for {agent_id}: score={reading.normalized_score} "
            f"points={reading.data_point_count} reliability={reading.computed_reliability:.3f}"
        )
        return reading

    @abstractmethod
    def _evaluate(
        self,
        agent_id: str,
        payload: Mapping[str, Any],
        options: Mapping[str, Any],
        now: datetime,
    ) -> SourceEvaluation:
        """Apply the source-specific formula to a payload that is a mapping."""
        ...

    # ─── Field Validation ────────────────────────────────────────────

    def _invalid(self, message: str, field: str | None = None) -> InvalidPayloadError:
        return InvalidPayloadError(message, kind=self.kind, field=field)

    def _require(self, payload: Mapping[str, Any], name: str, default: Any = _MISSING) -> Any:
        """Return a field, failing if it is absent (or None) and has no default."""
        value = payload.get(name)
        if value is None:
            if default is _MISSING:
                raise self._invalid(f"Missing required field '{name}'", field=name)
            return default
        return value

    def _count(self, payload: Mapping[str, Any], name: str, default: Any = _MISSING) -> int:
        """Non-negative integer field. Integral floats such as 10.0 are accepted."""
        value = self._require(payload, name, default)
        if value is None:
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._invalid(
                f"Field '{name}' must be an integer, got {type(value).__name__}", field=name
            )
        if isinstance(value, float):
            if not math.isfinite(value) or not value.is_integer():
                raise self._invalid(f"Field '{name}' must be a whole number", field=name)
            value = int(value)
        if value < 0:
            raise self._invalid(f"Field '{name}' must not be negative", field=name)
        try:
            float(value)
        except OverflowError as e:
            raise self._invalid(f"Field '{name}' is too large", field=name) from e
        return value

    def _number(self, payload: Mapping[str, Any], name: str, default: Any = _MISSING) -> float:
        """Finite numeric field."""
        value = self._require(payload, name, default)
        if value is None:
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._invalid(
                f"Field '{name}' must be a number, got {type(value).__name__}", field=name
            )
        try:
            number = float(value)
        except OverflowError as e:
            raise self._invalid(f"Field '{name}' is too large", field=name) from e
        if not math.isfinite(number):
            raise self._invalid(f"Field '{name}' must be finite", field=name)
        return number

    def _string(self, payload: Mapping[str, Any], name: str, default: Any = _MISSING) -> str:
        value = self._require(payload, name, default)
        if value is None:
            return value
        if not isinstance(value, str):
            raise self._invalid(
                f"Field '{name}' must be a string, got {type(value).__name__}", field=name
            )
        return value

    def _flag(self, payload: Mapping[str, Any], name: str, default: Any = _MISSING) -> bool:
        value = self._require(payload, name, default)
        if value is None:
            return value
        if not isinstance(value, bool):
            raise self._invalid(
                f"Field '{name}' must be a boolean, got {type(value).__name__}", field=name
            )
        return value

    def _list(self, payload: Mapping[str, Any], name: str, default: Any = _MISSING) -> list[Any]:
        value = self._require(payload, name, default)
        if value is None:
            return value
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise self._invalid(
                f"Field '{name}' must be a list, got {type(value).__name__}", field=name
            )
        return list(value)

    def _timestamp(
        self,
        payload: Mapping[str, Any],
        name: str,
        default: Any = _MISSING,
    ) -> datetime | None:
        value = self._require(payload, name, default)
        if value is None:
            return None
        try:
            return parse_timestamp(value)
        except (TypeError, ValueError, OverflowError) as e:
            raise self._invalid(f"Field '{name}' is not a valid timestamp: {e}", field=name) from e

    def _check_subject(self, agent_id: str, payload: Mapping[str, Any], name: str) -> None:
        """If the payload names its subject, it must be exactly the agent being scored."""
        subject = self._string(payload, name, default=None)
        if subject is not None and subject.strip() != agent_id.strip():
            raise self._invalid(
                f"Payload field '{name}' refers to {subject!r}, not {agent_id!r}", field=name
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r})"


__all__ = [
    "SourceAdapter",
    "SourceEvaluation",
    "age_in_days",
    "parse_timestamp",
    "payload_digest",
    "saturating_points",
]

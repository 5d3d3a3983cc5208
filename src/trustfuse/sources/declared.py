"""
Declared-Scale Adapters — attestation feeds and operator webhooks.

These sources hand us a score already computed by a third party on a
declared scale. They cannot be verified independently, so the adapters:

1. Reject scores outside the declared scale (OutOfRangeRawScoreError)
   instead of clamping them, to surface misbehaving integrations
2. Rescale the score linearly onto 0-1000
3. Compute reliability from evidence volume and freshness, never above
   a fixed ceiling regardless of how much evidence is supplied

Options (SourceConfig.options):
    scale_min, scale_max   declared scale (defaults per adapter)
    reliability_cap        may lower the adapter's ceiling, never raise it
"""

from __future__ import annotations

import math
from abc import abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar

from trustfuse.core.exceptions import ConfigurationError, OutOfRangeRawScoreError
from trustfuse.core.types import MAX_SCORE, SourceKind
from trustfuse.sources.base import SourceAdapter, SourceEvaluation, age_in_days

# Evidence count at which the volume factor saturates
EVIDENCE_SATURATION = 10

# (max age in days, factor), checked in order
FRESHNESS_BANDS = ((7, 1.0), (30, 0.8), (90, 0.5))
STALE_FACTOR = 0.25
UNKNOWN_AGE_FACTOR = 0.8


def volume_factor(evidence_count: int) -> float:
    """0.5 with one piece of evidence, rising linearly to 1.0 at saturation."""
    return 0.5 + 0.5 * min(1.0, evidence_count / EVIDENCE_SATURATION)


def freshness_factor(age_days: float | None) -> float:
    """Step-down factor for how old the declared score is."""
    if age_days is None:
        return UNKNOWN_AGE_FACTOR
    for max_age, factor in FRESHNESS_BANDS:
        if age_days <= max_age:
            return factor
    return STALE_FACTOR


class DeclaredScaleAdapter(SourceAdapter):
    """
    Shared logic for sources that report a score on a declared scale.

    Subclasses declare the default scale, the reliability ceiling, and which
    payload fields carry the subject, evidence count and issue time.
    """

    default_scale_min: ClassVar[float] = 0.0
    default_scale_max: ClassVar[float] = 100.0
    reliability_ceiling: ClassVar[float] = 0.5
    subject_field: ClassVar[str] = "subject"
    issued_at_field: ClassVar[str] = "issued_at"

    def _evaluate(
        self,
        agent_id: str,
        payload: Mapping[str, Any],
        options: Mapping[str, Any],
        now: datetime,
    ) -> SourceEvaluation:
        scale_min, scale_max = self._scale(options)
        cap = self._cap(options)

        self._check_subject(agent_id, payload, self.subject_field)
        score = self._number(payload, "score")
        evidence_count = self._evidence_count(payload)
        issued_at = self._timestamp(payload, self.issued_at_field, default=None)

        if score < scale_min or score > scale_max:
            raise OutOfRangeRawScoreError(
                f"Score {score} outside declared scale [{scale_min}, {scale_max}]",
                value=score,
                scale_min=scale_min,
                scale_max=scale_max,
                kind=self.kind,
            )

        normalized = (score - scale_min) / (scale_max - scale_min) * MAX_SCORE

        age = age_in_days(issued_at, now) if issued_at is not None else None
        reliability = cap * volume_factor(evidence_count) * freshness_factor(age)

        return SourceEvaluation(
            normalized_score=normalized,
            data_point_count=evidence_count,
            reliability=reliability,
        )

    @abstractmethod
    def _evidence_count(self, payload: Mapping[str, Any]) -> int:
        """Number of independent observations behind the declared score."""
        ...

    def _scale(self, options: Mapping[str, Any]) -> tuple[float, float]:
        scale_min = options.get("scale_min", self.default_scale_min)
        scale_max = options.get("scale_max", self.default_scale_max)
        for name, value in (("scale_min", scale_min), ("scale_max", scale_max)):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationError(
                    f"{self.kind.value} option {name} must be a finite number",
                    details={name: value},
                )
        if scale_max <= scale_min:
            raise ConfigurationError(
                f"{self.kind.value} declared scale is empty",
                details={"scale_min": scale_min, "scale_max": scale_max},
            )
        return float(scale_min), float(scale_max)

    def _cap(self, options: Mapping[str, Any]) -> float:
        cap = options.get("reliability_cap", self.reliability_ceiling)
        if isinstance(cap, bool) or not isinstance(cap, (int, float)) or not 0 <= cap <= 1:
            raise ConfigurationError(
                f"{self.kind.value} option reliability_cap must be within [0, 1]",
                details={"reliability_cap": cap},
            )
        return min(float(cap), self.reliability_ceiling)


class AttestationFeedAdapter(DeclaredScaleAdapter):
    """
    Third-party attestation service.

    Payload:
        {"subject": "5VKz...", "score": 82, "attestation_count": 4,
         "issued_at": "2026-10-01T00:00:00Z"}
    """

    kind = SourceKind.ATTESTATION_FEED
    default_scale_min = 0.0
    default_scale_max = 100.0
    reliability_ceiling = 0.6
    subject_field = "subject"
    issued_at_field = "issued_at"

    def _evidence_count(self, payload: Mapping[str, Any]) -> int:
        return self._count(payload, "attestation_count", default=1)


class OperatorWebhookAdapter(DeclaredScaleAdapter):
    """
    Operator-supplied webhook, scored in basis points by default.

    Payload (see trustfuse.webhooks for signature verification):
        {"source": "internal-metrics", "agent_address": "5VKz...",
         "score": 8200, "evidence": [...], "timestamp": 1760000000000}
    """

    kind = SourceKind.OPERATOR_WEBHOOK
    default_scale_min = 0.0
    default_scale_max = 10_000.0
    reliability_ceiling = 0.5
    subject_field = "agent_address"
    issued_at_field = "timestamp"

    def _evidence_count(self, payload: Mapping[str, Any]) -> int:
        if payload.get("evidence") is not None:
            return len(self._list(payload, "evidence"))
        return self._count(payload, "evidence_count", default=1)


__all__ = [
    "AttestationFeedAdapter",
    "DeclaredScaleAdapter",
    "OperatorWebhookAdapter",
    "freshness_factor",
    "volume_factor",
]

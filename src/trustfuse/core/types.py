"""
Type definitions for TrustFuse.

Shared data structures passed between source adapters, the registry,
the aggregator and the score cache.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from trustfuse.core.exceptions import ConfigurationError, UnknownSourceKindError

# Canonical score scale
MIN_SCORE = 0
MAX_SCORE = 1000

# Basis points bounds for weights and declared reliabilities
MAX_BPS = 10_000


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SourceKind(str, Enum):
    """
    Closed set of evidence categories the engine can combine.

    Declaration order is the canonical order used for per-source
    breakdowns, so it must not be rearranged.
    """

    ONCHAIN_PAYMENT_HISTORY = "onchain_payment_history"
    CODE_HOSTING_ACTIVITY = "code_hosting_activity"
    ATTESTATION_FEED = "attestation_feed"
    OPERATOR_WEBHOOK = "operator_webhook"

    @classmethod
    def from_string(cls, value: str | SourceKind) -> SourceKind:
        """Parse a kind from its value or member name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnknownSourceKindError(value)

        normalized = value.strip().lower().replace("-", "_")
        for kind in cls:
            if normalized in (kind.value, kind.name.lower()):
                return kind
        raise UnknownSourceKindError(value)

    @property
    def env_key(self) -> str:
        """Segment used in TRUSTFUSE_SOURCE_<KIND>_* environment variables."""
        return self.value.upper()


class ReputationTier(str, Enum):
    """Coarse, human-facing bucket derived from the final score."""

    UNPROVEN = "unproven"
    DEVELOPING = "developing"
    ESTABLISHED = "established"
    TRUSTED = "trusted"
    ELITE = "elite"


class SourceStatus(str, Enum):
    """Why a source does or does not count towards the final score."""

    INCLUDED = "included"        # Reading with evidence, weighted in
    NO_EVIDENCE = "no_evidence"  # Reading present but data_point_count == 0
    ZERO_WEIGHT = "zero_weight"  # Reading with evidence but weight or reliability is 0
    MISSING = "missing"          # Enabled source with no reading this run
    FAILED = "failed"            # Adapter or fetch rejected the payload


# Lower bound of each tier, highest first. Bounds are inclusive.
TIER_THRESHOLDS: tuple[tuple[int, ReputationTier], ...] = (
    (900, ReputationTier.ELITE),
    (700, ReputationTier.TRUSTED),
    (450, ReputationTier.ESTABLISHED),
    (200, ReputationTier.DEVELOPING),
    (0, ReputationTier.UNPROVEN),
)


def tier_for_score(score: int) -> ReputationTier:
    """
    Map a 0-1000 score to its tier.

    Ranges are half-open except the last: [0,200) UNPROVEN,
    [200,450) DEVELOPING, [450,700) ESTABLISHED, [700,900) TRUSTED,
    [900,1000] ELITE.
    """
    for lower_bound, tier in TIER_THRESHOLDS:
        if score >= lower_bound:
            return tier
    return ReputationTier.UNPROVEN


def clamp_score(value: float) -> int:
    """Clamp any numeric value onto the canonical [0, 1000] integer scale."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return MIN_SCORE
    if math.isinf(value):
        return MAX_SCORE if value > 0 else MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, int(round(value))))


def clamp_unit(value: float) -> float:
    """Clamp a value into [0.0, 1.0]; NaN becomes 0.0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


# ---------------------------------------------------------------------------
# Source configuration
# ---------------------------------------------------------------------------


def _check_bps(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(
            f"{name} must be an integer number of basis points",
            details={name: value},
        )
    if not 0 <= value <= MAX_BPS:
        raise ConfigurationError(
            f"{name} must be within [0, {MAX_BPS}]",
            details={name: value},
        )


@dataclass(frozen=True)
class SourceConfig:
    """
    Operator configuration for one source kind.

    Weights of enabled sources do not need to add up to 10000; the
    aggregator renormalizes at combination time. The declared reliability
    acts as a ceiling on whatever reliability the adapter computes.
    """

    kind: SourceKind
    weight_bps: int
    declared_reliability_bps: int = MAX_BPS
    enabled: bool = True
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", SourceKind.from_string(self.kind))
        _check_bps("weight_bps", self.weight_bps)
        _check_bps("declared_reliability_bps", self.declared_reliability_bps)
        if not isinstance(self.enabled, bool):
            raise ConfigurationError(
                "enabled must be a boolean", details={"enabled": self.enabled}
            )
        if not isinstance(self.options, Mapping):
            raise ConfigurationError(
                "options must be a mapping", details={"options": self.options}
            )
        object.__setattr__(self, "options", dict(self.options))

    @property
    def declared_reliability(self) -> float:
        """Declared reliability as a fraction in [0, 1]."""
        return self.declared_reliability_bps / MAX_BPS

    def with_updates(self, **updates: Any) -> SourceConfig:
        """Create a new SourceConfig with updated values."""
        return replace(self, **updates)


# ---------------------------------------------------------------------------
# Readings and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceReading:
    """
    One adapter's normalized contribution for one agent.

    Scores and reliabilities are clamped on construction so that no
    reading can carry an out-of-range value.
    """

    kind: SourceKind
    normalized_score: int
    data_point_count: int
    computed_reliability: float
    raw_payload_digest: str = ""
    fetched_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", SourceKind.from_string(self.kind))
        object.__setattr__(self, "normalized_score", clamp_score(self.normalized_score))
        object.__setattr__(self, "data_point_count", max(0, int(self.data_point_count)))
        object.__setattr__(
            self, "computed_reliability", clamp_unit(self.computed_reliability)
        )

    @property
    def has_evidence(self) -> bool:
        """Whether the reading is backed by at least one data point."""
        return self.data_point_count > 0


@dataclass(frozen=True)
class SourceContribution:
    """Per-source line of a ReputationResult breakdown."""

    kind: SourceKind
    normalized_score: int
    effective_weight: float
    included: bool
    status: SourceStatus
    contribution: float = 0.0    # Points of the final score owed to this source
    reliability: float = 0.0
    data_point_count: int = 0
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dictionary."""
        return {
            "kind": self.kind.value,
            "normalized_score": self.normalized_score,
            "effective_weight": self.effective_weight,
            "included": self.included,
            "status": self.status.value,
            "contribution": self.contribution,
            "reliability": self.reliability,
            "data_point_count": self.data_point_count,
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SourceContribution:
        """Rebuild from to_dict() output."""
        return cls(
            kind=SourceKind.from_string(data["kind"]),
            normalized_score=int(data["normalized_score"]),
            effective_weight=float(data["effective_weight"]),
            included=bool(data["included"]),
            status=SourceStatus(data["status"]),
            contribution=float(data.get("contribution", 0.0)),
            reliability=float(data.get("reliability", 0.0)),
            data_point_count=int(data.get("data_point_count", 0)),
            detail=data.get("detail"),
        )


@dataclass(frozen=True)
class ReputationResult:
    """
    Aggregated reputation for one agent from one aggregation run.

    The tier is derived from the score alone; confidence is reported
    separately and never blended into the score.
    """

    agent_id: str
    final_score: int
    tier: ReputationTier
    per_source: tuple[SourceContribution, ...]
    overall_confidence: float
    computed_at: datetime = field(default_factory=utc_now)
    has_conflict: bool = False
    score_spread: int = 0

    @property
    def included_kinds(self) -> tuple[SourceKind, ...]:
        """Kinds that were weighted into the final score."""
        return tuple(entry.kind for entry in self.per_source if entry.included)

    def contribution_for(self, kind: SourceKind) -> SourceContribution | None:
        """Breakdown entry for a kind, if the kind was enabled."""
        for entry in self.per_source:
            if entry.kind == kind:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dictionary."""
        return {
            "agent_id": self.agent_id,
            "final_score": self.final_score,
            "tier": self.tier.value,
            "overall_confidence": self.overall_confidence,
            "computed_at": self.computed_at.isoformat(),
            "has_conflict": self.has_conflict,
            "score_spread": self.score_spread,
            "per_source": [entry.to_dict() for entry in self.per_source],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReputationResult:
        """Rebuild from to_dict() output."""
        return cls(
            agent_id=data["agent_id"],
            final_score=int(data["final_score"]),
            tier=ReputationTier(data["tier"]),
            per_source=tuple(
                SourceContribution.from_dict(entry) for entry in data.get("per_source", [])
            ),
            overall_confidence=float(data["overall_confidence"]),
            computed_at=datetime.fromisoformat(data["computed_at"]),
            has_conflict=bool(data.get("has_conflict", False)),
            score_spread=int(data.get("score_spread", 0)),
        )

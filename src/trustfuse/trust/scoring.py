"""
Reputation Aggregator — fuses SourceReadings into one ReputationResult.

Algorithm:
1. Keep one reading per enabled kind (latest ``fetched_at`` wins)
2. Readings with no data points or no effective weight stay in the breakdown
   but are not weighted and never count towards a conflict
3. effective_weight = weight_bps x computed_reliability
4. final_score = round(sum(ew x score) / sum(ew)), half-up
5. overall_confidence = sum(ew) / sum(weight_bps of every enabled source)
6. Tier from the score alone; confidence is reported beside it
7. Conflict flag when included scores spread further than the threshold

The aggregator never raises on well-formed input: no sources, a single
source and all-zero evidence all resolve to a defined result. Adapter
errors never reach it; the caller reports them through ``failures``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from trustfuse.core.logging import get_logger
from trustfuse.core.types import (
    ReputationResult,
    ReputationTier,
    SourceConfig,
    SourceContribution,
    SourceKind,
    SourceReading,
    SourceStatus,
    clamp_score,
    clamp_unit,
    tier_for_score,
    utc_now,
)

logger = get_logger("trust.scoring")

# 30% of the 0-1000 scale
DEFAULT_CONFLICT_THRESHOLD = 300


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 always rounding up."""
    return int(math.floor(value + 0.5))


def _reading_rank(reading: SourceReading) -> tuple[Any, ...]:
    return (
        reading.fetched_at,
        reading.data_point_count,
        reading.normalized_score,
        reading.computed_reliability,
    )


class ReputationAggregator:
    """
    Combines per-source readings into a deterministic, explainable score.

    Stateless apart from its conflict threshold, so a single instance can
    be shared across agents and threads.
    """

    def __init__(self, conflict_threshold: int = DEFAULT_CONFLICT_THRESHOLD) -> None:
        """
        Args:
            conflict_threshold: Spread (0-1000 scale) between the highest and
                lowest included score above which the result is flagged
        """
        self._conflict_threshold = conflict_threshold

    @property
    def conflict_threshold(self) -> int:
        return self._conflict_threshold

    def aggregate(
        self,
        agent_id: str,
        readings: Iterable[SourceReading],
        sources: Iterable[SourceConfig | tuple[Any, ...]],
        *,
        failures: Mapping[SourceKind, Any] | None = None,
        now: datetime | None = None,
    ) -> ReputationResult:
        """
        Aggregate readings for one agent.

        Args:
            agent_id: The agent being scored
            readings: Valid readings, in any order
            sources: Enabled source configs, as SourceConfig objects or the
                ``(kind, config, adapter)`` triples of
                ``SourceRegistry.enabled_sources()``
            failures: Kinds whose payload was rejected or could not be
                fetched, with the reason; reported as FAILED entries
            now: Timestamp for ``computed_at``

        Returns:
            ReputationResult with ``per_source`` in SourceKind declaration order
        """
        configs = self._enabled_configs(sources)
        selected = self._select_readings(readings, configs)
        failures = failures or {}

        configured_weight = sum(config.weight_bps for config in configs.values())

        # First pass: effective weights, in canonical order
        rows: list[tuple[SourceKind, SourceReading | None, float, SourceStatus, str | None]] = []
        weighted_sum = 0.0
        effective_total = 0.0

        for kind in SourceKind:
            config = configs.get(kind)
            if config is None:
                continue

            reading = selected.get(kind)
            if reading is None:
                if kind in failures:
                    rows.append((kind, None, 0.0, SourceStatus.FAILED, str(failures[kind])))
                else:
                    rows.append((kind, None, 0.0, SourceStatus.MISSING, None))
                continue

            if not reading.has_evidence:
                rows.append((kind, reading, 0.0, SourceStatus.NO_EVIDENCE, None))
                continue

            effective_weight = config.weight_bps * reading.computed_reliability
            if effective_weight <= 0:
                rows.append((kind, reading, 0.0, SourceStatus.ZERO_WEIGHT, None))
                continue

            weighted_sum += effective_weight * reading.normalized_score
            effective_total += effective_weight
            rows.append((kind, reading, effective_weight, SourceStatus.INCLUDED, None))

        if effective_total > 0:
            raw_score = weighted_sum / effective_total
            final_score = clamp_score(round_half_up(raw_score))
            confidence = (
                clamp_unit(effective_total / configured_weight) if configured_weight > 0 else 0.0
            )
            tier = tier_for_score(final_score)
        else:
            final_score = 0
            confidence = 0.0
            tier = ReputationTier.UNPROVEN

        # Second pass: attribution
        per_source: list[SourceContribution] = []
        included_scores: list[int] = []
        for kind, reading, effective_weight, status, detail in rows:
            included = status is SourceStatus.INCLUDED
            contribution = 0.0
            if included and effective_total > 0:
                contribution = effective_weight * reading.normalized_score / effective_total
                included_scores.append(reading.normalized_score)
            per_source.append(
                SourceContribution(
                    kind=kind,
                    normalized_score=reading.normalized_score if reading else 0,
                    effective_weight=effective_weight,
                    included=included,
                    status=status,
                    contribution=contribution,
                    reliability=reading.computed_reliability if reading else 0.0,
                    data_point_count=reading.data_point_count if reading else 0,
                    detail=detail,
                )
            )

        spread, has_conflict = self._detect_conflict(included_scores)
        if has_conflict:
            logger.info(
                f"Source conflict for {agent_id}: spread {spread} "
                f"(max: {max(included_scores)}, min: {min(included_scores)})"
            )

        result = ReputationResult(
            agent_id=agent_id,
            final_score=final_score,
            tier=tier,
            per_source=tuple(per_source),
            overall_confidence=confidence,
            computed_at=now or utc_now(),
            has_conflict=has_conflict,
            score_spread=spread,
        )

        logger.debug(
            f"Aggregated {agent_id}: score={final_score} tier={tier.value} "
            f"confidence={confidence:.3f} included={len(included_scores)}/{len(rows)}"
        )
        return result

    # ─── Helper Methods ──────────────────────────────────────────────

    @staticmethod
    def _enabled_configs(
        sources: Iterable[SourceConfig | tuple[Any, ...]],
    ) -> dict[SourceKind, SourceConfig]:
        configs: dict[SourceKind, SourceConfig] = {}
        for item in sources:
            config = item if isinstance(item, SourceConfig) else item[1]
            if config.enabled:
                configs[config.kind] = config
        return configs

    @staticmethod
    def _select_readings(
        readings: Iterable[SourceReading],
        configs: Mapping[SourceKind, SourceConfig],
    ) -> dict[SourceKind, SourceReading]:
        """One reading per enabled kind; the pick does not depend on input order."""
        selected: dict[SourceKind, SourceReading] = {}
        for reading in readings:
            if reading.kind not in configs:
                logger.debug(f"Ignoring reading for disabled source {reading.kind.value}")
                continue
            current = selected.get(reading.kind)
            if current is None or _reading_rank(reading) > _reading_rank(current):
                selected[reading.kind] = reading
        return selected

    def _detect_conflict(self, scores: list[int]) -> tuple[int, bool]:
        if len(scores) < 2:
            return 0, False
        spread = max(scores) - min(scores)
        return spread, spread > self._conflict_threshold


__all__ = ["ReputationAggregator", "DEFAULT_CONFLICT_THRESHOLD", "round_half_up"]

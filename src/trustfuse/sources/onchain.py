"""
On-Chain Payment History Adapter.

Scores verified settlement events associated with an agent's address.
Settlements are cryptographically verifiable, so reliability starts near
1.0 and is discounted only for a low event count, never for recency.

Adversarial filtering before scoring:
1. Events whose ``signature`` was already seen are counted once (replays)
2. Events whose ``payer`` is the agent itself are dropped (wash payments)

Raw score (0-100):
    settlement count     40  (0 -> 0, 10 -> 15, 100 -> 30, 1000+ -> 40)
    settled volume       30  (whole units: 0 -> 0, 100 -> 10, 10k -> 20, 1M+ -> 30)
    dispute quality      30  (30 x max(0, 1 - 2 x dispute_rate); 0 with no events)

Payload:
    {
        "address": "5VKz...",            # optional, must match the agent id
        "decimals": 6,                   # optional token decimals (default 6)
        "events": [
            {"amount": 1500000, "signature": "4hXT...", "payer": "9aB...",
             "disputed": false, "settled_at": "2026-01-02T10:00:00Z"},
        ],
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from trustfuse.core.types import SourceKind
from trustfuse.sources.base import SourceAdapter, SourceEvaluation, saturating_points

COUNT_BREAKPOINTS = ((0, 0), (10, 15), (100, 30), (1_000, 40))
VOLUME_BREAKPOINTS = ((0, 0), (100, 10), (10_000, 20), (1_000_000, 30))
DISPUTE_POINTS = 30
DISPUTE_PENALTY = 2.0

DEFAULT_DECIMALS = 6
MAX_DECIMALS = 18

BASE_RELIABILITY = 0.98
FEW_EVENTS = 5
FEW_EVENTS_FACTOR = 0.6
MODEST_EVENTS = 20
MODEST_EVENTS_FACTOR = 0.85


class OnChainPaymentAdapter(SourceAdapter):
    """Adapter for verified on-chain settlement history."""

    kind = SourceKind.ONCHAIN_PAYMENT_HISTORY

    def _evaluate(
        self,
        agent_id: str,
        payload: Mapping[str, Any],
        options: Mapping[str, Any],
        now: datetime,
    ) -> SourceEvaluation:
        self._check_subject(agent_id, payload, "address")
        decimals = self._count(
            payload, "decimals", default=options.get("decimals", DEFAULT_DECIMALS)
        )
        if decimals > MAX_DECIMALS:
            raise self._invalid(f"Field 'decimals' must be <= {MAX_DECIMALS}", field="decimals")

        events = self._list(payload, "events")

        agent_key = agent_id.strip()
        seen_signatures: set[str] = set()
        count = 0
        disputed = 0
        volume_base_units = 0.0

        for index, event in enumerate(events):
            if not isinstance(event, Mapping):
                raise self._invalid(
                    f"events[{index}] must be a mapping, got {type(event).__name__}",
                    field="events",
                )
            amount = self._number(event, "amount")
            if amount < 0:
                raise self._invalid(f"events[{index}].amount must not be negative", field="amount")
            signature = self._string(event, "signature", default=None)
            payer = self._string(event, "payer", default=None)
            is_disputed = self._flag(event, "disputed", default=False)
            self._timestamp(event, "settled_at", default=None)

            if signature is not None:
                if signature in seen_signatures:
                    continue
                seen_signatures.add(signature)
            if payer is not None and payer.strip() == agent_key:
                continue

            count += 1
            volume_base_units += amount
            if is_disputed:
                disputed += 1

        volume = volume_base_units / (10 ** decimals)

        raw_score = saturating_points(count, COUNT_BREAKPOINTS) + saturating_points(
            volume, VOLUME_BREAKPOINTS
        )
        if count:
            dispute_rate = disputed / count
            raw_score += DISPUTE_POINTS * max(0.0, 1.0 - DISPUTE_PENALTY * dispute_rate)

        return SourceEvaluation(
            normalized_score=raw_score * 10,
            data_point_count=count,
            reliability=self._reliability(count),
        )

    @staticmethod
    def _reliability(event_count: int) -> float:
        """Volume-only discount; verifiable events do not lose trust with age."""
        if event_count < FEW_EVENTS:
            return BASE_RELIABILITY * FEW_EVENTS_FACTOR
        if event_count < MODEST_EVENTS:
            return BASE_RELIABILITY * MODEST_EVENTS_FACTOR
        return BASE_RELIABILITY


__all__ = ["OnChainPaymentAdapter"]

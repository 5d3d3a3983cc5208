"""
Reputation Engine — multi-source scoring orchestrator.

Orchestrates: cache → registry snapshot → payload fetch → adapter
interpretation → aggregation → cache store.

The core pieces (adapters, registry, aggregator) never perform I/O.
Payloads are either supplied by the caller or produced by per-kind async
fetchers; a source whose payload is absent is reported as MISSING, one
whose fetch or interpretation failed as FAILED. Neither ever aborts the
run.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from trustfuse.core.exceptions import SourceError
from trustfuse.core.logging import get_logger
from trustfuse.core.types import ReputationResult, SourceConfig, SourceKind, SourceReading, utc_now
from trustfuse.trust.cache import ScoreCache
from trustfuse.trust.provider import DEFAULT_TIMEOUT, PayloadFetcher
from trustfuse.trust.registry import EnabledSource, SourceRegistry
from trustfuse.trust.scoring import ReputationAggregator

if TYPE_CHECKING:
    from trustfuse.core.config import Config
    from trustfuse.storage.base import StorageBackend
    from trustfuse.trust.provider import SourceProvider

logger = get_logger("trust.engine")

# Sentinel for "no payload for this kind"
_ABSENT = object()


class ReputationEngine:
    """
    Computes and caches ReputationResults for agents.

    Usage:
        engine = ReputationEngine.from_config(Config.from_env())
        result = await engine.score(
            "5VKz...",
            payloads={SourceKind.CODE_HOSTING_ACTIVITY: github_stats},
        )
    """

    def __init__(
        self,
        registry: SourceRegistry | None = None,
        *,
        cache: ScoreCache | None = None,
        fetchers: Mapping[SourceKind | str, PayloadFetcher] | None = None,
        aggregator: ReputationAggregator | None = None,
        fetch_timeout: float = DEFAULT_TIMEOUT,
        provider: SourceProvider | None = None,
    ) -> None:
        """
        Args:
            registry: Source configuration and adapters (defaults if None)
            cache: Result cache; results are not cached if None
            fetchers: Async ``fetcher(agent_id) -> payload`` per kind, used
                      when the caller does not supply that kind's payload
            aggregator: Scoring aggregator (default conflict threshold if None)
            fetch_timeout: Per-source fetch timeout in seconds
            provider: HTTP provider shared by the fetchers, closed by close()
        """
        self._registry = registry or SourceRegistry()
        self._cache = cache
        self._fetchers: dict[SourceKind, PayloadFetcher] = {
            SourceKind.from_string(kind): fetcher for kind, fetcher in (fetchers or {}).items()
        }
        self._aggregator = aggregator or ReputationAggregator()
        self._fetch_timeout = fetch_timeout
        self._provider = provider

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        storage: StorageBackend | None = None,
        fetchers: Mapping[SourceKind | str, PayloadFetcher] | None = None,
        provider: SourceProvider | None = None,
    ) -> ReputationEngine:
        """
        Build an engine from Config.

        The storage backend defaults to ``config.storage_backend``; a
        ``cache_ttl`` of 0 disables caching.
        """
        cache = None
        if config.cache_ttl > 0:
            if storage is None:
                from trustfuse.storage import get_storage

                kwargs = {"redis_url": config.redis_url} if config.storage_backend == "redis" else {}
                storage = get_storage(config.storage_backend, **kwargs)
            cache = ScoreCache(storage, ttl=config.cache_ttl)

        return cls(
            SourceRegistry.from_config(config),
            cache=cache,
            fetchers=fetchers,
            aggregator=ReputationAggregator(conflict_threshold=config.conflict_threshold),
            fetch_timeout=config.fetch_timeout,
            provider=provider,
        )

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    @property
    def cache(self) -> ScoreCache | None:
        return self._cache

    # ─── Public API ──────────────────────────────────────────────────

    async def score(
        self,
        agent_id: str,
        payloads: Mapping[SourceKind | str, Any] | None = None,
        *,
        refresh: bool = False,
        now: datetime | None = None,
    ) -> ReputationResult:
        """
        Compute (or return the cached) reputation for an agent.

        Steps:
        1. Check the score cache (skipped on ``refresh`` or when the caller
           supplies payloads, which are always fresher than the cache)
        2. Snapshot the enabled sources
        3. Take supplied payloads; fetch the rest concurrently
        4. Interpret each payload with its adapter
        5. Aggregate and store the result

        Args:
            agent_id: Agent identity to score
            payloads: Raw payloads keyed by kind; missing kinds are fetched
            refresh: Bypass the cache read
            now: Reference time for adapters and ``computed_at``

        Raises:
            UnknownSourceKindError: If a payload key is not a known kind
            ConfigurationError: If a source's options are invalid
        """
        start_time = time.monotonic()

        if self._cache is not None and not refresh and payloads is None:
            cached = await self._cache.get(agent_id)
            if cached is not None:
                logger.debug(f"Cache hit for {agent_id}")
                return cached

        snapshot = self._registry.enabled_sources()
        supplied = self._normalize_payloads(payloads)
        resolved, failures = await self._collect_payloads(agent_id, snapshot, supplied)

        readings, interpret_failures = self._interpret(agent_id, snapshot, resolved, now)
        failures.update(interpret_failures)

        result = self._aggregator.aggregate(
            agent_id,
            readings,
            snapshot,
            failures=failures,
            now=now or utc_now(),
        )

        if self._cache is not None:
            await self._cache.set(agent_id, result)

        elapsed = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Reputation for {agent_id}: {result.final_score} ({result.tier.value}, "
            f"confidence: {result.overall_confidence:.2f}, sources: "
            f"{len(result.included_kinds)}/{len(snapshot)}, latency: {elapsed}ms)"
        )
        return result

    def evaluate(
        self,
        agent_id: str,
        payloads: Mapping[SourceKind | str, Any],
        *,
        now: datetime | None = None,
    ) -> ReputationResult:
        """
        Score already-fetched payloads synchronously, without cache or fetchers.

        Kinds absent from ``payloads`` are reported as MISSING.
        """
        snapshot = self._registry.enabled_sources()
        supplied = self._normalize_payloads(payloads)
        resolved = {kind: supplied[kind] for kind, _, _ in snapshot if kind in supplied}
        readings, failures = self._interpret(agent_id, snapshot, resolved, now)
        return self._aggregator.aggregate(
            agent_id, readings, snapshot, failures=failures, now=now or utc_now()
        )

    async def invalidate(self, agent_id: str) -> None:
        """Drop the cached result for an agent."""
        if self._cache is not None:
            await self._cache.invalidate(agent_id)

    async def reload(self, configs: list[SourceConfig] | tuple[SourceConfig, ...]) -> None:
        """
        Hot-reload source configuration.

        Runs that already took their snapshot finish with the old
        configuration. Cached results computed under it are dropped.
        """
        self._registry.configure_many(configs)
        if self._cache is not None:
            await self._cache.clear()
        logger.info(f"Reloaded {len(configs)} source configs")

    async def close(self) -> None:
        """Clean up resources (HTTP clients)."""
        if self._provider is not None:
            await self._provider.close()

    # ─── Internal Pipeline ───────────────────────────────────────────

    @staticmethod
    def _normalize_payloads(
        payloads: Mapping[SourceKind | str, Any] | None,
    ) -> dict[SourceKind, Any]:
        return {SourceKind.from_string(kind): payload for kind, payload in (payloads or {}).items()}

    async def _collect_payloads(
        self,
        agent_id: str,
        snapshot: tuple[EnabledSource, ...],
        supplied: Mapping[SourceKind, Any],
    ) -> tuple[dict[SourceKind, Any], dict[SourceKind, str]]:
        """Supplied payloads first; every other kind with a fetcher is fetched concurrently."""
        resolved: dict[SourceKind, Any] = {}
        to_fetch: list[SourceKind] = []
        for kind, _, _ in snapshot:
            if kind in supplied:
                resolved[kind] = supplied[kind]
            elif kind in self._fetchers:
                to_fetch.append(kind)

        failures: dict[SourceKind, str] = {}
        if not to_fetch:
            return resolved, failures

        outcomes = await asyncio.gather(*(self._fetch(kind, agent_id) for kind in to_fetch))
        for kind, (payload, error) in zip(to_fetch, outcomes):
            if error is not None:
                failures[kind] = error
            elif payload is not _ABSENT:
                resolved[kind] = payload
        return resolved, failures

    async def _fetch(self, kind: SourceKind, agent_id: str) -> tuple[Any, str | None]:
        """Run one fetcher; returns (payload, error). A None payload means no data."""
        fetcher = self._fetchers[kind]
        try:
            payload = await asyncio.wait_for(fetcher(agent_id), timeout=self._fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{kind.value} fetch for {agent_id} timed out after {self._fetch_timeout}s")
            return _ABSENT, f"fetch timed out after {self._fetch_timeout}s"
        except SourceError as e:
            logger.warning(f"{kind.value} fetch for {agent_id} failed: {e}")
            return _ABSENT, str(e)
        except Exception as e:
            # Third-party fetchers may raise anything; a source outage never aborts the run
            logger.error(f"{kind.value} fetcher raised {type(e).__name__} for {agent_id}: {e}")
            return _ABSENT, f"{type(e).__name__}: {e}"

        if payload is None:
            return _ABSENT, None
        return payload, None

    @staticmethod
    def _interpret(
        agent_id: str,
        snapshot: tuple[EnabledSource, ...],
        payloads: Mapping[SourceKind, Any],
        now: datetime | None,
    ) -> tuple[list[SourceReading], dict[SourceKind, str]]:
        readings: list[SourceReading] = []
        failures: dict[SourceKind, str] = {}
        for kind, config, adapter in snapshot:
            if kind not in payloads:
                continue
            try:
                readings.append(adapter.interpret(agent_id, payloads[kind], config=config, now=now))
            except SourceError as e:
                logger.warning(f"Rejected {kind.value} payload for {agent_id}: {e}")
                failures[kind] = str(e)
        return readings, failures


__all__ = ["ReputationEngine"]

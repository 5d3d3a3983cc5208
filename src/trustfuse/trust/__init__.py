"""Trust module — source registry, aggregation, caching and orchestration."""

from trustfuse.trust.cache import ScoreCache
from trustfuse.trust.engine import ReputationEngine
from trustfuse.trust.provider import HttpPayloadFetcher, SourceProvider
from trustfuse.trust.registry import SourceRegistry
from trustfuse.trust.scoring import ReputationAggregator

__all__ = [
    "ReputationEngine",
    "ScoreCache",
    "SourceRegistry",
    "ReputationAggregator",
    "SourceProvider",
    "HttpPayloadFetcher",
]

"""
TrustFuse - Multi-Source Reputation Engine for Autonomous Agents

Fuses on-chain payment history, code-hosting activity, attestation feeds
and operator webhooks into one deterministic, explainable score.

Usage:
    >>> from trustfuse import ReputationEngine, SourceKind
    >>>
    >>> engine = ReputationEngine()
    >>> result = engine.evaluate(
    ...     "5VKz...",
    ...     {SourceKind.CODE_HOSTING_ACTIVITY: github_stats},
    ... )
    >>> result.final_score, result.tier
"""

from trustfuse.core.config import Config
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
from trustfuse.core.logging import configure_logging, get_logger
from trustfuse.core.types import (
    ReputationResult,
    ReputationTier,
    SourceConfig,
    SourceContribution,
    SourceKind,
    SourceReading,
    SourceStatus,
    tier_for_score,
)
from trustfuse.sources import (
    AttestationFeedAdapter,
    CodeHostingAdapter,
    OnChainPaymentAdapter,
    OperatorWebhookAdapter,
    SourceAdapter,
)
from trustfuse.storage import InMemoryStorage, RedisStorage, StorageBackend, get_storage
from trustfuse.trust import (
    HttpPayloadFetcher,
    ReputationAggregator,
    ReputationEngine,
    ScoreCache,
    SourceProvider,
    SourceRegistry,
)
from trustfuse.webhooks import InvalidSignatureError, WebhookVerifier

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ReputationEngine",
    "SourceRegistry",
    "ReputationAggregator",
    "ScoreCache",
    "SourceProvider",
    "HttpPayloadFetcher",
    "WebhookVerifier",
    # Adapters
    "SourceAdapter",
    "OnChainPaymentAdapter",
    "CodeHostingAdapter",
    "AttestationFeedAdapter",
    "OperatorWebhookAdapter",
    # Storage
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    "get_storage",
    # Types
    "Config",
    "SourceKind",
    "SourceConfig",
    "SourceReading",
    "SourceContribution",
    "SourceStatus",
    "ReputationResult",
    "ReputationTier",
    "tier_for_score",
    # Exceptions
    "TrustFuseError",
    "ConfigurationError",
    "UnknownSourceKindError",
    "SourceError",
    "InvalidPayloadError",
    "OutOfRangeRawScoreError",
    "SourceUnavailableError",
    "ValidationError",
    "InvalidSignatureError",
    # Logging
    "configure_logging",
    "get_logger",
    "__version__",
]

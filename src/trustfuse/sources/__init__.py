"""Source adapters — one per SourceKind."""

from trustfuse.core.types import SourceKind
from trustfuse.sources.base import SourceAdapter, SourceEvaluation, parse_timestamp, saturating_points
from trustfuse.sources.code_hosting import CodeHostingAdapter
from trustfuse.sources.declared import (
    AttestationFeedAdapter,
    DeclaredScaleAdapter,
    OperatorWebhookAdapter,
)
from trustfuse.sources.onchain import OnChainPaymentAdapter


def default_adapters() -> dict[SourceKind, SourceAdapter]:
    """One fresh adapter instance per SourceKind."""
    adapters: list[SourceAdapter] = [
        OnChainPaymentAdapter(),
        CodeHostingAdapter(),
        AttestationFeedAdapter(),
        OperatorWebhookAdapter(),
    ]
    return {adapter.kind: adapter for adapter in adapters}


__all__ = [
    "SourceAdapter",
    "SourceEvaluation",
    "CodeHostingAdapter",
    "OnChainPaymentAdapter",
    "DeclaredScaleAdapter",
    "AttestationFeedAdapter",
    "OperatorWebhookAdapter",
    "default_adapters",
    "parse_timestamp",
    "saturating_points",
]

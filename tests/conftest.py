from datetime import datetime, timezone

import pytest

from trustfuse.core.types import SourceConfig, SourceKind, SourceReading
from trustfuse.storage.memory import InMemoryStorage

# Fixed reference time so age-dependent formulas are deterministic
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_reading(
    kind: SourceKind,
    score: int,
    reliability: float = 1.0,
    points: int = 10,
    fetched_at: datetime = NOW,
) -> SourceReading:
    return SourceReading(
        kind=kind,
        normalized_score=score,
        data_point_count=points,
        computed_reliability=reliability,
        fetched_at=fetched_at,
    )


def make_config(kind: SourceKind, weight: int, reliability: int = 10_000, **kwargs) -> SourceConfig:
    return SourceConfig(kind=kind, weight_bps=weight, declared_reliability_bps=reliability, **kwargs)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def code_hosting_payload() -> dict:
    """Five-year-old account with substantial, recent activity."""
    return {
        "login": "agent-builder",
        "commits": 1000,
        "stars": 100,
        "followers": 100,
        "public_repos": 20,
        "created_at": "2020-01-01T00:00:00Z",
        "last_active_at": "2026-10-01T00:00:00Z",
    }


@pytest.fixture
def onchain_payload() -> dict:
    """Twenty distinct settlements of 5 whole units each, none disputed."""
    return {
        "address": "agent-1",
        "decimals": 6,
        "events": [
            {
                "amount": 5_000_000,
                "signature": f"sig-{i}",
                "payer": f"payer-{i}",
                "disputed": False,
                "settled_at": "2026-09-01T00:00:00Z",
            }
            for i in range(20)
        ],
    }


@pytest.fixture
def attestation_payload() -> dict:
    return {
        "subject": "agent-1",
        "score": 80,
        "attestation_count": 10,
        "issued_at": "2026-10-17T00:00:00Z",
    }


@pytest.fixture
def webhook_payload() -> dict:
    return {
        "source": "internal-metrics",
        "agent_address": "agent-1",
        "score": 5000,
        "evidence": ["uptime"],
        "timestamp": "2026-10-18T00:00:00Z",
    }

"""
Example: Multi-Source Reputation

Scores one agent from four kinds of evidence and prints the breakdown.
Source weights and reliabilities come from TRUSTFUSE_* environment
variables (a .env file is honoured).

Set TRUSTFUSE_ATTESTATION_URL to fetch the attestation feed over HTTP,
e.g. https://attest.example.com/v1/subjects/{agent_id}
"""

import asyncio
import os

from dotenv import load_dotenv
load_dotenv()

from trustfuse import (
    Config,
    HttpPayloadFetcher,
    ReputationEngine,
    SourceKind,
    SourceProvider,
    configure_logging,
)

AGENT = "5VKzTtZ3mNp8QxRw"


async def main():
    print("=== TrustFuse Multi-Source Example ===\n")

    config = Config.from_env()
    configure_logging(config.log_level)

    fetchers = {}
    provider = None
    attestation_url = os.environ.get("TRUSTFUSE_ATTESTATION_URL")
    if attestation_url:
        provider = SourceProvider(timeout=config.fetch_timeout)
        fetchers[SourceKind.ATTESTATION_FEED] = HttpPayloadFetcher(
            provider, attestation_url, kind=SourceKind.ATTESTATION_FEED
        )

    engine = ReputationEngine.from_config(config, fetchers=fetchers, provider=provider)

    payloads = {
        SourceKind.ONCHAIN_PAYMENT_HISTORY: {
            "address": AGENT,
            "decimals": 6,
            "events": [
                {"amount": 2_500_000 * (i + 1), "signature": f"sig-{i}", "payer": f"payer-{i % 7}",
                 "disputed": i == 3, "settled_at": "2026-09-01T12:00:00Z"}
                for i in range(40)
            ],
        },
        SourceKind.CODE_HOSTING_ACTIVITY: {
            "login": "agent-builder",
            "commits": 2300,
            "stars": 140,
            "followers": 65,
            "public_repos": 22,
            "created_at": "2020-02-11T00:00:00Z",
            "last_active_at": "2026-10-10T00:00:00Z",
        },
        SourceKind.OPERATOR_WEBHOOK: {
            "source": "internal-metrics",
            "agent_address": AGENT,
            "score": 7800,
            "evidence": ["uptime", "latency", "task-success"],
            "timestamp": "2026-10-15T00:00:00Z",
        },
    }
    if not attestation_url:
        payloads[SourceKind.ATTESTATION_FEED] = {
            "subject": AGENT,
            "score": 64,
            "attestation_count": 5,
            "issued_at": "2026-10-12T00:00:00Z",
        }

    try:
        result = await engine.score(AGENT, payloads)
    finally:
        await engine.close()

    print(f"Agent:      {result.agent_id}")
    print(f"Score:      {result.final_score} ({result.tier.value})")
    print(f"Confidence: {result.overall_confidence:.2f}")
    if result.has_conflict:
        print(f"⚠️  Sources disagree (spread {result.score_spread})")
    print("\nBreakdown:")
    for entry in result.per_source:
        print(
            f"  {entry.kind.value:<24} {entry.status.value:<12} score={entry.normalized_score:<4} "
            f"weight={entry.effective_weight:8.1f} points={entry.contribution:6.1f}"
        )


if __name__ == "__main__":
    asyncio.run(main())

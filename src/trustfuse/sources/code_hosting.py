"""
Code-Hosting Activity Adapter.

Scores an agent's public code-hosting footprint (commits, stars, account
age, followers, repositories). The data comes from an external API and is
not backed by payments, so reliability starts at 0.7 and is discounted for
young accounts, thin commit history and stale activity.

Sub-score weights (sum to 100 raw points):
    commit volume        30
    stars                25
    account age          20
    followers            15
    public repositories  10

Required payload fields:
    commits, stars, followers, public_repos  non-negative integers
    created_at                               account creation timestamp

Optional payload fields:
    last_active_at                           most recent push/activity
    login                                    account name (string)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from trustfuse.core.types import SourceKind
from trustfuse.sources.base import SourceAdapter, SourceEvaluation, age_in_days, saturating_points

COMMIT_BREAKPOINTS = ((0, 0), (100, 10), (1_000, 20), (10_000, 30))
STAR_BREAKPOINTS = ((0, 0), (10, 5), (100, 15), (1_000, 25))
FOLLOWER_BREAKPOINTS = ((0, 0), (10, 5), (100, 10), (1_000, 15))
REPO_BREAKPOINTS = ((0, 0), (5, 3), (20, 7), (50, 10))

# (minimum age in years, points), checked oldest first
ACCOUNT_AGE_STEPS = ((5, 20), (3, 15), (1, 10), (0, 5))

DAYS_PER_YEAR = 365

BASE_RELIABILITY = 0.7
NEW_ACCOUNT_DAYS = 182          # ~6 months
NEW_ACCOUNT_FACTOR = 0.57
YOUNG_ACCOUNT_DAYS = DAYS_PER_YEAR
YOUNG_ACCOUNT_FACTOR = 0.71
LOW_VOLUME_COMMITS = 10
LOW_VOLUME_FACTOR = 0.7
STALE_ACTIVITY_DAYS = 180
STALE_ACTIVITY_FACTOR = 0.8


def account_age_points(age_days: float) -> int:
    """Stepped account-age sub-score: <1y 5, 1-3y 10, 3-5y 15, >=5y 20."""
    years = age_days / DAYS_PER_YEAR
    for min_years, points in ACCOUNT_AGE_STEPS:
        if years >= min_years:
            return points
    return ACCOUNT_AGE_STEPS[-1][1]


class CodeHostingAdapter(SourceAdapter):
    """Adapter for code-hosting activity (e.g. GitHub user + repo statistics)."""

    kind = SourceKind.CODE_HOSTING_ACTIVITY

    def _evaluate(
        self,
        agent_id: str,
        payload: Mapping[str, Any],
        options: Mapping[str, Any],
        now: datetime,
    ) -> SourceEvaluation:
        commits = self._count(payload, "commits")
        stars = self._count(payload, "stars")
        followers = self._count(payload, "followers")
        repos = self._count(payload, "public_repos")
        created_at = self._timestamp(payload, "created_at")
        last_active_at = self._timestamp(payload, "last_active_at", default=None)
        self._string(payload, "login", default=None)

        account_age = age_in_days(created_at, now)

        raw_score = (
            saturating_points(commits, COMMIT_BREAKPOINTS)
            + saturating_points(stars, STAR_BREAKPOINTS)
            + account_age_points(account_age)
            + saturating_points(followers, FOLLOWER_BREAKPOINTS)
            + saturating_points(repos, REPO_BREAKPOINTS)
        )

        reliability = self._reliability(commits, account_age, last_active_at, now)

        return SourceEvaluation(
            normalized_score=raw_score * 10,
            data_point_count=commits,
            reliability=reliability,
        )

    @staticmethod
    def _reliability(
        commits: int,
        account_age_days: float,
        last_active_at: datetime | None,
        now: datetime,
    ) -> float:
        """
        Evidence-dependent reliability.

        Age bands are exclusive (a 3-month-old account takes only the 0.57
        discount); the volume and staleness discounts compose multiplicatively.
        """
        reliability = BASE_RELIABILITY

        if account_age_days < NEW_ACCOUNT_DAYS:
            reliability *= NEW_ACCOUNT_FACTOR
        elif account_age_days < YOUNG_ACCOUNT_DAYS:
            reliability *= YOUNG_ACCOUNT_FACTOR

        if commits < LOW_VOLUME_COMMITS:
            reliability *= LOW_VOLUME_FACTOR

        if last_active_at is not None and age_in_days(last_active_at, now) > STALE_ACTIVITY_DAYS:
            reliability *= STALE_ACTIVITY_FACTOR

        return reliability


__all__ = ["CodeHostingAdapter", "account_age_points"]

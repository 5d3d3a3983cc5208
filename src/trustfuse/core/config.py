"""
Configuration management for TrustFuse.

Handles loading configuration from environment variables and validation.
Per-source settings follow the pattern TRUSTFUSE_SOURCE_<KIND>_<SETTING>,
for example TRUSTFUSE_SOURCE_CODE_HOSTING_ACTIVITY_WEIGHT=2500.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from typing import Any

from trustfuse.core.exceptions import ConfigurationError
from trustfuse.core.types import MAX_SCORE, SourceConfig, SourceKind

ENV_PREFIX = "TRUSTFUSE"

# (weight_bps, declared_reliability_bps) per kind. Payment history is the
# only cryptographically verifiable source, so it carries most weight.
DEFAULT_SOURCE_SETTINGS: dict[SourceKind, tuple[int, int]] = {
    SourceKind.ONCHAIN_PAYMENT_HISTORY: (5000, 10000),
    SourceKind.CODE_HOSTING_ACTIVITY: (2000, 7000),
    SourceKind.ATTESTATION_FEED: (2000, 6000),
    SourceKind.OPERATOR_WEBHOOK: (1000, 5000),
}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def default_source_configs() -> tuple[SourceConfig, ...]:
    """Default SourceConfig for every kind, in declaration order."""
    return tuple(
        SourceConfig(
            kind=kind,
            weight_bps=DEFAULT_SOURCE_SETTINGS[kind][0],
            declared_reliability_bps=DEFAULT_SOURCE_SETTINGS[kind][1],
        )
        for kind in SourceKind
    )


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {name} is not set")
    return value


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(
            f"Environment variable {name} must be an integer", details={name: raw}
        ) from None


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigurationError(
            f"Environment variable {name} must be a number", details={name: raw}
        ) from None


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Environment variable {name} must be a boolean", details={name: raw}
    )


def _parse_json_object(name: str, raw: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Environment variable {name} must hold a JSON object: {e}"
        ) from e
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"Environment variable {name} must hold a JSON object", details={name: raw}
        )
    return value


def _source_config_from_env(default: SourceConfig) -> SourceConfig:
    """Overlay TRUSTFUSE_SOURCE_<KIND>_* variables onto a default config."""
    prefix = f"{ENV_PREFIX}_SOURCE_{default.kind.env_key}"
    updates: dict[str, Any] = {}

    weight = _get_env_var(f"{prefix}_WEIGHT")
    if weight:
        updates["weight_bps"] = _parse_int(f"{prefix}_WEIGHT", weight)

    reliability = _get_env_var(f"{prefix}_RELIABILITY")
    if reliability:
        updates["declared_reliability_bps"] = _parse_int(f"{prefix}_RELIABILITY", reliability)

    enabled = _get_env_var(f"{prefix}_ENABLED")
    if enabled:
        updates["enabled"] = _parse_bool(f"{prefix}_ENABLED", enabled)

    options = _get_env_var(f"{prefix}_OPTIONS")
    if options:
        updates["options"] = _parse_json_object(f"{prefix}_OPTIONS", options)

    return default.with_updates(**updates) if updates else default


@dataclass(frozen=True)
class Config:
    """Engine configuration."""

    log_level: str = "INFO"
    storage_backend: str = "memory"
    redis_url: str | None = None
    # Score cache TTL (seconds)
    cache_ttl: int = 300
    # Per-source fetch timeout (seconds)
    fetch_timeout: float = 10.0
    # Spread between included source scores that flags a conflict (0-1000 scale)
    conflict_threshold: int = 300
    sources: tuple[SourceConfig, ...] = field(default_factory=default_source_configs)

    def __post_init__(self) -> None:
        if self.cache_ttl < 0:
            raise ConfigurationError("cache_ttl must be >= 0", details={"cache_ttl": self.cache_ttl})
        if self.fetch_timeout <= 0:
            raise ConfigurationError(
                "fetch_timeout must be > 0", details={"fetch_timeout": self.fetch_timeout}
            )
        if not 0 <= self.conflict_threshold <= MAX_SCORE:
            raise ConfigurationError(
                f"conflict_threshold must be within [0, {MAX_SCORE}]",
                details={"conflict_threshold": self.conflict_threshold},
            )
        kinds = [source.kind for source in self.sources]
        if len(kinds) != len(set(kinds)):
            raise ConfigurationError("Each source kind may only be configured once")

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        log_level = overrides.get("log_level") or _get_env_var(
            f"{ENV_PREFIX}_LOG_LEVEL", default="INFO"
        )
        storage_backend = overrides.get("storage_backend") or _get_env_var(
            f"{ENV_PREFIX}_STORAGE_BACKEND", default="memory"
        )
        redis_url = overrides.get("redis_url") or _get_env_var(f"{ENV_PREFIX}_REDIS_URL")

        cache_ttl = overrides.get("cache_ttl")
        if cache_ttl is None:
            raw = _get_env_var(f"{ENV_PREFIX}_CACHE_TTL")
            cache_ttl = _parse_int(f"{ENV_PREFIX}_CACHE_TTL", raw) if raw else cls.cache_ttl

        fetch_timeout = overrides.get("fetch_timeout")
        if fetch_timeout is None:
            raw = _get_env_var(f"{ENV_PREFIX}_FETCH_TIMEOUT")
            fetch_timeout = (
                _parse_float(f"{ENV_PREFIX}_FETCH_TIMEOUT", raw) if raw else cls.fetch_timeout
            )

        conflict_threshold = overrides.get("conflict_threshold")
        if conflict_threshold is None:
            raw = _get_env_var(f"{ENV_PREFIX}_CONFLICT_THRESHOLD")
            conflict_threshold = (
                _parse_int(f"{ENV_PREFIX}_CONFLICT_THRESHOLD", raw)
                if raw
                else cls.conflict_threshold
            )

        sources = overrides.get("sources") or tuple(
            _source_config_from_env(default) for default in default_source_configs()
        )

        return cls(
            log_level=log_level,  # type: ignore
            storage_backend=storage_backend,  # type: ignore
            redis_url=redis_url,
            cache_ttl=cache_ttl,
            fetch_timeout=fetch_timeout,
            conflict_threshold=conflict_threshold,
            sources=tuple(sources),
        )

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        return replace(self, **updates)

    def source_configs(self) -> dict[SourceKind, SourceConfig]:
        """Per-kind source configuration keyed by SourceKind."""
        return {source.kind: source for source in self.sources}

    def masked_redis_url(self) -> str | None:
        """Return the Redis URL with any password masked for safe logging."""
        if not self.redis_url or "@" not in self.redis_url:
            return self.redis_url
        scheme, _, rest = self.redis_url.partition("://")
        _, _, host = rest.rpartition("@")
        return f"{scheme}://****@{host}"

"""
Source Registry — authoritative SourceConfig and adapter per SourceKind.

The registry holds exactly one adapter per kind for its whole lifetime.
Reconfiguring a kind swaps its weight, declared reliability, enabled flag
and options, never the adapter itself.

Configuration may be hot-reloaded between aggregation runs.
``enabled_sources()`` returns an immutable snapshot, so a run that already
took its snapshot is not affected by a concurrent reload.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from trustfuse.core.config import default_source_configs
from trustfuse.core.exceptions import ConfigurationError, UnknownSourceKindError
from trustfuse.core.logging import get_logger
from trustfuse.core.types import SourceConfig, SourceKind
from trustfuse.sources import SourceAdapter, default_adapters

if TYPE_CHECKING:
    from trustfuse.core.config import Config

logger = get_logger("trust.registry")

EnabledSource = tuple[SourceKind, SourceConfig, SourceAdapter]


class SourceRegistry:
    """
    Registry of source configurations and adapters.

    Example:
        >>> registry = SourceRegistry()
        >>> registry.configure(
        ...     "code_hosting_activity",
        ...     SourceConfig(SourceKind.CODE_HOSTING_ACTIVITY, weight_bps=2500,
        ...                  declared_reliability_bps=7000),
        ... )
        >>> [kind.value for kind, _, _ in registry.enabled_sources()]
        ['onchain_payment_history', 'code_hosting_activity', 'attestation_feed', 'operator_webhook']
    """

    def __init__(
        self,
        adapters: Mapping[SourceKind, SourceAdapter] | None = None,
        configs: Iterable[SourceConfig] | None = None,
    ) -> None:
        """
        Args:
            adapters: Adapter overrides keyed by kind; missing kinds get the
                      default adapter
            configs: Initial configs; missing kinds get the defaults
        """
        self._adapters: dict[SourceKind, SourceAdapter] = default_adapters()
        for kind, adapter in (adapters or {}).items():
            kind = self._coerce_kind(kind)
            if adapter.kind != kind:
                raise ConfigurationError(
                    f"Adapter {adapter!r} registered under {kind.value}",
                    details={"adapter_kind": adapter.kind.value, "kind": kind.value},
                )
            self._adapters[kind] = adapter

        self._configs: dict[SourceKind, SourceConfig] = {
            config.kind: config for config in default_source_configs()
        }
        if configs is not None:
            self.configure_many(configs)

    @classmethod
    def from_config(
        cls,
        config: Config,
        adapters: Mapping[SourceKind, SourceAdapter] | None = None,
    ) -> SourceRegistry:
        """Build a registry from the engine Config's per-source settings."""
        return cls(adapters=adapters, configs=config.sources)

    # ─── Configuration ───────────────────────────────────────────────

    def configure(self, kind: SourceKind | str, config: SourceConfig) -> None:
        """
        Replace the configuration for a kind.

        Raises:
            UnknownSourceKindError: If ``kind`` is outside the closed enumeration
            ConfigurationError: If ``config`` describes a different kind
        """
        kind = self._coerce_kind(kind)
        if not isinstance(config, SourceConfig):
            raise ConfigurationError(
                f"Expected SourceConfig for {kind.value}, got {type(config).__name__}"
            )
        if config.kind != kind:
            raise ConfigurationError(
                f"Config for {config.kind.value} cannot be registered under {kind.value}"
            )
        self._configs[kind] = config
        logger.debug(
            f"Configured {kind.value}: weight={config.weight_bps}bp "
            f"reliability={config.declared_reliability_bps}bp enabled={config.enabled}"
        )

    def configure_many(self, configs: Iterable[SourceConfig]) -> None:
        """Apply several configs at once (hot reload between runs)."""
        staged = list(configs)
        for config in staged:
            if not isinstance(config, SourceConfig):
                raise ConfigurationError(
                    f"Expected SourceConfig, got {type(config).__name__}"
                )
        for config in staged:
            self.configure(config.kind, config)

    # ─── Lookup ──────────────────────────────────────────────────────

    def enabled_sources(self) -> tuple[EnabledSource, ...]:
        """Enabled ``(kind, config, adapter)`` triples in SourceKind declaration order."""
        configs = dict(self._configs)
        return tuple(
            (kind, configs[kind], self._adapters[kind])
            for kind in SourceKind
            if configs[kind].enabled
        )

    def adapter_for(self, kind: SourceKind | str) -> SourceAdapter:
        """The adapter registered for a kind."""
        return self._adapters[self._coerce_kind(kind)]

    def config_for(self, kind: SourceKind | str) -> SourceConfig:
        """The current configuration for a kind."""
        return self._configs[self._coerce_kind(kind)]

    def configs(self) -> tuple[SourceConfig, ...]:
        """All configurations (enabled or not) in declaration order."""
        return tuple(self._configs[kind] for kind in SourceKind)

    @staticmethod
    def _coerce_kind(kind: SourceKind | str) -> SourceKind:
        if isinstance(kind, SourceKind):
            return kind
        if isinstance(kind, str):
            return SourceKind.from_string(kind)
        raise UnknownSourceKindError(kind)


__all__ = ["SourceRegistry", "EnabledSource"]

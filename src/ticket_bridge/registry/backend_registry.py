"""registry.backend_registry

Resolves a backend name (+ configuration) to a live adapter instance and
memoizes instances by ``(backend, model)``.

The cache is the only mutable shared state in *ticket_bridge*. Reads are
lock-free; construction is serialised so concurrent first-resolves of the same
key build a single adapter, and `invalidate_cache()` swaps in a fresh dict so
lookups already holding the old one are never corrupted.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ticket_bridge.core.backend_key import BackendKey, split_backend_name
from ticket_bridge.core.settings import BackendSettings, get_settings
from ticket_bridge.registry.provider_registry import build_provider_registry

if TYPE_CHECKING:
    from ticket_bridge.core.abc import GenerationBackend
    from ticket_bridge.core.types import BackendConfig
    from ticket_bridge.registry.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Factory + instance cache for backend adapters.

    Parameters
    ----------
    settings
        Environment-sourced configuration. Read lazily via `get_settings()`
        when omitted.
    providers
        Name → adapter-class map. Defaults to the three built-in adapters.
    **adapter_kwargs
        Forwarded to every adapter constructor (e.g. a custom httpx ``transport``).

    """

    def __init__(
        self,
        settings: BackendSettings | None = None,
        providers: ProviderRegistry | None = None,
        **adapter_kwargs: object,
    ) -> None:
        self._settings = settings
        self._providers = providers or build_provider_registry()
        self._adapter_kwargs = adapter_kwargs
        self._cache: dict[BackendKey, GenerationBackend] = {}
        self._lock = threading.Lock()

    @property
    def settings(self) -> BackendSettings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, name: str, config: BackendConfig | None = None) -> GenerationBackend:
        """Return the adapter for *name*, constructing and caching it if needed.

        Parameters
        ----------
        name
            Backend slug (``"claude"``) or ``"<backend>:<model>"`` shorthand.
        config
            Explicit configuration; read from settings when omitted.

        Raises
        ------
        ConfigurationError
            Unknown backend name, or missing credential. Raised here, before
            any network call.

        """
        backend, model_override = split_backend_name(name)
        adapter_cls = self._providers.get_adapter_cls(backend)

        if config is None:
            config = self.settings.backend_config(backend)
        if model_override is not None:
            config = config.model_copy(update={'model': model_override})

        key = BackendKey.of(backend, config.model)
        cache = self._cache
        if (adapter := cache.get(key)) is not None:
            return adapter

        with self._lock:
            if (adapter := self._cache.get(key)) is None:
                adapter = adapter_cls(config, **self._adapter_kwargs)
                self._cache[key] = adapter
                logger.info('Initialised %s backend (model=%s)', backend, adapter.model)
        return adapter

    def resolve_default(self) -> GenerationBackend:
        """Resolve ``DEFAULT_LLM_PROVIDER`` (or the built-in fallback)."""
        return self.resolve(self.settings.default_backend)

    # ------------------------------------------------------------------
    # Introspection / lifecycle
    # ------------------------------------------------------------------

    def list_available(self) -> list[str]:
        """Backends whose credentials / endpoint are configured. No network probe."""
        return [name for name in self.settings.available_backends() if name in self._providers]

    def supported_backends(self) -> list[str]:
        """Every registered backend, configured or not."""
        return self._providers.available_providers()

    def invalidate_cache(self, *, close: bool = True) -> None:
        """Drop every cached adapter; the next resolve builds a fresh instance.

        Dropped adapters are closed unless *close* is false; anyone still holding
        one gets `BackendTransportError` from its next call.
        """
        with self._lock:
            dropped, self._cache = self._cache, {}
        if close:
            for adapter in dropped.values():
                adapter.close()
        logger.debug('Backend cache cleared (%d adapter(s) dropped)', len(dropped))

    def cached_keys(self) -> list[BackendKey]:
        return list(self._cache)

"""registry.provider_registry

Maps backend slugs (e.g. "claude") to their concrete adapter classes
(subclasses of GenerationBackend).

The registry is a pure domain helper with no SDK imports of its own, so that
it can be imported freely without risk of circular-dependency explosions. It
is an ordinary object: build one with `build_provider_registry()` and inject it
where needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from ticket_bridge.core.exceptions import UnknownBackendError

if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping

    from ticket_bridge.core.abc import GenerationBackend

# Type variable for better type annotations
BackendT = TypeVar('BackendT', bound='GenerationBackend')


class ProviderRegistry(Generic[BackendT]):
    """Look-up and registration for backend name → adapter class mappings.

    Usage:

    ```python
    registry = ProviderRegistry()
    registry.register("claude", ClaudeAdapter)
    registry.get_adapter_cls("claude")
    ```
    """

    _registry: MutableMapping[str, type[BackendT]]

    def __init__(self) -> None:
        self._registry = {}

    def register(self, provider_key: str, adapter_cls: type[BackendT]) -> None:
        """Register adapter_cls under provider_key.

        Parameters
        ----------
        provider_key
            Slug such as "claude" or "ollama". Normalised to lower-case.
        adapter_cls
            Concrete subclass implementing GenerationBackend.

        """
        key = provider_key.strip().lower()
        # Local import avoids cycles (core.abc -> executor -> SDKs)
        from ticket_bridge.core.abc import GenerationBackend

        if not isinstance(adapter_cls, type) or not issubclass(adapter_cls, GenerationBackend):
            raise TypeError('adapter_cls must subclass GenerationBackend')
        self._registry[key] = adapter_cls

    def get_adapter_cls(self, provider_key: str) -> type[BackendT]:
        """Return the adapter class registered for provider_key.

        Raises
        ------
        UnknownBackendError
            If provider_key hasn't been registered.

        """
        key = provider_key.strip().lower()
        try:
            return self._registry[key]
        except KeyError as exc:
            raise UnknownBackendError(f'Unknown LLM backend: {provider_key}') from exc

    def __contains__(self, provider_key: object) -> bool:
        return isinstance(provider_key, str) and provider_key.strip().lower() in self._registry

    def available_providers(self) -> list[str]:
        """Return a sorted list of registered backends (for introspection)."""
        return sorted(self._registry)

    def mapping(self) -> Mapping[str, type[BackendT]]:
        """Return a read-only copy of the registry mapping."""
        return dict(self._registry)


def build_provider_registry() -> ProviderRegistry:
    """Registry pre-populated with the three built-in adapters."""
    from ticket_bridge.adapters.claude_adapter import ClaudeAdapter
    from ticket_bridge.adapters.ollama_adapter import OllamaAdapter
    from ticket_bridge.adapters.openai_adapter import OpenAIAdapter

    registry: ProviderRegistry = ProviderRegistry()
    for adapter_cls in (ClaudeAdapter, OpenAIAdapter, OllamaAdapter):
        registry.register(adapter_cls.name, adapter_cls)
    return registry

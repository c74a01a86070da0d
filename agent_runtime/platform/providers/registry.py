"""Provider lookup by key.

Resolution order for a key: an override configured in ``Settings.providers``,
then providers registered at runtime with ``register``, then the built-ins
(``mock``, ``litellm``, ``function``). Provider classes and instances can
also be passed directly and bypass the lookup.
"""

import importlib
import logging
import threading
from collections.abc import Callable
from typing import Any

from agent_runtime.platform.agent.errors import config_error
from agent_runtime.platform.providers.base import Provider
from agent_runtime.platform.providers.function import FunctionProvider
from agent_runtime.platform.providers.litellm_provider import LiteLLMProvider
from agent_runtime.platform.providers.mock import MockProvider
from agent_runtime.platform.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Settings], Provider]

BUILTIN_PROVIDERS: dict[str, ProviderFactory] = {
    "mock": lambda settings: MockProvider(),
    "litellm": lambda settings: LiteLLMProvider(settings.litellm),
    "function": lambda settings: FunctionProvider(),
}


def _validate(provider: Any, key: str) -> Provider:
    if not isinstance(provider, Provider):
        raise config_error(
            f"Provider {key!r} does not implement the provider interface",
            {"provider": key, "value": provider},
        )
    return provider


def _instantiate(provider: Any, key: str) -> Provider:
    if isinstance(provider, type):
        provider = provider()
    return _validate(provider, key)


def _import_path(path: str) -> Any:
    module_name, _, attribute = path.rpartition(".")
    if not module_name:
        raise config_error(f"Invalid provider path {path!r}", {"path": path})
    try:
        return getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise config_error(f"Cannot import provider {path!r}: {e}", {"path": path, "exception": e}) from e


class ProviderRegistry:
    """Thread-safe registry resolving provider keys to provider instances."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings
        self._dynamic: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def register(self, key: str, provider: Any) -> None:
        """Register a provider class or instance under ``key``."""
        if not isinstance(provider, type):
            _validate(provider, key)
        with self._lock:
            if key in self._dynamic:
                logger.warning("Replacing registered provider %s", key)
            self._dynamic[key] = provider

    def unregister(self, key: str) -> bool:
        with self._lock:
            return self._dynamic.pop(key, None) is not None

    def available(self) -> list[str]:
        with self._lock:
            dynamic = set(self._dynamic)
        return sorted(set(BUILTIN_PROVIDERS) | dynamic | set(self.settings.providers.overrides))

    def resolve(self, provider: Any) -> Provider:
        """Resolve a key, class or instance to a provider instance."""
        if not isinstance(provider, str):
            return _instantiate(provider, getattr(provider, "__name__", type(provider).__name__))

        settings = self.settings
        configured = settings.providers.overrides.get(provider)
        if configured:
            return _instantiate(_import_path(configured), provider)

        with self._lock:
            dynamic = self._dynamic.get(provider)
        if dynamic is not None:
            return _instantiate(dynamic, provider)

        factory = BUILTIN_PROVIDERS.get(provider)
        if factory is not None:
            return factory(settings)

        available = self.available()
        raise config_error(
            f"Unknown provider {provider!r}. Available providers: {', '.join(available)}",
            {"provider": provider, "available": available},
        )

    def features(self, provider: Any) -> frozenset[str]:
        return self.resolve(provider).introspect().features


default_registry = ProviderRegistry()


def register(key: str, provider: Any) -> None:
    default_registry.register(key, provider)


def resolve(provider: Any) -> Provider:
    return default_registry.resolve(provider)

"""Model provider adapters and their registry."""

from agent_runtime.platform.providers.base import (
    DEFER,
    BaseProvider,
    Extraction,
    Feature,
    Provider,
    ProviderInfo,
)
from agent_runtime.platform.providers.function import Collector, FunctionProvider, FunctionResponse
from agent_runtime.platform.providers.litellm_provider import LiteLLMProvider
from agent_runtime.platform.providers.mock import MockProvider
from agent_runtime.platform.providers.registry import (
    ProviderRegistry,
    default_registry,
    register,
    resolve,
)

__all__ = [
    "DEFER",
    "BaseProvider",
    "Collector",
    "Extraction",
    "Feature",
    "FunctionProvider",
    "FunctionResponse",
    "LiteLLMProvider",
    "MockProvider",
    "Provider",
    "ProviderInfo",
    "ProviderRegistry",
    "default_registry",
    "register",
    "resolve",
]

from .comparison import ComparisonOrchestrator
from .config import CompareSettings
from .config_store import ProviderConfigStore
from .contracts import ComparisonResult, Metrics, ModelResponse
from .errors import (
    AuthenticationError,
    ComparisonInputError,
    ConfigStoreError,
    ConfigurationError,
    NoSuccessfulResponsesError,
    ProviderError,
    RateLimitError,
    UpstreamProtocolError,
)
from .models import (
    AnthropicProviderConfig,
    GGUFProviderConfig,
    HuggingFaceProviderConfig,
    OllamaProviderConfig,
    OpenAIProviderConfig,
    parse_provider_config,
)
from .normalizer import normalize_metrics
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind
from .registry import create_adapter

__all__ = [
    "AnthropicProviderConfig",
    "AuthenticationError",
    "CompareSettings",
    "ComparisonInputError",
    "ComparisonOrchestrator",
    "ComparisonResult",
    "ConfigStoreError",
    "ConfigurationError",
    "GGUFProviderConfig",
    "HuggingFaceProviderConfig",
    "Metrics",
    "ModelResponse",
    "NoSuccessfulResponsesError",
    "OllamaProviderConfig",
    "OpenAIProviderConfig",
    "ProviderAdapter",
    "ProviderConfigStore",
    "ProviderError",
    "ProviderKind",
    "RateLimitError",
    "UpstreamProtocolError",
    "create_adapter",
    "normalize_metrics",
    "parse_provider_config",
]

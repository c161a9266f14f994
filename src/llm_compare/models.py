from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .provider_kinds import ProviderKind


class BaseProviderConfig(BaseModel):
    """Fields every configured backend carries.

    Field aliases follow the dashboard's persisted camelCase names so that
    configurations saved by the browser load unchanged.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )

    id: str
    name: str = ""
    enabled: bool = True
    model_name: str | None = Field(default=None, alias="modelName")
    temperature: float | None = None
    max_tokens: int | None = Field(default=None, alias="maxTokens")

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v: float | None) -> float | None:
        if v is None:
            return None
        if not (0.0 <= v <= 2.0):
            raise ValueError("temperature must be between 0 and 2.")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _validate_max_tokens(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if not (1 <= v <= 4096):
            raise ValueError("maxTokens must be between 1 and 4096.")
        return v

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind(getattr(self, "provider"))

    def to_persisted(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OpenAIProviderConfig(BaseProviderConfig):
    provider: Literal["openai"] = "openai"
    api_key: str | None = Field(default=None, alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseUrl")
    organization: str | None = None
    project_id: str | None = Field(default=None, alias="projectId")
    is_project_key: bool = Field(default=False, alias="isProjectKey")


class AnthropicProviderConfig(BaseProviderConfig):
    provider: Literal["anthropic"] = "anthropic"
    api_key: str | None = Field(default=None, alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseUrl")


class HuggingFaceProviderConfig(BaseProviderConfig):
    provider: Literal["huggingface"] = "huggingface"
    api_key: str | None = Field(default=None, alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseUrl")


class OllamaProviderConfig(BaseProviderConfig):
    provider: Literal["ollama"] = "ollama"
    base_url: str | None = Field(default=None, alias="baseUrl")
    context_size: int | None = None
    threads: int | None = None


class GGUFProviderConfig(BaseProviderConfig):
    provider: Literal["gguf"] = "gguf"
    model_path: str | None = Field(default=None, alias="modelPath")
    server_port: int | None = Field(default=None, alias="serverPort")
    base_url: str | None = Field(default=None, alias="baseUrl")
    context_size: int | None = None
    threads: int | None = None


ProviderConfig = Annotated[
    Union[
        OpenAIProviderConfig,
        AnthropicProviderConfig,
        HuggingFaceProviderConfig,
        OllamaProviderConfig,
        GGUFProviderConfig,
    ],
    Field(discriminator="provider"),
]

_provider_config_adapter: TypeAdapter[Any] = TypeAdapter(ProviderConfig)


def parse_provider_config(data: dict[str, Any]) -> BaseProviderConfig:
    return _provider_config_adapter.validate_python(data)

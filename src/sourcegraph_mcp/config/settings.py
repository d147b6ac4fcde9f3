from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sourcegraph_mcp.core.types import RoutingMode

SUPPORTED_LLM_PROVIDERS = ("openai", "anthropic")


class SourcegraphSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sourcegraph_url: str = Field(default="")
    sourcegraph_token: SecretStr = Field(default=SecretStr(""))
    sourcegraph_timeout: float = Field(default=30.0, gt=0)
    search_result_count: int = Field(default=20, ge=1, le=10000)

    @field_validator("sourcegraph_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.sourcegraph_url and self.sourcegraph_token.get_secret_value())


class AISettings(BaseSettings):
    """Natural-language translation. Supports: OpenAI (default), Anthropic."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    llm_provider: str = Field(default="openai")

    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openai_model: str = Field(default="gpt-3.5-turbo")
    anthropic_api_key: SecretStr = Field(default=SecretStr(""))
    anthropic_model: str = Field(default="claude-3-5-haiku-latest")

    llm_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=100, gt=0)
    llm_timeout: float = Field(default=15.0, gt=0)

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in SUPPORTED_LLM_PROVIDERS:
            raise ValueError(
                f"LLM_PROVIDER must be one of {', '.join(SUPPORTED_LLM_PROVIDERS)}, got '{v}'"
            )
        return v


class ServerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    port: int = Field(default=3000, ge=1, le=65535)
    mcp_port: int = Field(default=3002, ge=1, le=65535)
    mcp_host: str = Field(default="0.0.0.0")

    routing_mode: RoutingMode = Field(default=RoutingMode.LENIENT)
    session_idle_timeout: float = Field(default=1800.0, ge=0)
    session_sweep_interval: float = Field(default=60.0, gt=0)
    sse_keepalive_interval: float = Field(default=15.0, gt=0)

    log_level: str = Field(default="INFO")

    @field_validator("routing_mode", mode="before")
    @classmethod
    def normalize_routing_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return v


class Settings(BaseSettings):
    """Composed settings with shortcut property access."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sourcegraph: SourcegraphSettings = Field(default_factory=SourcegraphSettings)
    ai: AISettings = Field(default_factory=AISettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @property
    def sourcegraph_url(self) -> str:
        return self.sourcegraph.sourcegraph_url

    @property
    def sourcegraph_token(self) -> str:
        return self.sourcegraph.sourcegraph_token.get_secret_value()

    @property
    def search_result_count(self) -> int:
        return self.sourcegraph.search_result_count

    @property
    def llm_provider(self) -> str:
        return self.ai.llm_provider

    @property
    def llm_model(self) -> str:
        if self.ai.llm_provider == "anthropic":
            return self.ai.anthropic_model
        return self.ai.openai_model

    @property
    def routing_mode(self) -> RoutingMode:
        return self.server.routing_mode


@lru_cache
def get_settings() -> Settings:
    return Settings()

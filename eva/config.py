"""Service configuration.

`Settings` reads the environment once at startup. `AssistantConfig` carries the
static assistant tunables and is handed to the chat orchestrator and the
notification engine when they are constructed.
"""

from dataclasses import dataclass
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class AssistantConfig:
    """Static configuration for the assistant pipelines."""

    default_provider: str = "anthropic"
    default_model: str = "claude-sonnet-4-20250514"

    max_history_messages: int = 20
    max_tokens: int = 2048
    temperature: float = 0.3
    max_steps: int = 5

    rate_limit_max_messages: int = 30
    rate_limit_window_minutes: int = 60

    notification_max_tokens: int = 500
    notification_temperature: float = 0.7
    deadline_warning_days: int = 3

    default_firm_name: str = "Prima Facie"


class Settings(BaseSettings):
    """Environment-driven settings."""

    app_name: str = Field(default="Prima Facie EVA", validation_alias="APP_NAME")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    http_timeout: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT")

    anthropic_api_key: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")

    store_backend: str = Field(default="supabase", validation_alias="EVA_STORE_BACKEND")
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", validation_alias="SUPABASE_SERVICE_ROLE_KEY")

    cron_secret: str = Field(default="", validation_alias="CRON_SECRET")

    eva_model: str = Field(default=AssistantConfig.default_model, validation_alias="EVA_MODEL")
    eva_max_tokens: int = Field(default=AssistantConfig.max_tokens, validation_alias="EVA_MAX_TOKENS")
    eva_temperature: float = Field(default=AssistantConfig.temperature, validation_alias="EVA_TEMPERATURE")
    eva_max_steps: int = Field(default=AssistantConfig.max_steps, validation_alias="EVA_MAX_STEPS")
    eva_max_history_messages: int = Field(
        default=AssistantConfig.max_history_messages, validation_alias="EVA_MAX_HISTORY_MESSAGES"
    )
    eva_rate_limit_max_messages: int = Field(
        default=AssistantConfig.rate_limit_max_messages, validation_alias="EVA_RATE_LIMIT_MAX_MESSAGES"
    )
    eva_rate_limit_window_minutes: int = Field(
        default=AssistantConfig.rate_limit_window_minutes, validation_alias="EVA_RATE_LIMIT_WINDOW_MINUTES"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def assistant_config(self) -> AssistantConfig:
        """Build the assistant configuration from environment overrides."""
        return AssistantConfig(
            default_model=self.eva_model,
            max_tokens=self.eva_max_tokens,
            temperature=self.eva_temperature,
            max_steps=self.eva_max_steps,
            max_history_messages=self.eva_max_history_messages,
            rate_limit_max_messages=self.eva_rate_limit_max_messages,
            rate_limit_window_minutes=self.eva_rate_limit_window_minutes,
        )


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()

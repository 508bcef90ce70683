"""Runtime configuration for the instrumentation bus."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from instrumentation.notifier import SubscriberErrorPolicy


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="INSTRUMENTATION_", env_file=".env", extra="ignore")

    app_name: str = "instrumentation"
    log_level: str = "INFO"
    subscriber_errors: SubscriberErrorPolicy = Field(
        default=SubscriberErrorPolicy.ISOLATE,
        description="What a failing subscriber does to dispatch: isolate, propagate, or aggregate.",
    )
    log_events: bool = False


settings = Settings()

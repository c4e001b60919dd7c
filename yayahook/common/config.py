"""Central environment-driven settings for the webhook receiver.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "yaya-webhook"
    log_level: str = "INFO"
    secret_key: str = Field(min_length=1)
    freshness_window_seconds: int = Field(default=300, gt=0)
    signature_header: str = "YAYA-SIGNATURE"
    uniform_auth_errors: bool = False
    database_url: str = "sqlite:///./yaya_webhooks.db"
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

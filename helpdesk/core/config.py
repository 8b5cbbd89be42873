from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration read from environment variables."""

    app_name: str = Field(default="Helpdesk API")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s %(levelname)s %(name)s %(message)s")
    cors_allowed_origins: tuple[str, ...] = Field(default=())

    # Ticket storage
    storage_file_path: str = Field(default="data/tickets.json")

    # Authentication
    auth_username: str = Field(default="")
    auth_password: str = Field(default="")
    auth_token_ttl_hours: int = Field(default=24)

    # AI summary generation
    ai_enabled: bool = Field(default=True)
    ai_api_key: str | None = Field(default=None)
    ai_model_name: str = Field(default="gpt-4o-mini")
    ai_api_endpoint: str = Field(default="https://api.openai.com/v1")
    ai_max_tokens: int = Field(default=150)
    ai_temperature: float = Field(default=0.7)
    ai_timeout_seconds: float = Field(default=30.0)

    # Email notifications
    smtp_host: str | None = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_username: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    email_from_address: str = Field(default="support@localhost")
    email_from_name: str = Field(default="Support Team")
    email_max_retry_attempts: int = Field(default=3)
    email_retry_delay_seconds: float = Field(default=2.0)
    notification_queue_size: int = Field(default=100)
    notification_workers: int = Field(default=1)

    # Observability configuration
    otel_enabled: bool = Field(default=False)
    otel_service_name: str = Field(default="helpdesk-api")
    otel_exporter_otlp_endpoint: str | None = Field(default=None)
    otel_exporter_otlp_headers: str | None = Field(default=None)

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()

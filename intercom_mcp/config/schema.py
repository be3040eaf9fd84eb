"""Configuration schema using Pydantic.

Single data model and defaults for the server; optionally persisted to ~/.intercom-mcp/config.json.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


MAX_MESSAGE_SIZE = 5 * 1024 * 1024
MAX_REQUESTS_PER_MINUTE = 60
CONNECTION_TIMEOUT_MS = 300_000
HEALTH_CHECK_INTERVAL_MS = 5_000
DEFAULT_API_BASE_URL = "https://api.intercom.io"


class TransportConfig(BaseModel):
    """Byte-stream transport limits."""
    max_message_size: int = Field(default=MAX_MESSAGE_SIZE, gt=0)  # bytes, inbound and outbound
    max_requests_per_window: int = Field(default=MAX_REQUESTS_PER_MINUTE, gt=0)
    rate_limit_window_ms: int = Field(default=60_000, gt=0)
    # Governs both queued-entry retention and health-check staleness.
    connection_timeout_ms: int = Field(default=CONNECTION_TIMEOUT_MS, gt=0)
    health_check_interval_ms: int = Field(default=HEALTH_CHECK_INTERVAL_MS, gt=0)


class IntercomConfig(BaseModel):
    """Intercom REST API access."""
    access_token: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    api_version: str = "2.9"
    timeout_seconds: float = 30.0
    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = 1.0  # base delay; doubled per attempt
    per_page: int = Field(default=150, ge=1, le=150)
    concurrent_requests: int = Field(default=5, ge=1)
    page_delay_seconds: float = 0.5  # pause between list pages to stay under Intercom limits


class LoggingConfig(BaseModel):
    """Logging sinks. stdout is reserved for the protocol."""
    level: str = "INFO"
    file_enabled: bool = False


class Config(BaseSettings):
    """Root configuration for intercom-mcp."""
    transport: TransportConfig = Field(default_factory=TransportConfig)
    intercom: IntercomConfig = Field(default_factory=IntercomConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def has_access_token(self) -> bool:
        return bool(self.intercom.access_token.strip())

    model_config = SettingsConfigDict(
        env_prefix="INTERCOM_MCP_",
        env_nested_delimiter="__",
    )

"""Configuration settings for the ElevenLabs proxy"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.elevenlabs.io"


class Settings(BaseSettings):
    """Application settings, loaded once at startup"""

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8088
    debug: bool = False

    # Upstream (ElevenLabs)
    eleven_api_key: str = ""
    eleven_base_url: str = DEFAULT_BASE_URL
    eleven_output_format: str = "mp3_44100_128"
    user_agent: str = "bottut-eleven-proxy/1.0"

    # Security
    eleven_proxy_secret: str = ""

    # Upstream timeouts (seconds)
    upstream_connect_timeout: float = 5.0
    upstream_read_timeout: float = 30.0
    upstream_write_timeout: float = 10.0
    upstream_pool_timeout: float = 5.0

    # Upstream connection pool
    upstream_max_connections: int = 100
    upstream_max_keepalive: int = 20

    # Voice defaults, used when the caller omits a tunable
    default_model_id: str = "eleven_multilingual_v2"
    default_language_code: str = "ru"
    default_stability: float = 0.7
    default_similarity_boost: float = 0.8
    default_style: float = 0.1
    default_use_speaker_boost: bool = True

    # Inbound JSON body limit (bytes)
    max_request_bytes: int = 1_048_576

    # Diagnostic body prefixes (characters)
    error_body_limit: int = 400
    content_type_body_limit: int = 250

    # Logging
    log_level: str = "INFO"

    # Monitoring
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("eleven_api_key", "eleven_proxy_secret", "eleven_base_url", mode="before")
    @classmethod
    def _strip(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("eleven_base_url")
    @classmethod
    def _drop_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/") or DEFAULT_BASE_URL

    @property
    def has_upstream_key(self) -> bool:
        return bool(self.eleven_api_key)

    @property
    def secret_required(self) -> bool:
        return bool(self.eleven_proxy_secret)


def get_settings() -> Settings:
    """Read settings from the environment"""
    return Settings()

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8080

    # Rate limiting settings (requests per one-second window)
    rate_limit_ip: int = 5
    rate_limit_token: int = 10
    block_duration: float = 300.0  # Seconds a key stays blocked after exceeding its limit

    # Storage settings
    storage_backend: Literal["redis", "memory"] = "redis"
    storage_timeout: float | None = None  # Per-call deadline in seconds, None = no deadline

    # Redis settings
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0
    redis_socket_timeout: float = 5.0
    redis_connect_timeout: float = 5.0

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_ip", "rate_limit_token")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("block_duration")
    @classmethod
    def validate_block_duration(cls, v: float) -> float:
        """Validate block duration is positive."""
        if v <= 0:
            raise ValueError("block_duration must be positive")
        return v

    @field_validator("storage_timeout", "redis_socket_timeout", "redis_connect_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float | None) -> float | None:
        """Validate timeout values are positive."""
        if v is not None and v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("port", "redis_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("redis_db")
    @classmethod
    def validate_redis_db(cls, v: int) -> int:
        if v < 0:
            raise ValueError("redis_db must not be negative")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()

"""
Configuration management using Pydantic Settings.
Every value can be overridden from the environment or a .env file.
"""

from typing import Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Fleet settings with environment-based configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Worker Fleet"
    app_version: str = "0.1.0"

    # Endpoints
    api_endpoint: str = "https://apitn.openledger.xyz"
    rewards_endpoint: str = "https://rewardstn.openledger.xyz"
    ws_endpoint: str = "wss://apitn.openledger.xyz/ws/v1"

    # Input files
    wallets_file: str = "wallets.txt"
    proxy_file: str = "proxy.txt"

    # Session timing
    heartbeat_interval: float = 30  # seconds
    reconnect_delay: float = 5  # seconds

    # Supervisor timing
    credential_retry_delay: float = 3  # seconds
    cycle_retry_delay: float = 3  # seconds
    points_poll_interval: float = 600  # 10 minutes
    claim_poll_interval: float = 3600  # 60 minutes

    # HTTP client
    http_max_retries: int = 3
    http_retry_delay: float = 1  # seconds, multiplied by the retry number
    http_timeout: float = 30  # seconds

    # Worker advertisement
    worker_host: str = "chrome-extension://ekbbplmjjgoobhdlffmgeokalelnmjjc"
    worker_type: str = "LWEXT"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console
    log_file: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["console", "json"]
        if v.lower() not in allowed:
            raise ValueError(f"Log format must be one of: {allowed}")
        return v.lower()

    @field_validator(
        "heartbeat_interval",
        "reconnect_delay",
        "credential_retry_delay",
        "cycle_retry_delay",
        "points_poll_interval",
        "claim_poll_interval",
        "http_retry_delay",
        "http_timeout",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Intervals and delays must not be negative")
        return v

    @field_validator("http_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_max_retries must not be negative")
        return v

    @property
    def orchestrator_url(self) -> str:
        """Base URL of the worker orchestration socket."""
        return f"{self.ws_endpoint.rstrip('/')}/orch"


# Global settings instance
settings = Settings()


# Browser-impersonating header set sent with every HTTP request
DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Encoding": "gzip, deflate, br",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Ch-Ua": '"Google Chrome";v="131", "Chromium";v="131", "Not_A_Brand";v="24"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
}


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings

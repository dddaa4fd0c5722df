"""
Application settings for the Swipe Defend API.

Values come from the environment (or a local .env file). Names are case
insensitive, so DB_USER and db_user both work.
"""

from typing import List
from urllib.parse import quote_plus

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    db_user: str = Field(default="")
    db_pass: str = Field(default="")
    db_host: str = Field(default="cluster0.mongodb.net")
    db_name: str = Field(default="swipedefend")
    # Full connection string, takes precedence over user/pass/host
    database_url: str = Field(default="")
    db_timeout_ms: int = Field(default=5000, ge=100, le=60000)

    # Auth
    access_token_secret: str = Field(default="")
    access_token_expire_minutes: int = Field(default=60, ge=1)

    # Stripe
    stripe_secret_key: str = Field(default="")
    stripe_timeout_seconds: int = Field(default=10, ge=1, le=120)

    # Server
    cors_origins: str = Field(default="*")
    port: int = Field(default=5000, ge=1, le=65535)
    log_level: str = Field(default="INFO")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def mongo_uri(self) -> str:
        if self.database_url:
            return self.database_url
        user = quote_plus(self.db_user)
        password = quote_plus(self.db_pass)
        return f"mongodb+srv://{user}:{password}@{self.db_host}/?w=majority"

    def validate_required(self) -> None:
        """Raise ValueError when a setting the server cannot run without is missing."""
        if not self.access_token_secret:
            raise ValueError(
                "ACCESS_TOKEN_SECRET is not set. Generate one with "
                "`python -c \"import secrets; print(secrets.token_hex(64))\"`"
            )


settings = Settings()

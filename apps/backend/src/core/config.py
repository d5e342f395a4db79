"""Relay settings, read from the environment and an optional per-environment .env file."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ENV_FILES: dict[str, str | None] = {
    "development": ".env.dev",
    "production": ".env.prod",
    "test": None,
}


def _split_origins(raw: str) -> list[str]:
    """Parse a JSON array or a comma-separated list of origins."""
    text = raw.strip()
    if not text.startswith("["):
        return [part.strip() for part in text.split(",") if part.strip()]
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(
            "CORS_ORIGINS must be a CSV list or JSON array string"
        ) from exc
    if not isinstance(decoded, list):
        raise ValueError("CORS_ORIGINS JSON must be a list")
    return [str(origin).strip() for origin in decoded]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "SupportRelay"
    ENVIRONMENT: str = "development"

    # Env may give a CSV or JSON string; the validator always leaves a list.
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    ALLOW_CREDENTIALS: bool = True

    # OpenAI-compatible chat-completion provider
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    EMBEDDING_MODEL: str = "text-embedding-3-small"

    RAG_TOP_K: int = 4
    RAG_MIN_SCORE: float | None = None

    # Used when the voice runtime leaves out the caller's identity
    DEFAULT_CHANNEL: str = "ccc"
    DEFAULT_USER_ID: str = "111"

    DATABASE_URL: str | None = None
    AGENT_ID: str = "support-relay"

    AZURE_COMMUNICATION_CONNECTION_STRING: str | None = None
    EMAIL_SENDER_ADDRESS: str = "DoNotReply@support-relay.local"
    SUPPORT_EMAIL: str = "support@support-relay.local"
    ESCALATION_EMAIL_TIMEOUT_SECONDS: float = 3.0

    STRUCTURED_DATA_WS_PATH: str = "/ws/structured-data"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: object) -> list[str]:
        if isinstance(value, str):
            return _split_origins(value)
        if isinstance(value, list | tuple):
            return [str(origin).strip() for origin in value]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @field_validator("ESCALATION_EMAIL_TIMEOUT_SECONDS")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("ESCALATION_EMAIL_TIMEOUT_SECONDS must be positive")
        return value

    @model_validator(mode="after")
    def _no_wildcard_with_credentials(self) -> "Settings":
        origins = self.CORS_ORIGINS
        if isinstance(origins, str):
            origins = self.CORS_ORIGINS = _split_origins(origins)
        if self.ALLOW_CREDENTIALS and "*" in origins:
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. List explicit origins instead."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "development").lower()
    if environment not in ENV_FILES:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    settings = Settings(_env_file=ENV_FILES[environment])  # type: ignore[call-arg]

    # Without provider credentials no request can be served.
    if environment == "production" and not settings.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY must be set in production")
    return settings

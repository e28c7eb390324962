from __future__ import annotations

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROPOSALS_DB_URL: str = "sqlite:///./proposal_builder.db"
    PROPOSALS_SESSION_SECRET: str
    PROPOSALS_AUTOSAVE_DEBOUNCE_MS: int = 600
    PROPOSALS_SHARE_TOKEN_BYTES: int = 24
    PROPOSALS_API_BASE_URL: AnyHttpUrl | None = None
    PROPOSALS_REQUEST_TIMEOUT_SECONDS: float = 20.0

    BACKEND_CORS_ORIGINS: list[str] = []
    LOG_LEVEL: str = "INFO"

    @field_validator("PROPOSALS_AUTOSAVE_DEBOUNCE_MS")
    @classmethod
    def validate_debounce(cls, value: int) -> int:
        if value < 0:
            raise ValueError("PROPOSALS_AUTOSAVE_DEBOUNCE_MS must be >= 0")
        return value

    @field_validator("PROPOSALS_SHARE_TOKEN_BYTES")
    @classmethod
    def validate_share_token_bytes(cls, value: int) -> int:
        # Anything shorter is guessable.
        if value < 16:
            raise ValueError("PROPOSALS_SHARE_TOKEN_BYTES must be >= 16")
        return value

    @property
    def autosave_delay_seconds(self) -> float:
        return self.PROPOSALS_AUTOSAVE_DEBOUNCE_MS / 1000.0

    @property
    def api_base_url(self) -> str | None:
        if self.PROPOSALS_API_BASE_URL is None:
            return None
        return str(self.PROPOSALS_API_BASE_URL).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

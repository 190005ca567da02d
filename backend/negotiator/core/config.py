"""
Service configuration.

WHAT: Every tunable of the negotiator, read from the environment or a .env file
WHY: Budgets, delays, and caps differ between local runs, CI, and production
HOW: pydantic-settings model validated once at import; `settings` is the shared instance
"""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_BACKEND_DIR.parent / ".env"), str(_BACKEND_DIR / ".env")),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Bagsy Negotiator"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite:///./data/negotiator.db"

    # Market analysis over an OpenAI-compatible API; off unless explicitly enabled
    LLM_ENABLE_OPENROUTER: bool = False
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_DEFAULT_MODEL: str = "openai/gpt-4o-mini"
    LLM_TIMEOUT: int = 30
    LLM_DEFAULT_TEMPERATURE: float = 0.0
    LLM_DEFAULT_MAX_TOKENS: int = 400

    # Lifetime budget of the request governor, not per negotiation
    LLM_REQUEST_BUDGET: int = 2
    LLM_RETRY_ATTEMPTS: int = 2
    LLM_RETRY_DELAY: float = 1.0

    NEXT_ROUND_DELAY_SECONDS: float = 3.0
    MAX_NEGOTIATION_ROUNDS: int = 10
    COMPARABLE_LISTINGS_LIMIT: int = 20

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/negotiator.log"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def join_cors_origins(cls, v):
        return ",".join(v) if isinstance(v, (list, tuple)) else v

    @field_validator(
        "LLM_REQUEST_BUDGET", "LLM_RETRY_ATTEMPTS", "MAX_NEGOTIATION_ROUNDS", "COMPARABLE_LISTINGS_LIMIT"
    )
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("NEXT_ROUND_DELAY_SECONDS", "LLM_RETRY_DELAY")
    @classmethod
    def not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    def get_cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()

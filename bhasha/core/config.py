"""
core/config.py
All environment variables and settings in one place.
Supports: OpenRouter / Gemini (OpenAI-compatible) / self-hosted LLM,
Tesseract OCR and Google Cloud Speech.
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ─── App ───────────────────────────────────────────────
    APP_NAME: str = "Bhasha EdTech Backend"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    API_PREFIX: str = "/api"
    ALLOWED_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

    # ─── LLM Provider (grammar + chat tutor) ───────────────
    # Options: "openrouter" | "gemini" | "self_hosted"
    LLM_PROVIDER: Literal["openrouter", "gemini", "self_hosted"] = "gemini"

    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_MODEL: str = "google/gemini-flash-1.5"

    # Gemini exposes an OpenAI-compatible endpoint
    GEMINI_API_KEY: str = ""
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    GEMINI_MODEL: str = "gemini-1.5-flash"

    SELF_HOSTED_BASE_URL: str = "http://localhost:11434/v1"   # Ollama default
    SELF_HOSTED_API_KEY: str = "none"
    SELF_HOSTED_MODEL: str = "mistral:7b-instruct-q4_K_M"

    # ─── LLM Generation Settings ───────────────────────────
    GRAMMAR_MAX_TOKENS: int = 2048
    GRAMMAR_TEMPERATURE: float = 0.3   # low = consistent corrections
    CHAT_MAX_TOKENS: int = 768
    CHAT_TEMPERATURE: float = 0.6
    LLM_TIMEOUT: float = 30.0          # seconds

    # ─── OCR ───────────────────────────────────────────────
    TESSERACT_CMD: str = "tesseract"

    # ─── Speech ────────────────────────────────────────────
    # Credentials come from GOOGLE_APPLICATION_CREDENTIALS
    SPEECH_MODEL: str = "latest_long"
    SPEECH_SAMPLE_RATE_HZ: int = 48000

    # ─── Export ────────────────────────────────────────────
    # Noto Sans TTFs for PDF output; Helvetica is used when missing
    FONT_DIR: str = "fonts"

    # ─── Chat sessions ─────────────────────────────────────
    CHAT_HISTORY_LIMIT: int = 50
    SESSION_TTL_SECONDS: int = 3600
    REDIS_URL: str = "redis://localhost:6379/0"
    USE_REDIS: bool = False            # False = in-memory dict (dev mode)

    # ─── Rate Limiting ─────────────────────────────────────
    RATE_LIMIT: str = "100/15minutes"
    RATE_LIMIT_ENABLED: bool = True

    # ─── Security ──────────────────────────────────────────
    API_KEY: str = ""
    REQUIRE_API_KEY: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def llm_base_url(self) -> str:
        if self.LLM_PROVIDER == "openrouter":
            return self.OPENROUTER_BASE_URL
        if self.LLM_PROVIDER == "gemini":
            return self.GEMINI_BASE_URL
        return self.SELF_HOSTED_BASE_URL

    @property
    def llm_api_key(self) -> str:
        if self.LLM_PROVIDER == "openrouter":
            return self.OPENROUTER_API_KEY
        if self.LLM_PROVIDER == "gemini":
            return self.GEMINI_API_KEY
        return self.SELF_HOSTED_API_KEY

    @property
    def llm_model(self) -> str:
        if self.LLM_PROVIDER == "openrouter":
            return self.OPENROUTER_MODEL
        if self.LLM_PROVIDER == "gemini":
            return self.GEMINI_MODEL
        return self.SELF_HOSTED_MODEL


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

"""
Runtime configuration.

Values come from the environment, optionally seeded from a .env file.
`LLMConfig` is immutable and passed into each extraction call; derive
per-task variants with `dataclasses.replace`.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional
import logging
import os

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class LLMConfig:
    """Model settings for a single language-model request."""
    provider: str = "gemini"
    model: str = "gemini-2.0-flash"
    temperature: float = 0.3
    max_output_tokens: int = 2000

    def __post_init__(self):
        if not 0 <= self.temperature <= 2:
            raise ValueError("Temperature must be between 0 and 2")
        if self.max_output_tokens <= 0:
            raise ValueError("max_output_tokens must be positive")

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            provider=os.environ.get("LLM_PROVIDER", "gemini"),
            model=os.environ.get("LLM_MODEL", "gemini-2.0-flash"),
            temperature=float(os.environ.get("LLM_TEMPERATURE", "0.3")),
            max_output_tokens=int(os.environ.get("LLM_MAX_TOKENS", "2000")),
        )


@dataclass(frozen=True)
class Settings:
    """Process-wide settings for the API server."""
    google_api_key: str = ""
    llm: LLMConfig = field(default_factory=LLMConfig)
    catalog_file: Optional[str] = None
    log_level: str = "INFO"
    environment: str = "development"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            google_api_key=os.environ.get("GOOGLE_API_KEY", ""),
            llm=LLMConfig.from_env(),
            catalog_file=os.environ.get("FILTER_CATALOG_FILE") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            environment=os.environ.get("APP_ENV", "development"),
            port=int(os.environ.get("PORT", "8000")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings.from_env()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

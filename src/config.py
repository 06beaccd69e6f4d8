"""
HomeOps Assistant — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str
    BOT_USERNAME: str = ""       # empty → resolved from getMe at startup

    # LLM — provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "openai"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str
    LLM_TIMEOUT_SECONDS: float = 10.0

    # SQLite
    DATABASE_PATH: str = "data/homeops.db"
    MESSAGE_RETENTION_DAYS: int = 90

    # Security: empty list means every chat the bot is in
    ALLOWED_CHAT_IDS: list[int] = []

    # Local time
    TIMEZONE: str = "Europe/Stockholm"
    QUIET_HOURS_START: int = 22
    QUIET_HOURS_END: int = 7

    # Response policy
    DAILY_CAP: int = 3
    COOLDOWN_MINUTES: int = 15
    CONFIDENCE_HIGH: float = 0.85
    CONFIDENCE_CLARIFY: float = 0.50
    CORRECTION_CONFIDENCE: float = 0.70
    PREFERENCE_SUPPRESSION: bool = True

    # Fast conversation detection
    FAST_CONVERSATION_WINDOW: int = 10
    FAST_CONVERSATION_SECONDS: int = 60
    FAST_CONVERSATION_THRESHOLD: int = 3

    # Learning
    EMA_ALPHA: float = 0.3
    EMA_ALPHA_IGNORE: float = 0.2
    ALIAS_CACHE_TTL_SECONDS: int = 300

    @field_validator("ALLOWED_CHAT_IDS", mode="before")
    @classmethod
    def parse_chat_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(cid.strip()) for cid in v.split(",") if cid.strip()]
        return []

    @field_validator("PREFERENCE_SUPPRESSION", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        BOT_USERNAME=os.getenv("BOT_USERNAME", ""),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "openai"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_TIMEOUT_SECONDS=os.getenv("LLM_TIMEOUT_SECONDS", "10"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/homeops.db"),
        MESSAGE_RETENTION_DAYS=os.getenv("MESSAGE_RETENTION_DAYS", "90"),
        ALLOWED_CHAT_IDS=os.getenv("ALLOWED_CHAT_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", "Europe/Stockholm"),
        QUIET_HOURS_START=os.getenv("QUIET_HOURS_START", "22"),
        QUIET_HOURS_END=os.getenv("QUIET_HOURS_END", "7"),
        DAILY_CAP=os.getenv("DAILY_CAP", "3"),
        COOLDOWN_MINUTES=os.getenv("COOLDOWN_MINUTES", "15"),
        CONFIDENCE_HIGH=os.getenv("CONFIDENCE_HIGH", "0.85"),
        CONFIDENCE_CLARIFY=os.getenv("CONFIDENCE_CLARIFY", "0.50"),
        CORRECTION_CONFIDENCE=os.getenv("CORRECTION_CONFIDENCE", "0.70"),
        PREFERENCE_SUPPRESSION=os.getenv("PREFERENCE_SUPPRESSION", "true"),
        FAST_CONVERSATION_WINDOW=os.getenv("FAST_CONVERSATION_WINDOW", "10"),
        FAST_CONVERSATION_SECONDS=os.getenv("FAST_CONVERSATION_SECONDS", "60"),
        FAST_CONVERSATION_THRESHOLD=os.getenv("FAST_CONVERSATION_THRESHOLD", "3"),
        EMA_ALPHA=os.getenv("EMA_ALPHA", "0.3"),
        EMA_ALPHA_IGNORE=os.getenv("EMA_ALPHA_IGNORE", "0.2"),
        ALIAS_CACHE_TTL_SECONDS=os.getenv("ALIAS_CACHE_TTL_SECONDS", "300"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()

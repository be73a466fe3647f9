"""Centralized settings module — single source of truth for all config.

All vendor secrets loaded exclusively from env vars. Never committed, never logged.
Redaction enforced everywhere via observability.redaction.
"""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # ── Environment ──────────────────────────────────────────────
    ENV: Literal["dev", "staging", "prod"] = Field(default="dev")

    # ── Deepgram (primary STT vendor) ────────────────────────────
    DEEPGRAM_API_KEY: str = Field(default="")
    DEEPGRAM_MODEL: str = Field(default="nova-2")
    DEEPGRAM_LANGUAGE: str = Field(default="en-US")

    # ── OpenAI Whisper (secondary STT vendor) ────────────────────
    OPENAI_API_KEY: str = Field(default="")
    OPENAI_ORG_ID: str = Field(default="")
    OPENAI_BASE_URL: str = Field(default="")  # proxy override, empty = SDK default
    WHISPER_MODEL: str = Field(default="whisper-1")
    WHISPER_LANGUAGE: str = Field(default="en")

    # ── Provider chain tuning ────────────────────────────────────
    STT_CB_FAILURE_THRESHOLD: int = Field(default=3)
    STT_CB_RESET_TIMEOUT_MS: int = Field(default=30_000)
    STT_CALL_TIMEOUT_S: float = Field(default=15.0)  # 0 → no per-call deadline
    STT_MAX_AUDIO_BYTES: int = Field(default=25 * 1024 * 1024)  # Whisper upload cap

    # ── Observability ────────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")
    LOG_REDACTION_ENABLED: bool = Field(default=True)

    model_config = {
        "env_file": str(_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

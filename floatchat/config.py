# floatchat/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# ---- Load env ----
ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / ".env", override=True)

DEFAULT_CONTEXT_WINDOW = 5
DEFAULT_HISTORY_LIMIT = 10


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    context_window: int = DEFAULT_CONTEXT_WINDOW
    history_limit: int = DEFAULT_HISTORY_LIMIT
    azure_api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_api_version: str = "2024-12-01-preview"
    azure_deployment: Optional[str] = None

    @property
    def allow_credentials(self) -> bool:
        return not (len(self.cors_origins) == 1 and self.cors_origins[0] == "*")

    @property
    def ai_configured(self) -> bool:
        return all([self.azure_api_key, self.azure_endpoint, self.azure_deployment])


def get_settings() -> Settings:
    """
    Read settings from the environment on every call so tests and
    long-running processes pick up changes without a restart.
    """
    return Settings(
        cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()] or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        context_window=max(1, _int_env("FLOATCHAT_CONTEXT_WINDOW", DEFAULT_CONTEXT_WINDOW)),
        history_limit=max(1, _int_env("FLOATCHAT_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)),
        azure_api_key=os.getenv("AZURE_OPENAI_API_KEY"),
        azure_endpoint=(os.getenv("AZURE_OPENAI_ENDPOINT") or "").rstrip("/") or None,
        azure_api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-12-01-preview"),
        azure_deployment=os.getenv("AZURE_OPENAI_DEPLOYMENT"),
    )

from __future__ import annotations

import os
from dataclasses import dataclass

from journal_import.config.paths import default_db_path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_text(name: str, default: str) -> str:
    raw = str(os.getenv(name, "") or "").strip()
    return raw or default


def _default_log_level(app_env: str) -> str:
    return "WARNING" if app_env.lower() in {"production", "test"} else "INFO"


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: str
    openai_model: str
    enable_ai_mapping: bool
    source_timezone: str
    atas_sheet_name: str
    log_level: str


def get_settings() -> Settings:
    db_default = f"sqlite:///{default_db_path().as_posix()}"
    app_env = _env_text("APP_ENV", "development")
    return Settings(
        app_env=app_env,
        database_url=_env_text("DATABASE_URL", db_default),
        openai_model=_env_text("OPENAI_MODEL", "gpt-5-mini"),
        enable_ai_mapping=_env_bool("ENABLE_AI_MAPPING", False),
        source_timezone=_env_text("SOURCE_TIMEZONE", "UTC"),
        atas_sheet_name=_env_text("ATAS_SHEET_NAME", "Journal"),
        log_level=_env_text("LOG_LEVEL", _default_log_level(app_env)).upper(),
    )

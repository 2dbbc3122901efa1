"""
config.py
Application settings (Supabase project, auth timeout, operator defaults).
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase project (table storage + auth)
    supabase_url: str = ""
    supabase_key: str = ""

    # Initial session check gives up after this many seconds
    session_check_timeout: float = 4.0

    # Name recorded as "responsible" on entries made from this desk
    operator_name: str = "Administrador"

    # Year embedded in new family codes (None = current year)
    family_code_year: int | None = None

    # App
    log_level: str = "INFO"

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


settings = Settings()

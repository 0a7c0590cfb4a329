"""
config.py — Returnly settings.

Usage:
    from returnly.config import settings
    print(settings.default_financial_year)

Import the module-level singleton directly; never construct Settings per call.
Every field can be overridden with a RETURNLY_-prefixed environment variable
or a .env file in the working directory.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Packaged per-year slab tables (one YAML file per financial year)
PACKAGED_TAX_TABLES_DIR = Path(__file__).parent / "engine" / "tables"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s — %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RETURNLY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Tax tables ---
    # Directory of *.yaml slab tables. None → tables shipped with the package.
    tax_tables_dir: Optional[Path] = None

    # Financial year used when a caller does not name one
    default_financial_year: str = "2024-25"

    # --- Logging ---
    log_level: str = "INFO"
    debug: bool = False

    @property
    def resolved_tax_tables_dir(self) -> Path:
        """Directory the SlabTable Provider reads from."""
        return self.tax_tables_dir or PACKAGED_TAX_TABLES_DIR


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once for a process embedding the engine.

    debug=True forces DEBUG; otherwise the explicit level argument wins over
    settings.log_level.
    """
    if settings.debug:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or settings.log_level).upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level or settings.log_level!r}")
    logging.basicConfig(level=resolved, format=LOG_FORMAT)


# Module-level singleton: import this throughout the codebase
settings = Settings()

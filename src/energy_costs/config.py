"""Runtime settings read from the environment (and a .env file if present)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .tariffs import DEFAULT_CURRENCY, SCHEMA_DEFAULT_TIMEZONE, TOOL_DEFAULT_TIMEZONE

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "energy-costs" / "energy.db"


@dataclass(frozen=True)
class Settings:
    """Paths and defaults used by the CLI and tool surface."""

    db_path: Path = DEFAULT_DB_PATH
    tariff_path: Path | None = None
    tool_timezone: str = TOOL_DEFAULT_TIMEZONE
    schema_timezone: str = SCHEMA_DEFAULT_TIMEZONE
    currency: str = DEFAULT_CURRENCY


def load_settings() -> Settings:
    """Build Settings from ENERGY_COSTS_* environment variables."""
    load_dotenv()

    tariff_path = os.environ.get("ENERGY_COSTS_TARIFF_PATH")
    return Settings(
        db_path=Path(os.environ.get("ENERGY_COSTS_DB_PATH", DEFAULT_DB_PATH)),
        tariff_path=Path(tariff_path) if tariff_path else None,
        tool_timezone=os.environ.get("ENERGY_COSTS_TOOL_TIMEZONE", TOOL_DEFAULT_TIMEZONE),
        schema_timezone=os.environ.get("ENERGY_COSTS_SCHEMA_TIMEZONE", SCHEMA_DEFAULT_TIMEZONE),
        currency=os.environ.get("ENERGY_COSTS_CURRENCY", DEFAULT_CURRENCY),
    )

"""Configuration module for the notekeep client."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives alongside the default database
_USER_ENV = Path.home() / ".notekeep" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Matches the "long" snackbar duration the undo prompt was designed around
DEFAULT_UNDO_WINDOW_SECONDS = 2.75


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NotekeepConfig(BaseModel):
    """Configuration for the notekeep client."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEKEEP_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEKEEP_DATABASE_PATH", "data/db/notekeep.db")
        )
    )
    # When True, notes live in an in-memory SQLite database and are lost on exit
    in_memory_db: bool = Field(
        default_factory=lambda: _env_flag("NOTEKEEP_IN_MEMORY_DB", "false")
    )
    # How long a swiped-away note can be brought back with undo
    undo_window_seconds: float = Field(
        default_factory=lambda: float(
            os.getenv("NOTEKEEP_UNDO_WINDOW_SECONDS", str(DEFAULT_UNDO_WINDOW_SECONDS))
        ),
        gt=0,
    )
    # Number of content characters shown under each title in the list
    preview_length: int = Field(
        default_factory=lambda: int(os.getenv("NOTEKEEP_PREVIEW_LENGTH", "80")),
        ge=1,
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTEKEEP_LOG_LEVEL", "INFO").upper()
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTEKEEP_LOG_DIR"))
            if os.getenv("NOTEKEEP_LOG_DIR")
            else None
        )
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _warn_on_long_window(self) -> "NotekeepConfig":
        """Flag undo windows long enough to keep deleted notes around for a while."""
        if self.undo_window_seconds > 60:
            logger.warning(
                "Undo window of %.1fs is unusually long; deleted notes stay "
                "in memory until it expires.",
                self.undo_window_seconds,
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = NotekeepConfig()

# Applicant board configuration
# Override via hireboard.yaml or environment variables.

import logging
import os
import sys
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

CONFIG_PATH = Path("hireboard.yaml")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class BoardConfig:
    """Runtime configuration for the board."""

    # Persistence (empty = local-only mode with sample data)
    db_path: str = ""
    seed_sample_data: bool = True
    subscribe_to_changes: bool = True

    # Server
    api_secret: str = ""

    # Logging
    log_level: str = "INFO"

    @property
    def remote_configured(self) -> bool:
        """Whether sync/rollback against the database runs at all."""
        return bool(self.db_path)

    def apply_env(self) -> "BoardConfig":
        """Environment variables win over file values."""
        db = os.environ.get("HIREBOARD_DB")
        if db is not None:
            self.db_path = db
        secret = os.environ.get("HIREBOARD_API_SECRET")
        if secret is not None:
            self.api_secret = secret
        level = os.environ.get("HIREBOARD_LOG_LEVEL")
        if level:
            self.log_level = level
        return self

    def validate(self) -> "BoardConfig":
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level: {self.log_level}. Use one of {LOG_LEVELS}")
        if self.db_path:
            self.db_path = str(Path(self.db_path).expanduser())
        return self

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except Exception:
                cfg = cls()
        else:
            cfg = cls()
        return cfg.apply_env().validate()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [hireboard] %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

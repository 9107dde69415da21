"""
Configuration management for Clef.

This module loads the database location and lookup settings from TOML files.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from clef.core.batch import DEFAULT_MAX_BATCH_LENGTH

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULT_DB_PATH = Path("clef.sqlite3")


@dataclass
class ClefConfig:
    """Loaded configuration."""

    db_path: Path = DEFAULT_DB_PATH
    max_batch_length: int = DEFAULT_MAX_BATCH_LENGTH
    include_untagged: bool = False

    def __post_init__(self) -> None:
        if self.max_batch_length <= 0:
            raise ValueError(
                f"lookup.max_batch_length must be > 0, got {self.max_batch_length}"
            )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] must be a table")
    return section


def load_config(config_path: Path | None = None) -> ClefConfig:
    """
    Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML file. If None, uses clef.toml next to this module.

    Returns:
        Loaded ClefConfig instance. Missing keys keep their defaults.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "clef.toml"

    logger.debug("Loading config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    database = _section(data, "database")
    lookup = _section(data, "lookup")

    include_untagged = lookup.get("include_untagged", False)
    if not isinstance(include_untagged, bool):
        raise ValueError(
            f"lookup.include_untagged must be true or false, got {include_untagged!r}"
        )

    return ClefConfig(
        db_path=Path(database.get("path", DEFAULT_DB_PATH)),
        max_batch_length=int(lookup.get("max_batch_length", DEFAULT_MAX_BATCH_LENGTH)),
        include_untagged=include_untagged,
    )


# Global singleton instance (lazy loaded)
_config: ClefConfig | None = None


def get_config() -> ClefConfig:
    """
    Get the global configuration (lazy loaded singleton).

    Returns:
        The ClefConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config(config_path: Path | None = None) -> ClefConfig:
    """
    Force reload of the configuration.

    Returns:
        The newly loaded ClefConfig instance.
    """
    global _config
    _config = load_config(config_path)
    return _config

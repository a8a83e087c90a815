"""Configuration loading and saving."""

import json
from pathlib import Path

from loguru import logger

from tierwise.config.schema import Config


def get_config_path() -> Path:
    """Default config file location."""
    return Path.home() / ".tierwise" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from a JSON file.

    A missing file yields the defaults (plus any TIERWISE_* environment
    overrides). A malformed file raises instead of silently falling back.

    Args:
        config_path: Optional path; defaults to ~/.tierwise/config.json.

    Returns:
        Frozen Config instance.
    """
    path = config_path or get_config_path()

    if not path.exists():
        logger.debug(f"No config at {path}, using defaults")
        return Config()

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    config = Config(**data)
    logger.debug(f"Loaded config from {path}")
    return config


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write configuration to a JSON file and return its path."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    return path

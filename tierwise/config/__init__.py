"""Configuration module for tierwise."""

from tierwise.config.loader import get_config_path, load_config, save_config
from tierwise.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]

"""Configuration module for emul."""

from emul_agent.config.loader import get_config_path, load_config, save_config
from emul_agent.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]

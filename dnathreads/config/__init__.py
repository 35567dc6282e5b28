"""Configuration module for dnathreads."""

from dnathreads.config.loader import get_config_path, get_data_dir, load_config, save_config
from dnathreads.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path", "get_data_dir"]

"""Configuration: YAML file + env overlay."""

from changuard.config.loader import ConfigStore, load_config, load_config_with_env
from changuard.config.schema import ChannelConfig, Config

__all__ = ["ChannelConfig", "Config", "ConfigStore", "load_config", "load_config_with_env"]

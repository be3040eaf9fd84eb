"""Configuration module for intercom-mcp."""

from intercom_mcp.config.loader import load_config, get_config_path, save_config
from intercom_mcp.config.schema import Config, IntercomConfig, LoggingConfig, TransportConfig

__all__ = [
    "Config",
    "IntercomConfig",
    "LoggingConfig",
    "TransportConfig",
    "load_config",
    "get_config_path",
    "save_config",
]

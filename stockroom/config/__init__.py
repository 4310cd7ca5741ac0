"""Stockroom configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/stockroom/config.toml (user config)
4. /etc/stockroom/config.toml (system config)
"""

from stockroom.config.schema import (
    DatabaseConfig,
    ImportConfig,
    LoggingConfig,
    ServerConfig,
    StockroomConfig,
    default_validation_rules,
)
from stockroom.config.settings import get_settings, reset_settings, settings

__all__ = [
    "DatabaseConfig",
    "ImportConfig",
    "LoggingConfig",
    "ServerConfig",
    "StockroomConfig",
    "default_validation_rules",
    "get_settings",
    "reset_settings",
    "settings",
]

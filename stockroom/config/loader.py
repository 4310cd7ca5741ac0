"""Configuration loader for Stockroom.

Loads configuration from TOML files. Environment variables can override
any configuration value listed in apply_env_overrides.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from stockroom.config.schema import StockroomConfig

logger = logging.getLogger(__name__)

_INT_KEYS = {
    "port",
    "min_pool_size",
    "max_pool_size",
    "max_file_size",
    "batch_size",
    "batch_delay_ms",
    "preview_rows",
    "max_rows",
}
_FLOAT_KEYS = {"mapping_threshold", "suggestion_threshold"}
_BOOL_KEYS = {"debug", "skip_empty_rows", "trim_whitespace"}


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/stockroom/config.toml (user config)
    3. /etc/stockroom/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "stockroom" / "config.toml",
        Path("/etc/stockroom/config.toml"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found config file: %s", path)
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = "STOCKROOM") -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - STOCKROOM_SERVER_HOST -> config_dict["server"]["host"]
    - STOCKROOM_IMPORT_BATCH_SIZE -> config_dict["csv_import"]["batch_size"]
    - etc.

    Note: This modifies config_dict in place.
    """
    env_mappings = {
        # Server
        f"{prefix}_SERVER_HOST": ("server", "host"),
        f"{prefix}_SERVER_PORT": ("server", "port"),
        f"{prefix}_SERVER_DEBUG": ("server", "debug"),
        f"{prefix}_DEBUG": ("server", "debug"),  # Shorthand
        f"{prefix}_HOST": ("server", "host"),  # Shorthand
        f"{prefix}_PORT": ("server", "port"),  # Shorthand
        # Database
        f"{prefix}_DATABASE_MONGODB_URL": ("database", "mongodb_url"),
        f"{prefix}_DATABASE_MONGODB_DATABASE": ("database", "mongodb_database"),
        f"{prefix}_MONGODB_URL": ("database", "mongodb_url"),  # Shorthand
        f"{prefix}_MONGODB_DATABASE": ("database", "mongodb_database"),  # Shorthand
        # Logging
        f"{prefix}_LOG_LEVEL": ("logging", "level"),
        f"{prefix}_LOG_FILE": ("logging", "log_file"),
        # CSV import
        f"{prefix}_IMPORT_MAX_FILE_SIZE": ("csv_import", "max_file_size"),
        f"{prefix}_IMPORT_BATCH_SIZE": ("csv_import", "batch_size"),
        f"{prefix}_IMPORT_BATCH_DELAY_MS": ("csv_import", "batch_delay_ms"),
        f"{prefix}_IMPORT_PREVIEW_ROWS": ("csv_import", "preview_rows"),
        f"{prefix}_IMPORT_MAX_ROWS": ("csv_import", "max_rows"),
        f"{prefix}_IMPORT_DELIMITER": ("csv_import", "delimiter"),
        f"{prefix}_IMPORT_SKIP_EMPTY_ROWS": ("csv_import", "skip_empty_rows"),
        f"{prefix}_IMPORT_TRIM_WHITESPACE": ("csv_import", "trim_whitespace"),
        f"{prefix}_IMPORT_MAPPING_THRESHOLD": ("csv_import", "mapping_threshold"),
        f"{prefix}_IMPORT_SUGGESTION_THRESHOLD": ("csv_import", "suggestion_threshold"),
    }

    for env_var, path in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            section, key = path

            # Ensure section exists
            if section not in config_dict:
                config_dict[section] = {}

            # Convert value to appropriate type
            if key in _INT_KEYS:
                config_dict[section][key] = int(value)
            elif key in _FLOAT_KEYS:
                config_dict[section][key] = float(value)
            elif key in _BOOL_KEYS:
                config_dict[section][key] = value.lower() in ("true", "1", "yes")
            elif key == "level":
                config_dict[section][key] = value.upper()
            else:
                config_dict[section][key] = value


def load_config(config_file: Path | None = None) -> StockroomConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        StockroomConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return StockroomConfig(**config_dict)

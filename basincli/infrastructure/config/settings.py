"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML configuration file (~/.databasin/config.yaml),
a .env file, and environment variables, and snapshots the result into an
immutable CliConfig consumed by the request engine.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from basincli.domain.errors import ConfigError, FileSystemError

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
ENV_PREFIX = "DATABASIN_"
CONFIG_PATH_ENV_VAR = "DATABASIN_CONFIG_PATH"
DEFAULT_CONFIG_DIR = Path.home() / ".databasin"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

OUTPUT_FORMATS = ("table", "json", "csv")

DEFAULTS: Dict[str, Any] = {
    "api_url": "http://localhost:9000",
    "timeout": 30,
    "debug": False,
    "retries": 0,
    "retry_delay": 1.0,
    "bulk.concurrency": 5,
    "token_efficiency.default_limit": 100,
    "token_efficiency.warn_threshold": 50000,
    "output.format": "table",
    "logging.level": "WARNING",
    "logging.file": None,
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False
_loaded_from: Optional[Path] = None


def get_config_path() -> Path:
    """Returns the YAML config path, honouring DATABASIN_CONFIG_PATH."""
    override = os.environ.get(CONFIG_PATH_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_FILE


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from .env file and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Built-in defaults

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).

    Raises:
        FileSystemError: If the YAML file exists but cannot be read.
        ConfigError: If the YAML file does not contain a mapping.
    """
    global _config, _loaded, _loaded_from
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    # 1. .env file (never overrides real environment variables)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    # 2. YAML file
    path = config_file or get_config_path()
    _config = {}
    if path.exists():
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Failed to read config file: {e}", str(path), "read") from e
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}", str(path)) from e
        if isinstance(data, dict):
            _config = data
            _loaded_from = path
            logger.info(f"Loaded configuration from YAML: {path}")
        elif data is not None:
            raise ConfigError("Config file must contain a mapping", str(path))
    else:
        logger.debug(f"YAML config file not found: {path}")

    _loaded = True


def reset_configuration() -> None:
    """Forgets loaded configuration so the next load re-reads files."""
    global _config, _loaded, _loaded_from
    _config = {}
    _loaded = False
    _loaded_from = None


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _coerce_env_value(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def _lookup(data: Dict[str, Any], dotted_key: str) -> Any:
    if dotted_key in data:
        return data[dotted_key]
    node: Any = data
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(dotted_key)
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dotted key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable DATABASIN_<KEY> (dots become underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'token_efficiency.default_limit'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = ENV_PREFIX + key.upper().replace(".", "_")
    if os.environ.get(env_key):
        return _coerce_env_value(os.environ[env_key])

    try:
        return _lookup(_config, key)
    except KeyError:
        pass

    if default is not None:
        return default
    return DEFAULTS.get(key)


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# --- Snapshot ---

@dataclass(frozen=True)
class CliConfig:
    """Resolved configuration for one CLI invocation. Durations in seconds."""
    api_url: str
    timeout: float
    debug: bool
    retries: int
    retry_delay: float
    bulk_concurrency: int
    default_limit: int
    warn_threshold: int
    output_format: str
    log_level: str
    log_file: Optional[str]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_number(key: str, value: Any, kind: type) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number, got {value!r}", _source_path()) from e


def _source_path() -> Optional[str]:
    return str(_loaded_from) if _loaded_from else None


def build_cli_config(**overrides: Any) -> CliConfig:
    """Snapshots the current configuration, applying command-line overrides.

    Args:
        **overrides: CliConfig field values from command-line flags; None
            values are ignored.

    Raises:
        ConfigError: If a value is out of range.
    """
    values: Dict[str, Any] = {
        "api_url": str(get_config("api_url")).rstrip("/"),
        "timeout": _as_number("timeout", get_config("timeout"), float),
        "debug": _as_bool(get_config("debug")),
        "retries": _as_number("retries", get_config("retries"), int),
        "retry_delay": _as_number("retry_delay", get_config("retry_delay"), float),
        "bulk_concurrency": _as_number("bulk.concurrency", get_config("bulk.concurrency"), int),
        "default_limit": _as_number("token_efficiency.default_limit", get_config("token_efficiency.default_limit"), int),
        "warn_threshold": _as_number("token_efficiency.warn_threshold", get_config("token_efficiency.warn_threshold"), int),
        "output_format": str(get_config("output.format")).lower(),
        "log_level": str(get_config("logging.level")).upper(),
        "log_file": get_config("logging.file"),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    config = CliConfig(**values)
    validate_config(config)
    return config


def validate_config(config: CliConfig) -> None:
    path = _source_path()
    if not config.api_url.startswith(("http://", "https://")):
        raise ConfigError(f"API URL must start with http:// or https://: {config.api_url}", path)
    if config.timeout <= 0:
        raise ConfigError("Timeout must be greater than zero", path)
    if config.retries < 0:
        raise ConfigError("Retries cannot be negative", path)
    if config.retry_delay < 0:
        raise ConfigError("Retry delay cannot be negative", path)
    if config.bulk_concurrency < 1:
        raise ConfigError("Bulk concurrency must be at least 1", path)
    if config.default_limit < 1:
        raise ConfigError("Token efficiency default_limit must be at least 1", path)
    if config.warn_threshold < 0:
        raise ConfigError("Token efficiency warn_threshold cannot be negative", path)
    if config.output_format not in OUTPUT_FORMATS:
        raise ConfigError(f"Output format must be one of {', '.join(OUTPUT_FORMATS)}", path)

"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.chirpkit/config.yaml), and builds the typed
settings objects (credentials, retry policy) the client needs.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Dict

import yaml
from dotenv import load_dotenv

from chirpkit.domain.exceptions import ConfigurationError
from chirpkit.domain.models.request import OAuthCredentials
from chirpkit.infrastructure.resilience.api_retry import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_AFTER_SEC,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".chirpkit"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
DEFAULT_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
DEFAULT_HTTP_TIMEOUT = 30.0

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML sections into dotted keys ('retry': {'automatic': x} -> 'retry.automatic')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; existing environment variables take precedence
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded values so the next load_configuration() reads the sources again."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None, coerce: bool = True) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots replaced by underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'retry.max_attempts'
        default: Default value if the key is not found
        coerce: Convert environment strings to bool/int/float when they look like one

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        value = os.environ[env_key]
        return _coerce(value) if coerce else value

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


# --- Convenience Functions ---

def get_credentials() -> OAuthCredentials:
    """Builds OAuth credentials from CHIRPKIT_* variables or the `credentials` YAML section.

    Raises:
        ConfigurationError: If the consumer key or secret is missing.
    """
    def lookup(name: str) -> Optional[str]:
        value = get_config(f'CHIRPKIT_{name.upper()}', coerce=False) or get_config(f'credentials.{name}', coerce=False)
        return str(value) if value is not None else None

    api_key = lookup('api_key')
    api_secret_key = lookup('api_secret_key')
    if not api_key or not api_secret_key:
        raise ConfigurationError(
            "API key and secret are required: set CHIRPKIT_API_KEY and CHIRPKIT_API_SECRET_KEY "
            f"or the credentials section of {DEFAULT_CONFIG_FILE}"
        )
    return OAuthCredentials(
        api_key=api_key,
        api_secret_key=api_secret_key,
        access_token=lookup('access_token'),
        access_token_secret=lookup('access_token_secret'),
    )


def get_retry_policy() -> RetryPolicy:
    """Reads retry.automatic, retry.max_attempts and retry.default_wait_seconds."""
    max_attempts = int(get_config('retry.max_attempts', DEFAULT_MAX_ATTEMPTS))
    if max_attempts < 1:
        raise ConfigurationError(f"retry.max_attempts must be at least 1, got {max_attempts}")
    return RetryPolicy(
        automatic_retry=_as_bool(get_config('retry.automatic', True)),
        max_attempts=max_attempts,
        default_wait_seconds=int(get_config('retry.default_wait_seconds', DEFAULT_RETRY_AFTER_SEC)),
    )


def get_http_timeout() -> float:
    return float(get_config('http.timeout', DEFAULT_HTTP_TIMEOUT))


def get_upload_url() -> str:
    return str(get_config('upload.url', DEFAULT_UPLOAD_URL))


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

"""Environment variable configuration.

Loads ``.env`` files and the process environment, validating every value
before it can override the JSON configuration. Secrets such as the Gemini API
key are expected to come from here rather than from ``config.json``.
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable environment configuration object."""

    # API Configuration
    gemini_api_key: Optional[str]
    gemini_model: Optional[str]
    gemini_timeout: Optional[int]
    gemini_temperature: Optional[float]
    gemini_max_tokens: Optional[int]

    # Application Configuration
    debug_logging: bool
    data_dir: Optional[str]

    is_api_key_configured: bool


class EnvironmentValidator:
    """Validates environment variable values."""

    GEMINI_API_KEY_PATTERN = re.compile(r'^AIza[0-9A-Za-z_-]{35}$')

    VALID_GEMINI_MODELS = {
        'gemini-2.5-pro',
        'gemini-2.5-flash',
        'gemini-2.0-flash',
        'gemini-3-pro-preview',
        'gemini-1.5-pro',
        'gemini-1.5-flash',
    }

    @classmethod
    def validate_api_key(cls, api_key: str) -> bool:
        """Validate Gemini API key format.

        Args:
            api_key: The API key to validate

        Returns:
            bool: True if valid format, False otherwise
        """
        if not api_key or not isinstance(api_key, str):
            return False

        if not cls.GEMINI_API_KEY_PATTERN.match(api_key):
            logger.warning("API key does not match expected Gemini format")
            return False

        return True

    @classmethod
    def validate_model_name(cls, model_name: str) -> bool:
        return model_name in cls.VALID_GEMINI_MODELS

    @classmethod
    def sanitize_path(cls, path: str) -> str:
        """Normalize a directory override, rejecting shell metacharacters.

        Raises:
            ConfigError: If path is empty or contains dangerous characters
        """
        if not path:
            raise ConfigError("Path cannot be empty")

        dangerous_patterns = ['..', '~', '$', '`', ';', '|', '&', '<', '>', '"', "'"]
        for pattern in dangerous_patterns:
            if pattern in path:
                raise ConfigError(f"Path contains dangerous pattern: {pattern}")

        return os.path.normpath(path)

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                               min_val: Optional[Union[int, float]] = None,
                               max_val: Optional[Union[int, float]] = None,
                               value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            ConfigError: If the value does not parse or is out of range
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise ConfigError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise ConfigError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise ConfigError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Load ``KEY=VALUE`` pairs from a .env file (missing file -> empty dict)."""
    if env_path is None:
        env_path = ".env"

    env_vars: Dict[str, str] = {}
    env_file_path = Path(env_path)

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_path} not found, using system environment only")
        return env_vars

    try:
        with open(env_file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()

                if not line or line.startswith('#'):
                    continue

                if '=' in line:
                    key, value = line.split('=', 1)
                    key = key.strip()
                    value = value.strip()

                    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                        value = value[1:-1]

                    env_vars[key] = value
                else:
                    logger.warning(f"Invalid line format in {env_path}:{line_num}")

        logger.info(f"Loaded {len(env_vars)} variables from {env_path}")

    except OSError as e:
        logger.error(f"Error reading environment file {env_path}: {e}")

    return env_vars


def get_env_var(key: str, default: Optional[str] = None,
                env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Value from the loaded .env dict first, then the process environment."""
    if env_vars and key in env_vars:
        return env_vars[key]
    return os.getenv(key, default)


def _optional_number(key: str, env_vars: Dict[str, str], min_val, max_val, value_type):
    raw = get_env_var(key, env_vars=env_vars)
    if raw is None or raw.strip() == "":
        return None
    try:
        return EnvironmentValidator.validate_numeric_range(raw, min_val, max_val, value_type)
    except ConfigError as e:
        logger.warning(f"Ignoring {key}: {e}")
        return None


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Load and validate environment configuration.

    Only variables that are actually set produce overrides; the rest stay
    ``None`` so the JSON configuration keeps its values. Invalid values are
    logged and ignored.

    Args:
        env_file_path: Path to .env file

    Returns:
        EnvironmentConfig: Validated configuration object
    """
    env_vars = load_env_file(env_file_path)
    validator = EnvironmentValidator()

    api_key = get_env_var("GEMINI_API_KEY", env_vars=env_vars)
    is_api_configured = False
    if api_key:
        if validator.validate_api_key(api_key):
            is_api_configured = True
        else:
            logger.warning("Invalid Gemini API key format detected")
            api_key = None
    else:
        api_key = None

    model = get_env_var("GEMINI_MODEL", env_vars=env_vars)
    if model and not validator.validate_model_name(model):
        logger.warning(f"Unknown model name '{model}', keeping configured model")
        model = None

    timeout = _optional_number("GEMINI_TIMEOUT", env_vars, 5, 300, int)
    temperature = _optional_number("GEMINI_TEMPERATURE", env_vars, 0.0, 1.0, float)
    max_tokens = _optional_number("GEMINI_MAX_TOKENS", env_vars, 1, 65536, int)

    debug_str = get_env_var("DEBUG_LOGGING", "false", env_vars=env_vars)
    debug_logging = debug_str.lower() in ('true', '1', 'yes', 'on')

    data_dir = get_env_var("DATA_DIR", env_vars=env_vars)
    if data_dir:
        try:
            data_dir = validator.sanitize_path(data_dir)
        except ConfigError as e:
            logger.warning(f"Ignoring DATA_DIR: {e}")
            data_dir = None

    if is_api_configured:
        logger.info("Environment configuration loaded - Gemini detection enabled")
    else:
        logger.info("Environment configuration loaded - Configure GEMINI_API_KEY to enable detection")

    return EnvironmentConfig(
        gemini_api_key=api_key,
        gemini_model=model,
        gemini_timeout=timeout,
        gemini_temperature=temperature,
        gemini_max_tokens=max_tokens,
        debug_logging=debug_logging,
        data_dir=data_dir or None,
        is_api_key_configured=is_api_configured,
    )


__all__ = [
    "EnvironmentConfig",
    "EnvironmentValidator",
    "load_environment_config",
    "load_env_file",
    "get_env_var"
]

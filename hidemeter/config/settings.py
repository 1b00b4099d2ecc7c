"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
services instead of relying on a global module-level dictionary.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from .defaults import DEFAULT_CONFIG
from .env_config import EnvironmentConfig, load_environment_config

logger = logging.getLogger(__name__)

_INTERNAL_FIELDS = ('extra', '_has_secure_api_key')

# Out-of-range values fall back to the default
NUMERIC_RANGES = {
    'storage_quota_bytes': (1024, 1024 * 1024 * 1024),
    'reference_real_area_m2': (1e-6, 100.0),
    'learning_min_points': (3, 10000),
    'zoom_step': (0.05, 5.0),
    'max_zoom': (1.0, 20.0),
    'vertex_hit_radius': (1.0, 100.0),
    'max_image_dimension': (64, 8192),
    'thumbnail_size': (32, 2048),
    'max_upload_bytes': (1024, 100 * 1024 * 1024),
    'jpeg_quality': (1, 100),
    'contrast_boost': (0.1, 5.0),
    'saturation_boost': (0.1, 5.0),
    'gemini_timeout': (5, 300),
    'gemini_temperature': (0.0, 1.0),
    'gemini_max_tokens': (1, 65536),
    'gemini_target_points': (4, 1000),
    'detection_max_attempts': (1, 10),
    'detection_backoff_seconds': (0.0, 60.0),
}

BOOLEAN_KEYS = ('recalibrate_detections', 'structured_logging', 'debug')
_TRUE_STRINGS = ('true', '1', 'yes', 'on')
_FALSE_STRINGS = ('false', '0', 'no', 'off')


@dataclass(slots=True)
class Config:
    # Storage
    data_dir: str = DEFAULT_CONFIG["data_dir"]
    history_file: str = DEFAULT_CONFIG["history_file"]
    learning_file: str = DEFAULT_CONFIG["learning_file"]
    storage_quota_bytes: int = DEFAULT_CONFIG["storage_quota_bytes"]

    # Measurement
    reference_real_area_m2: float = DEFAULT_CONFIG["reference_real_area_m2"]
    learning_min_points: int = DEFAULT_CONFIG["learning_min_points"]
    recalibrate_detections: bool = DEFAULT_CONFIG["recalibrate_detections"]

    # Editor / view
    zoom_step: float = DEFAULT_CONFIG["zoom_step"]
    max_zoom: float = DEFAULT_CONFIG["max_zoom"]
    vertex_hit_radius: float = DEFAULT_CONFIG["vertex_hit_radius"]

    # Image preparation
    max_image_dimension: int = DEFAULT_CONFIG["max_image_dimension"]
    thumbnail_size: int = DEFAULT_CONFIG["thumbnail_size"]
    max_upload_bytes: int = DEFAULT_CONFIG["max_upload_bytes"]
    jpeg_quality: int = DEFAULT_CONFIG["jpeg_quality"]
    contrast_boost: float = DEFAULT_CONFIG["contrast_boost"]
    saturation_boost: float = DEFAULT_CONFIG["saturation_boost"]

    # Gemini detection (API key normally comes from the environment)
    gemini_api_key: str = DEFAULT_CONFIG["gemini_api_key"]
    gemini_model: str = DEFAULT_CONFIG["gemini_model"]
    gemini_timeout: int = DEFAULT_CONFIG["gemini_timeout"]
    gemini_temperature: float = DEFAULT_CONFIG["gemini_temperature"]
    gemini_max_tokens: int = DEFAULT_CONFIG["gemini_max_tokens"]
    gemini_target_points: int = DEFAULT_CONFIG["gemini_target_points"]
    explanation_language: str = DEFAULT_CONFIG["explanation_language"]
    detection_max_attempts: int = DEFAULT_CONFIG["detection_max_attempts"]
    detection_backoff_seconds: float = DEFAULT_CONFIG["detection_backoff_seconds"]

    # Debug and logging
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Security flag
    _has_secure_api_key: bool = False

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        extra = d.pop("extra", {})
        d.pop("_has_secure_api_key", None)
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.__dataclass_fields__ and key not in _INTERNAL_FIELDS:
            return getattr(self, key)
        return self.extra.get(key, default)

    @property
    def storage_dir(self) -> str:
        return os.path.join(self.data_dir, "storage")


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Load configuration from a JSON file merged over defaults.

    Environment variables override file values; out-of-range numbers fall
    back to their defaults with a warning; unknown keys are kept in ``extra``.

    Args:
        path: Path to config.json file
        env_file: Path to .env file (optional)

    Returns:
        Config: Loaded and validated configuration
    """
    data: Dict[str, Any] = {}

    env_config = load_environment_config(env_file)

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            if loaded_data is None:
                logger.warning(f"Configuration file '{path}' is empty, using defaults")
            elif not isinstance(loaded_data, dict):
                logger.error(f"Configuration file '{path}' does not contain a valid JSON object, using defaults")
            else:
                data = loaded_data
                logger.info(f"Successfully loaded configuration from '{path}'")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        except OSError as e:
            logger.error(f"Could not read configuration file '{path}': {e}. Using defaults.")
    else:
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")

    merged = {**DEFAULT_CONFIG, **data}
    merged = _apply_environment_overrides(merged, env_config)
    merged = _sanitize_config_values(merged)

    known = [name for name in Config.__dataclass_fields__ if name not in _INTERNAL_FIELDS]
    extra = {k: v for k, v in merged.items() if k not in known}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    cfg = Config(**{k: merged[k] for k in known}, extra=extra)
    cfg._has_secure_api_key = env_config.is_api_key_configured
    return cfg


def save_config(cfg: Config, path: str = "config.json") -> bool:
    """Save configuration to JSON.

    API keys that came from the environment are never written to disk.

    Returns:
        True on success, False if the file could not be written
    """
    config_dict = cfg.to_dict()
    if cfg._has_secure_api_key:
        config_dict["gemini_api_key"] = ""
        logger.info("API key excluded from saved config (using environment variable)")

    try:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        temp_path = f"{path}.tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(config_dict, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, path)
        logger.info(f"Configuration saved successfully to '{path}'")
        return True
    except OSError as e:
        logger.error(f"OS error saving configuration file '{path}': {e}")
        return False


def _apply_environment_overrides(config_dict: Dict[str, Any], env_config: EnvironmentConfig) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration."""
    overrides = {
        "gemini_api_key": env_config.gemini_api_key,
        "gemini_model": env_config.gemini_model,
        "gemini_timeout": env_config.gemini_timeout,
        "gemini_temperature": env_config.gemini_temperature,
        "gemini_max_tokens": env_config.gemini_max_tokens,
        "data_dir": env_config.data_dir,
    }
    for key, value in overrides.items():
        if value is not None:
            config_dict[key] = value

    if env_config.debug_logging:
        config_dict["debug"] = True
        config_dict["log_level"] = "DEBUG"

    logger.debug("Applied environment variable overrides to configuration")
    return config_dict


def _sanitize_config_values(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Replace invalid values with defaults, logging each replacement."""
    sanitized = config_dict.copy()

    for key in ('data_dir', 'log_dir', 'history_file', 'learning_file'):
        value = sanitized.get(key)
        if not isinstance(value, str) or not value.strip():
            logger.warning(f"Setting '{key}' must be a non-empty string. Using default.")
            sanitized[key] = DEFAULT_CONFIG[key]

    for key, (min_val, max_val) in NUMERIC_RANGES.items():
        value = sanitized.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning(f"Value {key}={value!r} is not a number, using default")
            sanitized[key] = DEFAULT_CONFIG[key]
        elif not (min_val <= value <= max_val):
            logger.warning(f"Value {key}={value} out of range [{min_val}, {max_val}], using default")
            sanitized[key] = DEFAULT_CONFIG[key]

    for key in BOOLEAN_KEYS:
        value = sanitized.get(key)
        if isinstance(value, bool):
            continue
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            sanitized[key] = True
        elif text in _FALSE_STRINGS:
            sanitized[key] = False
        else:
            logger.warning(f"Value {key}={value!r} is not a boolean, using default")
            sanitized[key] = DEFAULT_CONFIG[key]

    level = str(sanitized.get('log_level', '')).upper()
    if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        logger.warning(f"Unknown log level {sanitized.get('log_level')!r}, using INFO")
        level = DEFAULT_CONFIG['log_level']
    sanitized['log_level'] = level

    return sanitized

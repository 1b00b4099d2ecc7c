"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Storage
    "data_dir": "data",
    "history_file": "measurement_history",
    "learning_file": "learning_reference",
    "storage_quota_bytes": 5 * 1024 * 1024,  # Same order as browser local storage

    # Measurement
    "reference_real_area_m2": 0.06237,  # A4: 0.210 m x 0.297 m
    "learning_min_points": 10,
    "recalibrate_detections": True,

    # Editor / view
    "zoom_step": 0.5,
    "max_zoom": 5.0,
    "vertex_hit_radius": 15.0,

    # Image preparation
    "max_image_dimension": 1000,
    "thumbnail_size": 400,
    "max_upload_bytes": 10 * 1024 * 1024,
    "jpeg_quality": 90,
    "contrast_boost": 1.2,
    "saturation_boost": 1.1,

    # Gemini detection
    "gemini_api_key": "",
    "gemini_model": "gemini-2.5-pro",
    "gemini_timeout": 60,
    "gemini_temperature": 0.1,  # Low for geometric precision
    "gemini_max_tokens": 8192,
    "gemini_target_points": 100,
    "explanation_language": "Portuguese (Brazil)",
    "detection_max_attempts": 3,
    "detection_backoff_seconds": 1.0,

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "log_dir": "logs",
    "structured_logging": False,
}

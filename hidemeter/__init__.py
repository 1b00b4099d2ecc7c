"""
Hide Area Meter: polygon measurement of leather hides against an A4 reference.
"""

__version__ = "1.0.0"

from .config.settings import Config, load_config, save_config
from .core.entities import MeasurementRecord, MeasurementResult, Point, Polygon

__all__ = [
    "Config", "load_config", "save_config",
    "MeasurementRecord", "MeasurementResult", "Point", "Polygon",
]

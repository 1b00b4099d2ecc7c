"""Pytest configuration and shared fixtures for the hide area meter.

Provides polygons, results, storage backends, a fake Gemini response and
temporary configuration for the unit and integration suites.
"""
import json
import logging
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, Mock

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hidemeter.config.settings import Config
from hidemeter.core.entities import MeasurementResult, Point, Polygon
from hidemeter.services.gemini_service import GeminiService
from hidemeter.services.storage import InMemoryStore
from hidemeter.utils.coordinates import SurfaceBox


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

logging.getLogger('PIL').setLevel(logging.WARNING)


def square(x: float, y: float, side: float) -> Polygon:
    """Axis-aligned square with its top-left corner at (x, y)."""
    return Polygon((
        Point(x, y), Point(x + side, y), Point(x + side, y + side), Point(x, y + side),
    ))


def circle_polygon(cx: float, cy: float, radius: float, count: int) -> Polygon:
    angles = np.linspace(0, 2 * np.pi, count, endpoint=False)
    return Polygon(tuple(
        Point(float(cx + radius * np.cos(a)), float(cy + radius * np.sin(a))) for a in angles
    ))


@pytest.fixture
def make_square():
    return square


@pytest.fixture
def make_circle():
    return circle_polygon


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def surface():
    """A 500x400 editing surface placed at (100, 50) on screen."""
    return SurfaceBox(100.0, 50.0, 500.0, 400.0)


@pytest.fixture
def reference_square():
    """300x300 unit reference (the A4 sheet as traced)."""
    return square(100, 100, 300)


@pytest.fixture
def target_square():
    """150x150 unit target."""
    return square(500, 500, 150)


@pytest.fixture
def detailed_target():
    """Target with more points than the learning threshold."""
    return circle_polygon(500, 500, 200, 24)


@pytest.fixture
def auto_result(detailed_target):
    """Automatic detection result with a detailed outline."""
    return MeasurementResult(
        detected_reference=True,
        detected_target=True,
        area_m2=2.5,
        explanation="A4 usada como referência de escala.",
        confidence=87.0,
        target=detailed_target,
        reference_outline="M 100 100 L 400 100 L 400 400 L 100 400 Z",
        is_manual=False,
    )


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def gemini_payload():
    """A well-formed model answer (300x300 A4, 150x150 hide)."""
    return {
        "detectedA4": True,
        "detectedLeather": True,
        "estimatedAreaSqM": 0.0156,
        "explanation": "A folha A4 foi usada para normalizar a escala.",
        "confidenceScore": 92,
        "leatherVerticesFlat": [500, 500, 650, 500, 650, 650, 500, 650],
        "a4Outline": "M 100 100 L 400 100 L 400 400 L 100 400 Z",
    }


@pytest.fixture
def mock_gemini_response(gemini_payload):
    response = Mock()
    response.text = json.dumps(gemini_payload)
    return response


@pytest.fixture
def mock_detector(auto_result):
    """Mock detection client returning ``auto_result``."""
    detector = MagicMock(spec=GeminiService)
    detector.analyze_hide.return_value = auto_result.copy()
    return detector


@pytest.fixture
def test_config(temp_dir):
    """Real configuration pointing at temporary directories."""
    return Config(
        data_dir=str(temp_dir / "data"),
        log_dir=str(temp_dir / "logs"),
        gemini_api_key="",
        detection_backoff_seconds=0.0,
    )


@pytest.fixture
def sample_image():
    """Grey floor with a dark blob (hide) and a white rectangle (A4)."""
    image = np.full((600, 800, 3), 90, dtype=np.uint8)
    cv2.ellipse(image, (450, 320), (220, 160), 0, 0, 360, (40, 60, 110), -1)
    cv2.rectangle(image, (40, 40), (180, 240), (250, 250, 250), -1)
    return image


@pytest.fixture
def sample_image_file(temp_dir, sample_image):
    path = temp_dir / "couro_01.jpg"
    cv2.imwrite(str(path), sample_image)
    return path


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep developer GEMINI_* / DATA_DIR variables out of the tests."""
    for key in ("GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_TIMEOUT", "GEMINI_TEMPERATURE",
                "GEMINI_MAX_TOKENS", "DEBUG_LOGGING", "DATA_DIR"):
        monkeypatch.delenv(key, raising=False)


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        path = str(item.fspath)
        if "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "unit" in path:
            item.add_marker(pytest.mark.unit)
        if "test_ui" in path:
            item.add_marker(pytest.mark.ui)

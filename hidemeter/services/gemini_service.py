"""Gemini-backed hide detection.

The model receives the prepared photo (and, when available, the last
confirmed trace as a worked example) and answers with a JSON document that
follows ``MEASUREMENT_SCHEMA``: detection flags, an area estimate, an
explanation, a confidence score, the hide outline as a flat coordinate list
and the A4 sheet outline as an SVG path, all on a 1000x1000 grid.

Transient failures are retried according to a bounded ``RetryPolicy``; once
the attempts are exhausted a ``DetectionError`` is raised for the caller.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from google import genai
from google.genai import types

from ..core.entities import LearningReference, MeasurementResult, Point, Polygon
from ..core.exceptions import DetectionError
from ..utils.geometry import flat_to_pairs, from_outline, pairs_to_flat, to_outline
from ..utils.image_utils import decode_base64_image, encode_jpeg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with a fixed delay between attempts."""
    max_attempts: int = 3
    backoff_seconds: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")


MEASUREMENT_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "detectedA4": types.Schema(
            type=types.Type.BOOLEAN,
            description="Whether a standard A4 paper sheet was detected in the image as a reference.",
        ),
        "detectedLeather": types.Schema(
            type=types.Type.BOOLEAN,
            description="Whether a leather skin or hide was detected in the image.",
        ),
        "estimatedAreaSqM": types.Schema(
            type=types.Type.NUMBER,
            description="Area of the hide in square meters, calculated with the polygon ratio method.",
        ),
        "explanation": types.Schema(
            type=types.Type.STRING,
            description="Technical explanation of how the A4 geometry normalized the scale.",
        ),
        "confidenceScore": types.Schema(
            type=types.Type.NUMBER,
            description="A confidence score from 0 to 100.",
        ),
        # Flat [x1, y1, x2, y2, ...] keeps the response far smaller than objects
        "leatherVerticesFlat": types.Schema(
            type=types.Type.ARRAY,
            description="FLAT list [x1, y1, x2, y2, ...] of hide boundary coordinates on a 1000x1000 grid.",
            items=types.Schema(type=types.Type.NUMBER),
        ),
        "a4Outline": types.Schema(
            type=types.Type.STRING,
            description="SVG path (d attribute) of the A4 sheet on the same 1000x1000 grid. Must be a 4-point polygon.",
        ),
    },
    required=["detectedA4", "detectedLeather", "estimatedAreaSqM", "explanation",
              "confidenceScore", "leatherVerticesFlat", "a4Outline"],
)


class GeminiService:
    """Detection client for the hide/A4 segmentation model."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-pro",
                 temperature: float = 0.1, max_tokens: int = 8192, timeout: int = 60,
                 retry_policy: Optional[RetryPolicy] = None, target_points: int = 100,
                 explanation_language: str = "Portuguese (Brazil)", jpeg_quality: int = 90,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize Gemini service.

        Args:
            api_key: Google AI API key
            model: Gemini model name
            temperature: Response temperature (low for geometric precision)
            max_tokens: Maximum response tokens
            timeout: Request timeout in seconds
            retry_policy: Attempts and delay for transient failures
            target_points: Number of boundary points requested from the model
            explanation_language: Language of the returned explanation
            jpeg_quality: JPEG quality of the images sent to the model
            sleep: Delay function (injected for tests)
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.target_points = target_points
        self.explanation_language = explanation_language
        self.jpeg_quality = jpeg_quality
        self._sleep = sleep
        self._client = None
        self._initialized = False
        self._last_error: Optional[str] = None
        self._connection_status: str = "not_configured"  # not_configured, ready, error

    def initialize(self) -> bool:
        """Create the google-genai client.

        Returns:
            True if initialized successfully, False otherwise
        """
        try:
            self._last_error = None

            if not self.api_key or self.api_key.strip() == "":
                error_msg = "API key is empty"
                logger.error(error_msg)
                self._last_error = error_msg
                self._connection_status = "not_configured"
                return False

            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=self.timeout * 1000),
            )
            logger.info(f"Gemini service initialized with model: {self.model}")

            self._initialized = True
            self._connection_status = "ready"
            return True

        except Exception as e:
            error_msg = f"Error initializing Gemini service: {e}"
            logger.error(error_msg)
            self._last_error = str(e)
            self._connection_status = "error"
            return False

    def is_initialized(self) -> bool:
        return self._initialized

    def get_connection_status(self) -> Dict[str, Any]:
        return {
            'status': self._connection_status,
            'initialized': self._initialized,
            'last_error': self._last_error,
            'has_api_key': bool(self.api_key and self.api_key.strip())
        }

    def update_config(self, model: Optional[str] = None, temperature: Optional[float] = None,
                      max_tokens: Optional[int] = None, api_key: Optional[str] = None):
        """Update service configuration; model or key changes force reinitialization."""
        if model is not None:
            self.model = model
            self._initialized = False

        if temperature is not None:
            self.temperature = max(0.0, min(1.0, temperature))

        if max_tokens is not None:
            self.max_tokens = max(1, max_tokens)

        if api_key is not None:
            self.api_key = api_key
            self._initialized = False
            self._connection_status = "not_configured"

    def analyze_hide(self, image: np.ndarray,
                     learning_reference: Optional[LearningReference] = None) -> MeasurementResult:
        """Detect the hide and the A4 sheet in a prepared BGR image.

        Args:
            image: Image already resized/enhanced for analysis
            learning_reference: Optional prior trace shown to the model as an example

        Returns:
            MeasurementResult with ``is_manual`` False

        Raises:
            DetectionError: API key missing, or every attempt failed
        """
        if not self._initialized and not self.initialize():
            raise DetectionError(f"Gemini API is not configured: {self._last_error}")

        contents = self._build_contents(image, learning_reference)
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
            response_mime_type="application/json",
            response_schema=MEASUREMENT_SCHEMA,
        )

        attempts = self.retry_policy.max_attempts
        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                response = self._client.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config
                )
                text = response.text if response else None
                if not text:
                    raise DetectionError(self._diagnose_empty_response(response, "analyze_hide"))

                result = self.parse_response(text)
                logger.info(
                    f"Detection succeeded on attempt {attempt + 1}: "
                    f"{len(result.target)} vertices, confidence {result.confidence:.0f}"
                )
                return result

            except Exception as e:
                logger.warning(f"Attempt {attempt + 1}/{attempts} failed: {e}")
                last_error = e
                if attempt < attempts - 1:
                    self._sleep(self.retry_policy.backoff_seconds)

        logger.error(f"Image analysis failed after {attempts} attempts: {last_error}")
        raise DetectionError(
            "Failed to process the image. The service is overloaded or the image is too "
            "complex. Please try again."
        ) from last_error

    def _build_contents(self, image: np.ndarray,
                        learning_reference: Optional[LearningReference]) -> List[Any]:
        """Assemble content parts: optional example, photo, then instructions."""
        contents: List[Any] = []

        if learning_reference is not None:
            example = decode_base64_image(learning_reference.thumbnail_base64)
            if example is not None:
                flat = [round(v) for v in pairs_to_flat(learning_reference.target.points)]
                contents.append(
                    "EXAMPLE: the following image was traced and confirmed by an operator. "
                    f"Its hide boundary on the 1000x1000 grid is {json.dumps(flat)}. "
                    "Use it to calibrate how tight the boundary must be."
                )
                contents.append(self._image_part(example))
            else:
                logger.warning("Learning reference thumbnail could not be decoded; skipping example")

        contents.append(self._image_part(image))
        contents.append(self._build_prompt())
        return contents

    def _image_part(self, image: np.ndarray) -> types.Part:
        return types.Part.from_bytes(data=encode_jpeg(image, self.jpeg_quality), mime_type="image/jpeg")

    def _build_prompt(self) -> str:
        return f"""ROLE: High-precision computer vision specialist.

TASK: Semantic segmentation of a raw leather hide photographed next to an A4 sheet.

MAPPING STRATEGY:
1. LOCATION: Find the bounding box that contains the hide; ignore the floor outside it.
2. TRACE: Produce EXACTLY {self.target_points} coordinate points along the hide boundary.
3. TEXTURE: The hide is organic/rough, the floor is smooth. Use that difference to find the edge.
4. SHADOWS: Ignore cast shadows. The edge is where the hide material ends.
5. REFERENCE: Outline the A4 sheet (210mm x 297mm) as a 4-point polygon.

COORDINATES: Normalize everything to a 1000x1000 grid.

OUTPUT: Return 'leatherVerticesFlat' as [x1, y1, x2, y2, ...] and write 'explanation' in {self.explanation_language}."""

    @staticmethod
    def parse_response(text: str) -> MeasurementResult:
        """Turn the model's JSON answer into a MeasurementResult.

        Raises:
            DetectionError: The text is not a JSON object with the expected fields
        """
        cleaned = text.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned[7:] if cleaned.startswith("```json") else cleaned[3:]
            if cleaned.rstrip().endswith("```"):
                cleaned = cleaned.rstrip()[:-3]
            cleaned = cleaned.strip()

        try:
            raw = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise DetectionError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise DetectionError("Model response is not a JSON object")

        try:
            flat = raw.get("leatherVerticesFlat") or []
            target = Polygon(tuple(Point.clamped(x, y) for x, y in flat_to_pairs(flat)))

            # Re-serialize so the stored outline is always on the grid
            a4_pairs = from_outline(raw.get("a4Outline") or "")
            reference_outline = to_outline([Point.clamped(x, y) for x, y in a4_pairs])

            return MeasurementResult(
                detected_reference=bool(raw.get("detectedA4", False)),
                detected_target=bool(raw.get("detectedLeather", False)),
                area_m2=float(raw.get("estimatedAreaSqM") or 0.0),
                explanation=str(raw.get("explanation") or ""),
                confidence=float(raw.get("confidenceScore") or 0.0),
                target=target,
                reference_outline=reference_outline,
                is_manual=False,
            )
        except (TypeError, ValueError) as e:
            raise DetectionError(f"Model response has malformed fields: {e}") from e

    def _diagnose_empty_response(self, response, method_name: str) -> str:
        """Explain why a Gemini response carried no text."""
        if not response:
            return f"[{method_name}] Response object is None or False"

        diagnostics = []
        prompt_feedback = getattr(response, 'prompt_feedback', None)
        if prompt_feedback and getattr(prompt_feedback, 'block_reason', None):
            diagnostics.append(f"PROMPT BLOCKED - Reason: {prompt_feedback.block_reason}")

        candidates = getattr(response, 'candidates', None)
        if not candidates:
            diagnostics.append("No candidates in response")
            return f"[{method_name}] Empty response - " + "; ".join(diagnostics)

        finish_reason = getattr(candidates[0], 'finish_reason', None)
        if finish_reason is not None:
            diagnostics.append(f"Finish reason: {finish_reason}")
            if str(finish_reason).split('.')[-1] == 'MAX_TOKENS':
                diagnostics.append("Response truncated due to token limit (increase max_tokens)")

        return f"[{method_name}] Empty response - " + "; ".join(diagnostics)

"""Image processing utilities."""

import base64
import io
import os
import re
from typing import Optional

import cv2
import numpy as np
from PIL import Image, ImageEnhance

from ..core.constants import MAX_IMAGE_DIMENSION, MAX_UPLOAD_BYTES, THUMBNAIL_SIZE
from ..core.exceptions import ValidationError

_DATA_URL_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg|webp);base64,")


def load_image(path: str, max_bytes: int = MAX_UPLOAD_BYTES) -> np.ndarray:
    """Read an image file as a BGR array, enforcing the upload size limit."""
    if not os.path.isfile(path):
        raise ValidationError(f"Image not found: {path}")
    size = os.path.getsize(path)
    if size > max_bytes:
        raise ValidationError(
            f"Image is too large ({size / (1024 * 1024):.1f} MB); limit is {max_bytes / (1024 * 1024):.0f} MB"
        )
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise ValidationError(f"Failed to decode image: {path}")
    return image


def resize_image(image: np.ndarray, max_width: int = MAX_IMAGE_DIMENSION,
                 max_height: int = MAX_IMAGE_DIMENSION) -> np.ndarray:
    """Resize image while maintaining aspect ratio (never upscales)."""
    h, w = image.shape[:2]

    if w <= max_width and h <= max_height:
        return image

    scale = min(max_width / w, max_height / h)
    new_w = max(1, int(w * scale))
    new_h = max(1, int(h * scale))

    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def to_pil(image: np.ndarray) -> Image.Image:
    """BGR (OpenCV) array to RGB PIL image."""
    if image.ndim == 2:
        return Image.fromarray(image)
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def enhance_image(image: np.ndarray, contrast: float = 1.2, saturation: float = 1.1) -> np.ndarray:
    """Boost contrast and saturation to make organic edges easier to trace."""
    pil = to_pil(image)
    pil = ImageEnhance.Contrast(pil).enhance(contrast)
    pil = ImageEnhance.Color(pil).enhance(saturation)
    return cv2.cvtColor(np.asarray(pil), cv2.COLOR_RGB2BGR)


def prepare_for_analysis(image: np.ndarray, max_dimension: int = MAX_IMAGE_DIMENSION,
                         contrast: float = 1.2, saturation: float = 1.1) -> np.ndarray:
    """Downscale to fit the analysis size and apply the enhancement filter."""
    return enhance_image(resize_image(image, max_dimension, max_dimension), contrast, saturation)


def encode_jpeg(image: np.ndarray, quality: int = 90) -> bytes:
    buffer = io.BytesIO()
    to_pil(image).save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def encode_jpeg_base64(image: np.ndarray, quality: int = 90) -> str:
    return base64.b64encode(encode_jpeg(image, quality)).decode("ascii")


def decode_base64_image(data: str) -> Optional[np.ndarray]:
    """Decode a (possibly data-URL prefixed) base64 image to BGR, None on failure."""
    try:
        raw = base64.b64decode(strip_data_url(data), validate=True)
    except (ValueError, TypeError):
        return None
    array = np.frombuffer(raw, dtype=np.uint8)
    if array.size == 0:
        return None
    return cv2.imdecode(array, cv2.IMREAD_COLOR)


def strip_data_url(data: str) -> str:
    return _DATA_URL_PREFIX.sub("", data)


def make_thumbnail(image: np.ndarray, size: int = THUMBNAIL_SIZE, quality: int = 90) -> str:
    """Small base64 JPEG used as the learning reference image."""
    return encode_jpeg_base64(resize_image(image, size, size), quality)

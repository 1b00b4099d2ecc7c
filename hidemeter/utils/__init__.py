"""Utility functions package."""

from .geometry import (
    signed_area, polygon_area, to_outline, to_closed_outline, from_outline,
    flat_to_pairs, pairs_to_flat, scale_to_canvas
)

__all__ = [
    "signed_area", "polygon_area", "to_outline", "to_closed_outline", "from_outline",
    "flat_to_pairs", "pairs_to_flat", "scale_to_canvas"
]

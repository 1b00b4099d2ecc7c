"""Polygon geometry and outline path utilities.

All functions work on sequences of points given either as objects with
``x``/``y`` attributes or as ``(x, y)`` pairs, so they can be used on raw
detector output before it is turned into domain entities.
"""

import re
from typing import Iterable, List, Sequence, Tuple

Pair = Tuple[float, float]

_PATH_TOKEN = re.compile(r"[MmLlZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def _xy(point) -> Pair:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    x, y = point
    return float(x), float(y)


def signed_area(points: Sequence) -> float:
    """Shoelace sum over consecutive pairs (with wraparound), halved.

    Positive for counter-clockwise traversal in a y-up frame.
    """
    pairs = [_xy(p) for p in points]
    n = len(pairs)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        x1, y1 = pairs[i]
        x2, y2 = pairs[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def polygon_area(points: Sequence) -> float:
    """Absolute polygon area; 0 for fewer than 3 points."""
    return abs(signed_area(points))


def _fmt(value: float) -> str:
    # 12.0 -> "12", 12.5 -> "12.5"
    return f"{value:g}" if value == int(value) else repr(round(value, 4))


def to_outline(points: Sequence) -> str:
    """Serialize points to an SVG path; closes only with 3 or more points."""
    pairs = [_xy(p) for p in points]
    if not pairs:
        return ""
    parts = []
    for i, (x, y) in enumerate(pairs):
        parts.append(f"{'M' if i == 0 else 'L'} {_fmt(x)} {_fmt(y)}")
    path = " ".join(parts)
    if len(pairs) > 2:
        path += " Z"
    return path


def to_closed_outline(points: Sequence) -> str:
    """Serialize points to an SVG path that is always closed."""
    pairs = [_xy(p) for p in points]
    if not pairs:
        return ""
    path = " ".join(f"{'M' if i == 0 else 'L'} {_fmt(x)} {_fmt(y)}" for i, (x, y) in enumerate(pairs))
    return path + " Z"


def from_outline(outline: str) -> List[Pair]:
    """Parse an absolute M/L/Z path back into points.

    Consecutive coordinate pairs after a command repeat it (implicit lineto),
    as in SVG. Anything unparseable yields an empty list.
    """
    if not outline or not isinstance(outline, str):
        return []

    tokens = _PATH_TOKEN.findall(outline.replace(",", " "))
    pairs: List[Pair] = []
    pending: List[float] = []
    for tok in tokens:
        if tok in "MmLl":
            if pending:
                return []
            continue
        if tok in "Zz":
            if pending:
                return []
            break
        pending.append(float(tok))
        if len(pending) == 2:
            pairs.append((pending[0], pending[1]))
            pending = []
    if pending:
        return []
    return pairs


def flat_to_pairs(values: Iterable[float]) -> List[Pair]:
    """``[x1, y1, x2, y2, ...]`` to pairs; a trailing odd value is dropped."""
    flat = [float(v) for v in values]
    return [(flat[i], flat[i + 1]) for i in range(0, len(flat) - 1, 2)]


def pairs_to_flat(points: Sequence) -> List[float]:
    flat: List[float] = []
    for p in points:
        x, y = _xy(p)
        flat.extend((x, y))
    return flat


def scale_to_canvas(points: Sequence, width: float, height: float,
                    grid_size: float = 1000.0) -> List[Pair]:
    """Rescale grid coordinates to a renderer of ``width`` x ``height`` pixels."""
    sx = width / grid_size
    sy = height / grid_size
    return [(x * sx, y * sy) for x, y in (_xy(p) for p in points)]

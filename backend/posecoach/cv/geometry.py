"""
Pure geometry helpers used by the exercise classifiers.

All functions are side-effect free and never raise on degenerate input
(coincident points, empty ranges); classifiers call them on every frame.
"""

import math
from typing import Sequence

import numpy as np

from posecoach.cv.landmarks import Landmark, PoseLandmark


def _unit(vector: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm == 0.0 or not np.isfinite(norm):
        return np.zeros(3)
    return vector / norm


def angle(a: Landmark, b: Landmark, c: Landmark) -> float:
    """
    Angle at vertex b formed by rays b->a and b->c.

    Returns:
        Angle in degrees, always within [0, 180]
    """
    v1 = _unit(a.to_array() - b.to_array())
    v2 = _unit(c.to_array() - b.to_array())

    # Clamp to avoid acos domain errors from floating point drift
    dot = float(np.clip(np.dot(v1, v2), -1.0, 1.0))
    return math.degrees(math.acos(dot))


def midpoint(p: Landmark, q: Landmark) -> Landmark:
    """Per-axis average; only as trustworthy as the less visible point."""
    return Landmark(
        x=(p.x + q.x) / 2,
        y=(p.y + q.y) / 2,
        z=(p.z + q.z) / 2,
        visibility=min(p.visibility, q.visibility),
    )


def vertical_distance(p: Landmark, q: Landmark) -> float:
    return abs(p.y - q.y)


def planar_distance(p: Landmark, q: Landmark) -> float:
    """Euclidean distance in the x/y plane."""
    return math.hypot(p.x - q.x, p.y - q.y)


def normalize(value: float, min_value: float, max_value: float) -> float:
    """Rescale value from [min_value, max_value] to [0, 1], clamped."""
    if max_value == min_value:
        return 0.0
    return float(np.clip((value - min_value) / (max_value - min_value), 0.0, 1.0))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def is_left_body_visible(landmarks: Sequence[Landmark]) -> bool:
    """
    Determine which body side faces the camera.

    Sums shoulder, hip, knee and ankle visibility per side. Ties favor the left side.
    """
    left = (
        landmarks[PoseLandmark.LEFT_SHOULDER].visibility
        + landmarks[PoseLandmark.LEFT_HIP].visibility
        + landmarks[PoseLandmark.LEFT_KNEE].visibility
        + landmarks[PoseLandmark.LEFT_ANKLE].visibility
    )
    right = (
        landmarks[PoseLandmark.RIGHT_SHOULDER].visibility
        + landmarks[PoseLandmark.RIGHT_HIP].visibility
        + landmarks[PoseLandmark.RIGHT_KNEE].visibility
        + landmarks[PoseLandmark.RIGHT_ANKLE].visibility
    )
    return left >= right

"""
Body landmark model shared by every classifier.

A pose detector reports the same 33 MediaPipe joints twice per frame:
- World landmarks: metric 3D coordinates, camera relative, origin between the hips
- Image landmarks: normalized 2D screen coordinates (z mostly unused)

Both lists always have the same length and ordering, indexed by PoseLandmark.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np


class PoseLandmark(IntEnum):
    """MediaPipe Pose landmark indices."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = len(PoseLandmark)

# Landmarks counted as "visible" when reporting detection quality
VISIBLE_THRESHOLD = 0.5


@dataclass(frozen=True)
class Landmark:
    """Single joint position with visibility confidence."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0

    @property
    def is_visible(self) -> bool:
        return self.visibility > VISIBLE_THRESHOLD

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=float)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Landmark":
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            z=float(data.get("z", 0.0)),
            visibility=float(data.get("visibility", 0.0)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


def _parse_landmarks(raw: Optional[Sequence[Mapping[str, Any]]], name: str) -> List[Landmark]:
    if not raw:
        return []
    if len(raw) != NUM_LANDMARKS:
        raise ValueError(f"{name} must contain {NUM_LANDMARKS} landmarks, got {len(raw)}")
    return [Landmark.from_dict(item) for item in raw]


@dataclass
class PoseDetectionResult:
    """
    One frame produced by the pose detector.

    An empty frame (no person found) carries no landmarks at all; a frame
    with a person always carries the full joint set in both coordinate spaces.
    """
    timestamp: float  # Seconds
    world_landmarks: List[Landmark] = field(default_factory=list)
    image_landmarks: List[Landmark] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PoseDetectionResult":
        """
        Create a result from the detector's wire format.

        Accepts either the flat form {"world_landmarks", "image_landmarks",
        "timestamp_ms"} or the detector's native {"poses": [{"landmarks",
        "worldLandmarks"}], "timestamp"} form, where only the first pose is used.

        Raises:
            ValueError: If a landmark list has the wrong length
        """
        if "poses" in data:
            poses = data.get("poses") or []
            first = poses[0] if poses else {}
            image_raw = first.get("landmarks")
            world_raw = first.get("worldLandmarks")
            timestamp_ms = data.get("timestamp", 0)
        else:
            image_raw = data.get("image_landmarks")
            world_raw = data.get("world_landmarks")
            timestamp_ms = data.get("timestamp_ms", 0)

        world = _parse_landmarks(world_raw, "world_landmarks")
        image = _parse_landmarks(image_raw, "image_landmarks")
        if bool(world) != bool(image):
            raise ValueError("world_landmarks and image_landmarks must both be present or both be empty")

        return cls(
            timestamp=float(timestamp_ms) / 1000.0,
            world_landmarks=world,
            image_landmarks=image,
        )

    @property
    def has_pose(self) -> bool:
        """Check if a person was detected in this frame."""
        return len(self.world_landmarks) > 0 and len(self.image_landmarks) > 0

    @property
    def visible_landmark_count(self) -> int:
        return sum(1 for lm in self.world_landmarks if lm.is_visible)

    @property
    def overall_confidence(self) -> float:
        if not self.world_landmarks:
            return 0.0
        return float(np.mean([lm.visibility for lm in self.world_landmarks]))

"""Synthetic pose frames for tests."""

import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from posecoach.cv.landmarks import NUM_LANDMARKS, Landmark, PoseDetectionResult
from posecoach.cv.landmarks import PoseLandmark as L

FRAME_INTERVAL = 0.033  # Seconds, ~30fps

Point = Tuple[float, float, float]


def make_landmarks(
    points: Optional[Dict[int, Point]] = None,
    visibility: float = 1.0,
    overrides: Optional[Dict[int, float]] = None,
) -> List[Landmark]:
    """33 landmarks at the origin, with the given positions and visibility overrides."""
    points = points or {}
    overrides = overrides or {}
    landmarks = []
    for idx in range(NUM_LANDMARKS):
        x, y, z = points.get(idx, (0.0, 0.0, 0.0))
        landmarks.append(Landmark(x=x, y=y, z=z, visibility=overrides.get(idx, visibility)))
    return landmarks


# ---------------------------------------------------------------------------
# Push-up
# ---------------------------------------------------------------------------

def pushup_world(elbow_angle: float) -> Dict[int, Point]:
    """Both arms with the given elbow angle; shoulders straight above the elbows."""
    rad = math.radians(elbow_angle)
    points = {}
    for shoulder, elbow, wrist, x in (
        (L.LEFT_SHOULDER, L.LEFT_ELBOW, L.LEFT_WRIST, -0.2),
        (L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST, 0.2),
    ):
        points[elbow] = (x, 0.0, 0.0)
        points[shoulder] = (x, -0.3, 0.0)
        points[wrist] = (x + 0.3 * math.sin(rad), -0.3 * math.cos(rad), 0.0)
    return points


# Image space: shoulder height over wrists is half the torso length
PUSHUP_IMAGE = {
    L.LEFT_SHOULDER: (0.4, 0.4, 0.0),
    L.RIGHT_SHOULDER: (0.6, 0.4, 0.0),
    L.LEFT_WRIST: (0.4, 0.5, 0.0),
    L.RIGHT_WRIST: (0.6, 0.5, 0.0),
    L.LEFT_HIP: (0.4, 0.6, 0.0),
    L.RIGHT_HIP: (0.6, 0.6, 0.0),
}


def pushup_frame(
    elbow_angle: float,
    timestamp: float,
    wrist_visibility: float = 1.0,
    visibility: float = 1.0,
) -> PoseDetectionResult:
    overrides = {L.LEFT_WRIST: wrist_visibility, L.RIGHT_WRIST: wrist_visibility}
    return PoseDetectionResult(
        timestamp=timestamp,
        world_landmarks=make_landmarks(pushup_world(elbow_angle), visibility, overrides),
        image_landmarks=make_landmarks(PUSHUP_IMAGE, visibility, overrides),
    )


def pushup_rep_angles(top: float = 170.0, bottom: float = 110.0, frames: int = 10) -> List[float]:
    """Elbow angles for one rep: `frames` frames down, then `frames` frames up."""
    down = np.linspace(top, bottom, frames)
    up = np.linspace(bottom, top, frames)
    return [float(a) for a in np.concatenate([down, up])]


def pushup_frames(
    angles: Sequence[float],
    interval: float = FRAME_INTERVAL,
    start: float = 0.0,
    occluded: Sequence[int] = (),
) -> List[PoseDetectionResult]:
    """One frame per angle; frames whose index is in `occluded` get low wrist visibility."""
    return [
        pushup_frame(angle, start + i * interval, wrist_visibility=0.3 if i in occluded else 1.0)
        for i, angle in enumerate(angles)
    ]


# ---------------------------------------------------------------------------
# Sumo squat
# ---------------------------------------------------------------------------

def sumo_squat_world(knee_angle: float, shoulder_width: float = 0.4, stance_ratio: float = 1.55) -> Dict[int, Point]:
    """Frontal sumo squat: ankles straight below the knees, both knees at `knee_angle`."""
    rad = math.radians(knee_angle)
    half_stance = shoulder_width * stance_ratio / 2
    points = {
        L.LEFT_SHOULDER: (-shoulder_width / 2, -0.5, 0.0),
        L.RIGHT_SHOULDER: (shoulder_width / 2, -0.5, 0.0),
    }
    for hip, knee, ankle, sign in (
        (L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE, -1.0),
        (L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE, 1.0),
    ):
        knee_x = sign * half_stance
        points[knee] = (knee_x, 0.4, 0.0)
        points[ankle] = (knee_x, 0.8, 0.0)
        # Thigh rotated `knee_angle` away from the shin, toward the body center
        points[hip] = (knee_x - sign * 0.4 * math.sin(rad), 0.4 + 0.4 * math.cos(rad), 0.0)
    return points


def sumo_squat_frame(knee_angle: float, timestamp: float = 0.0, **kwargs) -> PoseDetectionResult:
    points = sumo_squat_world(knee_angle, **kwargs)
    world = make_landmarks(points)
    image = make_landmarks({idx: (x + 0.5, y + 0.5, z) for idx, (x, y, z) in points.items()})
    return PoseDetectionResult(timestamp=timestamp, world_landmarks=world, image_landmarks=image)


def split_stance_frame() -> PoseDetectionResult:
    """Left knee bent at 90 deg with the hip at knee height, right leg straight."""
    points = {
        L.LEFT_HIP: (-0.3, 0.5, 0.0),
        L.LEFT_KNEE: (0.0, 0.5, 0.0),
        L.LEFT_ANKLE: (0.0, 0.9, 0.0),
        L.RIGHT_HIP: (0.3, 0.1, 0.0),
        L.RIGHT_KNEE: (0.3, 0.5, 0.0),
        L.RIGHT_ANKLE: (0.3, 0.9, 0.0),
    }
    landmarks = make_landmarks(points)
    return PoseDetectionResult(timestamp=0.0, world_landmarks=landmarks, image_landmarks=landmarks)


# ---------------------------------------------------------------------------
# Crunch
# ---------------------------------------------------------------------------

FLAT_NOSE = (-0.7, 0.0, 0.0)
CRUNCHED_NOSE = (-0.6, 0.2 * math.sin(math.radians(120.0)), 0.0)  # 120 deg at the shoulder

BENT_KNEES = ((0.4, -0.3, 0.0), (0.8, 0.0, 0.0))  # ~106 deg knee, thigh ~143 deg from torso
STRAIGHT_LEGS = ((0.4, 0.0, 0.0), (0.8, 0.0, 0.0))
# Thigh 60 deg from the torso, shin at a right angle to it
TUCKED_KNEES = (
    (-0.25, -0.5 * math.sin(math.radians(60.0)), 0.0),
    (-0.25 + 0.4 * math.cos(math.radians(30.0)), -0.5 * math.sin(math.radians(60.0)) - 0.2, 0.0),
)


def crunch_world(nose: Point = FLAT_NOSE, legs: Tuple[Point, Point] = BENT_KNEES) -> List[Landmark]:
    """Side view lying on the back: shoulders at (-0.5, 0), hips at the origin."""
    knee, ankle = legs
    points = {L.NOSE: nose}
    for shoulder, hip, knee_idx, ankle_idx in (
        (L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
        (L.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE),
    ):
        points[shoulder] = (-0.5, 0.0, 0.0)
        points[hip] = (0.0, 0.0, 0.0)
        points[knee_idx] = knee
        points[ankle_idx] = ankle
    return make_landmarks(points)


# ---------------------------------------------------------------------------
# Plank
# ---------------------------------------------------------------------------

def plank_frame(timestamp: float, hip_drop: float = 0.0, visibility: float = 1.0) -> PoseDetectionResult:
    """Side view high plank: straight arms below the shoulders, body level unless the hips drop."""
    points = {}
    for shoulder, elbow, wrist, hip, knee, ankle in (
        (L.LEFT_SHOULDER, L.LEFT_ELBOW, L.LEFT_WRIST, L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
        (L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST, L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE),
    ):
        points[shoulder] = (0.0, 0.0, 0.0)
        points[elbow] = (0.0, 0.3, 0.0)
        points[wrist] = (0.0, 0.6, 0.0)
        points[hip] = (0.5, hip_drop, 0.0)
        points[knee] = (0.8, hip_drop * 0.4, 0.0)
        points[ankle] = (1.0, 0.0, 0.0)
    landmarks = make_landmarks(points, visibility)
    return PoseDetectionResult(timestamp=timestamp, world_landmarks=landmarks, image_landmarks=landmarks)


def empty_frame(timestamp: float) -> PoseDetectionResult:
    return PoseDetectionResult(timestamp=timestamp)


def low_visibility_frame(timestamp: float) -> PoseDetectionResult:
    return pushup_frame(140.0, timestamp, visibility=0.3)


def frame_payload(result: PoseDetectionResult) -> dict:
    """Wire format accepted by the frames endpoint."""
    return {
        "timestamp_ms": result.timestamp * 1000.0,
        "world_landmarks": [lm.to_dict() for lm in result.world_landmarks],
        "image_landmarks": [lm.to_dict() for lm in result.image_landmarks],
    }

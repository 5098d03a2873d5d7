"""
Push-up family classification.

SIGNALS (visible side only):
1. Elbow angle (shoulder-elbow-wrist, world space): primary, 90% weight
2. Shoulder height over wrists relative to torso length (image space): 10% weight

Each variation has its own elbow angle band and height range. Inside the
band the angle signal is squared so the output is pushed toward the extremes.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from posecoach.cv import geometry
from posecoach.cv.classifiers.base import (
    GEOMETRY_ERRORS,
    VISIBILITY_METRIC,
    VISIBILITY_RULE,
    ClassifierOptions,
    LandmarkList,
    MetricRule,
    Probabilities,
    fallback_scores,
    mean_visibility,
)
from posecoach.cv.landmarks import PoseLandmark as L

logger = logging.getLogger(__name__)

VISIBILITY_THRESHOLD = 0.7
MIN_TORSO_HEIGHT = 0.01

ANGLE_WEIGHT = 0.9
HEIGHT_WEIGHT = 0.1


class PushUpVariant(Enum):
    STANDARD = "standard"
    KNEE = "knee"
    WALL = "wall"
    INCLINE = "incline"
    DECLINE = "decline"
    DIAMOND = "diamond"
    WIDE = "wide"


@dataclass(frozen=True)
class PushUpParams:
    """Per-variation thresholds."""
    up_min_angle: float  # Elbow angle at or above this is fully UP
    down_max_angle: float  # Elbow angle at or below this is fully DOWN
    height_min: float
    height_max: float
    ideal_hand_ratio: float  # Wrist width / shoulder width
    alignment_target: float  # Ideal body line angle
    alignment_tolerance: float  # Degrees of deviation that drive the score to 0
    knee_line: bool = False  # Measure body line to the knees instead of the ankles


PUSH_UP_PARAMS: Dict[PushUpVariant, PushUpParams] = {
    PushUpVariant.STANDARD: PushUpParams(150.0, 120.0, 1.5, 6.0, 1.25, 180.0, 45.0),
    PushUpVariant.KNEE: PushUpParams(150.0, 120.0, 1.5, 6.0, 1.25, 155.0, 45.0, knee_line=True),
    PushUpVariant.WALL: PushUpParams(140.0, 130.0, 0.5, 3.0, 1.25, 165.0, 30.0),
    PushUpVariant.INCLINE: PushUpParams(155.0, 125.0, 1.0, 4.5, 1.25, 175.0, 50.0),
    PushUpVariant.DECLINE: PushUpParams(145.0, 115.0, 2.0, 7.5, 1.25, 175.0, 50.0),
    PushUpVariant.DIAMOND: PushUpParams(145.0, 115.0, 1.5, 6.0, 0.3, 180.0, 45.0),
    PushUpVariant.WIDE: PushUpParams(155.0, 125.0, 1.5, 6.0, 1.8, 180.0, 45.0),
}

PUSH_UP_RULES = {
    "body_alignment": MetricRule(
        0.7, "Should keep the body in a straight line from shoulders to heels without sagging or piking the hips"
    ),
    "hand_width": MetricRule(0.6, "Should adjust the hand placement to the width this push-up variation calls for"),
    "wrist_positioning": MetricRule(0.6, "Should keep the wrists stacked under the shoulders"),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}


def elbow_angle_probability(elbow_angle: float, params: PushUpParams) -> float:
    """Map the elbow angle to an UP probability for the variation's band."""
    if elbow_angle >= params.up_min_angle:
        return 1.0
    if elbow_angle <= params.down_max_angle:
        return 0.0
    band = params.up_min_angle - params.down_max_angle
    linear = (elbow_angle - params.down_max_angle) / band
    return linear * linear


def push_up_probabilities(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    params: PushUpParams,
) -> Probabilities:
    left = geometry.is_left_body_visible(world)
    shoulder_idx = L.LEFT_SHOULDER if left else L.RIGHT_SHOULDER
    elbow_idx = L.LEFT_ELBOW if left else L.RIGHT_ELBOW
    wrist_idx = L.LEFT_WRIST if left else L.RIGHT_WRIST
    hip_idx = L.LEFT_HIP if left else L.RIGHT_HIP

    shoulder, elbow, wrist = world[shoulder_idx], world[elbow_idx], world[wrist_idx]
    if min(shoulder.visibility, elbow.visibility, wrist.visibility) < VISIBILITY_THRESHOLD:
        return Probabilities.neutral()

    angle_prob = elbow_angle_probability(geometry.angle(shoulder, elbow, wrist), params)

    shoulder_2d = image[shoulder_idx]
    torso_height = geometry.vertical_distance(shoulder_2d, image[hip_idx])
    if torso_height < MIN_TORSO_HEIGHT:
        return Probabilities.neutral()

    shoulder_height = geometry.vertical_distance(shoulder_2d, image[wrist_idx]) / torso_height
    # Higher shoulders relative to the torso mean the body is further from the hands
    height_prob = 1.0 - geometry.normalize(shoulder_height, params.height_min, params.height_max)

    return Probabilities.from_up(angle_prob * ANGLE_WEIGHT + height_prob * HEIGHT_WEIGHT)


def push_up_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str],
    params: PushUpParams,
) -> Dict[str, float]:
    try:
        shoulder_mid = geometry.midpoint(world[L.LEFT_SHOULDER], world[L.RIGHT_SHOULDER])
        hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
        if params.knee_line:
            end_mid = geometry.midpoint(world[L.LEFT_KNEE], world[L.RIGHT_KNEE])
        else:
            end_mid = geometry.midpoint(world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE])
        body_angle = geometry.angle(shoulder_mid, hip_mid, end_mid)
        alignment = geometry.clamp(1.0 - abs(params.alignment_target - body_angle) / params.alignment_tolerance)

        left_wrist, right_wrist = image[L.LEFT_WRIST], image[L.RIGHT_WRIST]
        left_shoulder, right_shoulder = image[L.LEFT_SHOULDER], image[L.RIGHT_SHOULDER]
        hand_width = abs(left_wrist.x - right_wrist.x)
        shoulder_width = abs(left_shoulder.x - right_shoulder.x)
        width_ratio = hand_width / shoulder_width if shoulder_width > 0 else 0.0
        hand_width_score = 1.0 - geometry.clamp(abs(width_ratio - params.ideal_hand_ratio))

        wrist_offset = math.sqrt(
            (left_wrist.x - left_shoulder.x) ** 2 + (right_wrist.x - right_shoulder.x) ** 2
        )
        wrist_score = 1.0 - geometry.clamp(wrist_offset * 2)

        scores = {
            "body_alignment": alignment,
            "hand_width": hand_width_score,
            "wrist_positioning": wrist_score,
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Push-up form metrics fell back to neutral: {e}")
        scores = fallback_scores(["body_alignment", "hand_width", "wrist_positioning"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores

"""
Squat family classification (standard, sumo, split).

SIGNALS:
1. Knee angle (hip-knee-ankle, world space): primary
2. Hip height above the knee divided by shin length (image space): secondary

Standard squats use the side facing the camera, sumo squats average both
legs (frontal camera) and split squats follow the configured front leg.
"""

import logging
import math
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
    Side,
    fallback_scores,
    mean_visibility,
)
from posecoach.cv.landmarks import PoseLandmark as L

logger = logging.getLogger(__name__)

KNEE_ANGLE_DOWN = 90.0
KNEE_ANGLE_UP = 175.0
HIP_HEIGHT_UP = 1.2  # Hip height / shin length when standing
MIN_SHIN_HEIGHT = 0.01

STANDARD_STANCE_RATIO = 1.1
SUMO_STANCE_RATIO = 1.55
SPLIT_STANCE_RATIO = 0.8

DEPTH_METRIC = "squat_depth"

SQUAT_RULES = {
    "knee_tracking": MetricRule(0.6, "Should keep the knees aligned over the toes, not allowing them to cave inward"),
    DEPTH_METRIC: MetricRule(0.7, "Should squat deeper, lowering the hips below knee level for a full range of motion"),
    "stance_width": MetricRule(0.6, "Should adjust the feet to be about shoulder-width apart for optimal stability"),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}

SUMO_SQUAT_RULES = {
    "knee_tracking": MetricRule(0.6, "Should keep both knees aligned over the toes and avoid letting them cave inward"),
    "sumo_stance_width": MetricRule(0.7, "Should position the feet wider than shoulder-width with toes pointed outward"),
    DEPTH_METRIC: SQUAT_RULES[DEPTH_METRIC],
    VISIBILITY_METRIC: VISIBILITY_RULE,
}

SPLIT_SQUAT_RULES = {
    "front_knee_tracking": MetricRule(
        0.65, "Should keep the front knee aligned over the ankle and avoid letting it drift inward"
    ),
    "stance_length": MetricRule(
        0.7, "Should adjust the stance to have an appropriate distance between the front and back foot for stability"
    ),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}


def _leg(side: Side):
    if side is Side.LEFT:
        return L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE
    return L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE


def _combine(knee_angle: float, hip_knee_diff: float, shin_height: float, angle_weight: float) -> Probabilities:
    if shin_height < MIN_SHIN_HEIGHT:
        return Probabilities.neutral()
    angle_prob = geometry.normalize(knee_angle, KNEE_ANGLE_DOWN, KNEE_ANGLE_UP)
    # Down: hip near or below the knee (ratio ~0). Up: hip well above it (ratio ~1.2)
    height_prob = geometry.normalize(hip_knee_diff / shin_height, 0.0, HIP_HEIGHT_UP)
    return Probabilities.from_up(angle_prob * angle_weight + height_prob * (1.0 - angle_weight))


def _depth_score(world: LandmarkList) -> float:
    hip_y = (world[L.LEFT_HIP].y + world[L.RIGHT_HIP].y) / 2
    knee_y = (world[L.LEFT_KNEE].y + world[L.RIGHT_KNEE].y) / 2
    return 1.0 if hip_y - knee_y > 0 else 0.5


def _stance_score(world: LandmarkList, ideal_ratio: float) -> float:
    foot_width = abs(world[L.LEFT_ANKLE].x - world[L.RIGHT_ANKLE].x)
    shoulder_width = abs(world[L.LEFT_SHOULDER].x - world[L.RIGHT_SHOULDER].x)
    ratio = foot_width / shoulder_width if shoulder_width > 0 else 0.0
    return 1.0 - geometry.clamp(abs(ratio - ideal_ratio))


def _tracks_depth(position: Optional[str]) -> bool:
    # Depth only means something at the bottom of the movement
    return position != "up"


# ---------------------------------------------------------------------------
# Standard squat
# ---------------------------------------------------------------------------

def squat_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    side = Side.LEFT if geometry.is_left_body_visible(world) else Side.RIGHT
    hip_idx, knee_idx, ankle_idx = _leg(side)
    hip, knee, ankle = world[hip_idx], world[knee_idx], world[ankle_idx]

    if min(hip.visibility, knee.visibility, ankle.visibility) < 0.8:
        return Probabilities.neutral()

    knee_2d = image[knee_idx]
    return _combine(
        knee_angle=geometry.angle(hip, knee, ankle),
        hip_knee_diff=knee_2d.y - image[hip_idx].y,
        shin_height=geometry.vertical_distance(knee_2d, image[ankle_idx]),
        angle_weight=0.6,
    )


def squat_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        tracking_distance = math.sqrt(
            (world[L.LEFT_KNEE].x - world[L.LEFT_ANKLE].x) ** 2
            + (world[L.RIGHT_KNEE].x - world[L.RIGHT_ANKLE].x) ** 2
        )
        scores = {"knee_tracking": 1.0 - geometry.clamp(tracking_distance * 10)}
        if _tracks_depth(position):
            scores[DEPTH_METRIC] = _depth_score(world)
        scores["stance_width"] = _stance_score(world, STANDARD_STANCE_RATIO)
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Squat form metrics fell back to neutral: {e}")
        scores = fallback_scores(["knee_tracking", DEPTH_METRIC, "stance_width"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores


# ---------------------------------------------------------------------------
# Sumo squat
# ---------------------------------------------------------------------------

def sumo_squat_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    left_knee, right_knee = world[L.LEFT_KNEE], world[L.RIGHT_KNEE]
    if left_knee.visibility < 0.7 or right_knee.visibility < 0.7:
        return Probabilities.neutral()

    avg_knee_angle = (
        geometry.angle(world[L.LEFT_HIP], left_knee, world[L.LEFT_ANKLE])
        + geometry.angle(world[L.RIGHT_HIP], right_knee, world[L.RIGHT_ANKLE])
    ) / 2

    avg_hip_y = (image[L.LEFT_HIP].y + image[L.RIGHT_HIP].y) / 2
    avg_knee_y = (image[L.LEFT_KNEE].y + image[L.RIGHT_KNEE].y) / 2

    return _combine(
        knee_angle=avg_knee_angle,
        hip_knee_diff=avg_knee_y - avg_hip_y,
        shin_height=geometry.vertical_distance(image[L.LEFT_KNEE], image[L.LEFT_ANKLE]),
        angle_weight=0.6,
    )


def sumo_squat_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        left_offset = abs(world[L.LEFT_KNEE].x - world[L.LEFT_ANKLE].x)
        right_offset = abs(world[L.RIGHT_KNEE].x - world[L.RIGHT_ANKLE].x)
        scores = {
            "knee_tracking": 1.0 - geometry.clamp((left_offset + right_offset) / 2 * 10),
            "sumo_stance_width": _stance_score(world, SUMO_STANCE_RATIO),
        }
        if _tracks_depth(position):
            scores[DEPTH_METRIC] = _depth_score(world)
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Sumo squat form metrics fell back to neutral: {e}")
        scores = fallback_scores(["knee_tracking", "sumo_stance_width", DEPTH_METRIC])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores


# ---------------------------------------------------------------------------
# Split squat
# ---------------------------------------------------------------------------

def split_squat_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    hip_idx, knee_idx, ankle_idx = _leg(options.front_leg)
    hip, knee, ankle = world[hip_idx], world[knee_idx], world[ankle_idx]

    if min(hip.visibility, knee.visibility, ankle.visibility) < 0.8:
        return Probabilities.neutral()

    knee_2d = image[knee_idx]
    return _combine(
        knee_angle=geometry.angle(hip, knee, ankle),
        hip_knee_diff=knee_2d.y - image[hip_idx].y,
        shin_height=geometry.vertical_distance(knee_2d, image[ankle_idx]),
        angle_weight=0.7,
    )


def split_squat_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        hip_idx, knee_idx, ankle_idx = _leg(options.front_leg)
        _, _, back_ankle_idx = _leg(options.front_leg.opposite)
        front_hip, front_knee, front_ankle = world[hip_idx], world[knee_idx], world[ankle_idx]

        tracking = 1.0 - geometry.clamp(abs(front_knee.x - front_ankle.x) * 15)

        stance_length = geometry.planar_distance(front_ankle, world[back_ankle_idx])
        leg_length = geometry.planar_distance(front_hip, front_ankle)
        stance_ratio = stance_length / leg_length if leg_length > 0 else 0.0

        scores = {
            "front_knee_tracking": tracking,
            "stance_length": 1.0 - geometry.clamp(abs(stance_ratio - SPLIT_STANCE_RATIO)),
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Split squat form metrics fell back to neutral: {e}")
        scores = fallback_scores(["front_knee_tracking", "stance_length"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores

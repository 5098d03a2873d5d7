"""
Superman (prone back extension) classification.

SIGNALS:
1. Leg elevation: ankles lifted above the hips relative to leg length (80%)
2. Chest elevation: back-extension angle at the hips beyond the 170 deg neutral line (20%)

Leg lift is weighted far above chest lift because the ankles stay well
separated from the torso in the image, while the chest signal is noisy
when the arms cover the upper body.
"""

import logging
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
from posecoach.cv.landmarks import Landmark
from posecoach.cv.landmarks import PoseLandmark as L

logger = logging.getLogger(__name__)

NEUTRAL_BACK_ANGLE = 170.0
MAX_BACK_ANGLE = 200.0
MAX_LEG_LIFT = 0.25  # Ankle lift / leg length at full elevation (about 15 deg)

LEG_WEIGHT = 0.8
CHEST_WEIGHT = 0.2

SUPERMAN_RULES = {
    "spinal_alignment": MetricRule(0.5, "Should keep the head in line with the spine while looking at the floor"),
    "arm_extension": MetricRule(0.5, "Should reach the arms fully forward, extending them in front of the head"),
    "leg_extension": MetricRule(0.5, "Should extend the legs straight back and lift them off the floor"),
    "bilateral_symmetry": MetricRule(0.6, "Should lift both arms evenly, keeping both sides of the body balanced"),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}


def back_extension_angle(shoulder_mid: Landmark, hip_mid: Landmark, ankle_mid: Landmark) -> float:
    """
    Angle at the hips between torso and legs, measured on the back side.

    Lying flat gives 180 deg. When chest and legs rise, the hips sit below the
    shoulder-ankle line and the angle opens past 180 deg.
    """
    inner = geometry.angle(shoulder_mid, hip_mid, ankle_mid)
    body_length = geometry.planar_distance(shoulder_mid, ankle_mid)
    if body_length <= 0.0:
        return inner

    shoulder_to_hip = geometry.planar_distance(shoulder_mid, hip_mid)
    line_y = shoulder_mid.y + (ankle_mid.y - shoulder_mid.y) * (shoulder_to_hip / body_length)
    # y grows downward: a hip below the line means the body is arched upward
    if hip_mid.y > line_y:
        return 360.0 - inner
    return inner


def _leg_lift(hip_mid: Landmark, ankle_mid: Landmark) -> float:
    leg_length = geometry.planar_distance(hip_mid, ankle_mid)
    if leg_length <= 0.0:
        return 0.0
    return (hip_mid.y - ankle_mid.y) / leg_length


def superman_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    nose = world[L.NOSE]
    left_shoulder, right_shoulder = world[L.LEFT_SHOULDER], world[L.RIGHT_SHOULDER]
    if nose.visibility < 0.6 or left_shoulder.visibility < 0.7 or right_shoulder.visibility < 0.7:
        return Probabilities.neutral()

    shoulder_mid = geometry.midpoint(left_shoulder, right_shoulder)
    hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
    ankle_mid = geometry.midpoint(world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE])

    extension = back_extension_angle(shoulder_mid, hip_mid, ankle_mid)
    chest_prob = 0.0
    if extension > NEUTRAL_BACK_ANGLE:
        chest_prob = geometry.normalize(extension, NEUTRAL_BACK_ANGLE, MAX_BACK_ANGLE)

    leg_prob = geometry.normalize(_leg_lift(hip_mid, ankle_mid), 0.0, MAX_LEG_LIFT)

    return Probabilities.from_up(leg_prob * LEG_WEIGHT + chest_prob * CHEST_WEIGHT)


def superman_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        shoulder_mid = geometry.midpoint(world[L.LEFT_SHOULDER], world[L.RIGHT_SHOULDER])
        hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
        wrist_mid = geometry.midpoint(world[L.LEFT_WRIST], world[L.RIGHT_WRIST])
        ankle_mid = geometry.midpoint(world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE])

        spinal_angle = geometry.angle(world[L.NOSE], shoulder_mid, hip_mid)

        left_arm = geometry.angle(world[L.LEFT_HIP], world[L.LEFT_SHOULDER], world[L.LEFT_WRIST])
        right_arm = geometry.angle(world[L.RIGHT_HIP], world[L.RIGHT_SHOULDER], world[L.RIGHT_WRIST])

        scores = {
            "spinal_alignment": geometry.normalize(spinal_angle, 150.0, 180.0),
            "arm_extension": geometry.normalize(geometry.planar_distance(shoulder_mid, wrist_mid), 0.3, 0.8),
            "leg_extension": geometry.normalize(geometry.planar_distance(hip_mid, ankle_mid), 0.4, 1.0),
            "bilateral_symmetry": geometry.clamp(1.0 - abs(left_arm - right_arm) / 180.0),
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Superman form metrics fell back to neutral: {e}")
        scores = fallback_scores(["spinal_alignment", "arm_extension", "leg_extension", "bilateral_symmetry"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores

"""
Plank family classification (plank, side plank).

Planks are held for time rather than counted. The UP probability reads as
"holding a correct plank" and feeds the hold tracker instead of the rep
state machine.

PLANK SIGNALS (visible side):
1. Body alignment, shoulder-hip-ankle angle near 180 deg (60%)
2. Arm support, shoulder-elbow-wrist angle (25%)
3. Hip height consistency versus a straight shoulder-ankle line (15%)

SIDE PLANK SIGNALS (supporting side):
1. Body alignment (40%)
2. Hip elevation above the supporting arm (30%)
3. Supporting arm angle (20%)
4. Lateral stability, ankles stacked like the hips (10%)
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
    Side,
    fallback_scores,
    mean_visibility,
)
from posecoach.cv.landmarks import PoseLandmark as L

logger = logging.getLogger(__name__)

VISIBILITY_THRESHOLD = 0.7
MIN_BODY_LENGTH = 0.01

PLANK_RULES = {
    "body_alignment": MetricRule(
        0.7, "Should maintain a straight line from head to heels and avoid arching or rounding the back"
    ),
    "hip_stability": MetricRule(0.7, "Should keep hips level and avoid sagging down or piking up too high"),
    "core_engagement": MetricRule(0.7, "Should engage core muscles to maintain stability and proper form"),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}

SIDE_PLANK_RULES = {
    "body_alignment": MetricRule(
        0.7, "Should maintain a straight line from head to feet and avoid sagging or bending at the waist"
    ),
    "hip_elevation": MetricRule(0.7, "Should lift hips higher to maintain proper side plank position"),
    "supporting_arm_stability": MetricRule(0.7, "Should keep the {side} supporting arm strong and stable"),
    "shoulder_stacking": MetricRule(
        0.7, "Should keep shoulders stacked vertically and avoid rotating or twisting the torso"
    ),
    "hip_stacking": MetricRule(0.7, "Should keep hips and legs stacked to maintain proper side plank form"),
    "core_stability": MetricRule(
        0.7, "Should engage core muscles to maintain stability and prevent body rotation"
    ),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}


# ---------------------------------------------------------------------------
# Plank
# ---------------------------------------------------------------------------

def plank_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    if geometry.is_left_body_visible(world):
        joints = (L.LEFT_SHOULDER, L.LEFT_ELBOW, L.LEFT_WRIST, L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE)
    else:
        joints = (L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST, L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE)

    shoulder, elbow, wrist, hip, knee, ankle = (world[idx] for idx in joints)
    if min(lm.visibility for lm in (shoulder, elbow, wrist, hip, knee, ankle)) < VISIBILITY_THRESHOLD:
        return Probabilities.neutral()

    alignment_prob = geometry.normalize(geometry.angle(shoulder, hip, ankle), 160.0, 180.0)
    arm_prob = geometry.normalize(geometry.angle(shoulder, elbow, wrist), 140.0, 180.0)

    total_length = geometry.planar_distance(shoulder, hip) + geometry.planar_distance(hip, ankle)
    if total_length < MIN_BODY_LENGTH:
        return Probabilities.neutral()

    # A sagging or piked hip makes the two segments longer than the direct line
    consistency = geometry.planar_distance(shoulder, ankle) / total_length
    height_prob = geometry.normalize(consistency, 0.85, 1.0)

    return Probabilities.from_up(alignment_prob * 0.6 + arm_prob * 0.25 + height_prob * 0.15)


def plank_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        shoulder_mid = geometry.midpoint(world[L.LEFT_SHOULDER], world[L.RIGHT_SHOULDER])
        hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
        ankle_mid = geometry.midpoint(world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE])

        alignment = geometry.normalize(geometry.angle(shoulder_mid, hip_mid, ankle_mid), 160.0, 180.0)

        body_length = geometry.planar_distance(shoulder_mid, ankle_mid)
        if body_length > MIN_BODY_LENGTH:
            shoulder_to_hip = geometry.planar_distance(shoulder_mid, hip_mid)
            expected_hip_y = shoulder_mid.y + (ankle_mid.y - shoulder_mid.y) * (shoulder_to_hip / body_length)
            hip_stability = 1.0 - geometry.normalize(abs(hip_mid.y - expected_hip_y), 0.0, 0.1)
        else:
            hip_stability = 0.5

        scores = {
            "body_alignment": alignment,
            "hip_stability": hip_stability,
            "core_engagement": alignment * hip_stability,
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Plank form metrics fell back to neutral: {e}")
        scores = fallback_scores(["body_alignment", "hip_stability", "core_engagement"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores


# ---------------------------------------------------------------------------
# Side plank
# ---------------------------------------------------------------------------

def _supporting_arm(world: LandmarkList, side: Side):
    if side is Side.LEFT:
        return world[L.LEFT_SHOULDER], world[L.LEFT_ELBOW], world[L.LEFT_WRIST]
    return world[L.RIGHT_SHOULDER], world[L.RIGHT_ELBOW], world[L.RIGHT_WRIST]


def _hip_elevation(world: LandmarkList, elbow, wrist) -> float:
    hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
    arm_point = wrist if wrist.visibility > VISIBILITY_THRESHOLD else elbow
    return geometry.normalize(arm_point.y - hip_mid.y, -0.2, 0.3)


def _support_stability(shoulder, elbow, wrist) -> float:
    if wrist.visibility > VISIBILITY_THRESHOLD:
        return geometry.normalize(geometry.angle(shoulder, elbow, wrist), 120.0, 180.0)
    return 0.5


def side_plank_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    shoulder, elbow, wrist = _supporting_arm(world, options.supporting_side)
    left_hip, right_hip = world[L.LEFT_HIP], world[L.RIGHT_HIP]
    left_ankle, right_ankle = world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE]

    gated = (shoulder, elbow, left_hip, right_hip, left_ankle, right_ankle)
    if min(lm.visibility for lm in gated) < VISIBILITY_THRESHOLD:
        return Probabilities.neutral()

    hip_mid = geometry.midpoint(left_hip, right_hip)
    ankle_mid = geometry.midpoint(left_ankle, right_ankle)
    alignment_prob = geometry.normalize(geometry.angle(shoulder, hip_mid, ankle_mid), 160.0, 180.0)

    elevation_prob = _hip_elevation(world, elbow, wrist)
    support_prob = _support_stability(shoulder, elbow, wrist)

    hip_width = abs(left_hip.x - right_hip.x)
    ankle_width = abs(left_ankle.x - right_ankle.x)
    lateral_prob = 0.8
    if hip_width > 0.01 and ankle_width > 0.01:
        lateral_prob = 1.0 - geometry.clamp(abs(ankle_width / hip_width - 1.0), 0.0, 0.5) * 2

    return Probabilities.from_up(
        alignment_prob * 0.4 + elevation_prob * 0.3 + support_prob * 0.2 + lateral_prob * 0.1
    )


def side_plank_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        side = options.supporting_side
        shoulder, elbow, wrist = _supporting_arm(world, side)
        top_shoulder = world[L.RIGHT_SHOULDER] if side is Side.LEFT else world[L.LEFT_SHOULDER]

        hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
        ankle_mid = geometry.midpoint(world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE])
        alignment = geometry.normalize(geometry.angle(shoulder, hip_mid, ankle_mid), 160.0, 180.0)

        shoulder_stacking = 1.0 - geometry.normalize(abs(top_shoulder.x - shoulder.x), 0.0, 0.2)

        hip_spread = abs(world[L.LEFT_HIP].x - world[L.RIGHT_HIP].x)
        ankle_spread = abs(world[L.LEFT_ANKLE].x - world[L.RIGHT_ANKLE].x)
        hip_stacking = 1.0 - geometry.normalize((hip_spread + ankle_spread) / 2, 0.0, 0.15)

        scores = {
            "body_alignment": alignment,
            "hip_elevation": _hip_elevation(world, elbow, wrist),
            "supporting_arm_stability": _support_stability(shoulder, elbow, wrist),
            "shoulder_stacking": shoulder_stacking,
            "hip_stacking": hip_stacking,
            "core_stability": (alignment + shoulder_stacking + hip_stacking) / 3,
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Side plank form metrics fell back to neutral: {e}")
        scores = fallback_scores([
            "body_alignment",
            "hip_elevation",
            "supporting_arm_stability",
            "shoulder_stacking",
            "hip_stacking",
            "core_stability",
        ])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores

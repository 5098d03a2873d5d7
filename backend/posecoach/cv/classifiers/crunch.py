"""
Crunch family classification (crunch, reverse crunch, double crunch).

SIGNALS:
- Crunch: torso flexion, angle nose-shoulderMid-hipMid (120 deg crunched, 180 deg flat)
- Reverse crunch: hip flexion, angle shoulderMid-hipMid-kneeMid (60 deg tucked, 120 deg extended)
- Double crunch: mean of both flexion signals

All variants require bent knees: a mid-knee angle above 160 degrees means the
user is not in a crunch position and the frame is treated as neutral.
"""

import logging
from typing import Dict, List, Optional

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

VISIBILITY_THRESHOLD = 0.65
MAX_KNEE_ANGLE = 160.0

TORSO_FLEXED, TORSO_EXTENDED = 120.0, 180.0
HIP_FLEXED, HIP_EXTENDED = 60.0, 120.0

CRUNCH_RULES = {
    "neck_alignment": MetricRule(0.4, "Head should move with torso, not independently"),
    "knee_stability": MetricRule(
        0.55, "Should keep the knees bent at about 90 degrees and stable throughout the movement"
    ),
    "hip_stability": MetricRule(0.65, "Should keep the hips level and avoid lifting them"),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}

REVERSE_CRUNCH_RULES = {
    "knee_symmetry": MetricRule(0.65, "Should move both knees together, keeping them aligned"),
    "range_of_motion": MetricRule(0.65, "Should bring the knees closer to the chest for a fuller range of motion"),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}

DOUBLE_CRUNCH_RULES = {
    "movement_coordination": MetricRule(
        0.5, "Should coordinate both the upper body crunch and knee-to-chest movement simultaneously"
    ),
    "bilateral_symmetry": MetricRule(0.5, "Should ensure both sides of the body move evenly"),
    "full_range_activation": MetricRule(
        0.4, "Should engage both upper and lower abdominals for maximum muscle activation"
    ),
    VISIBILITY_METRIC: VISIBILITY_RULE,
}


def required_landmarks(left_visible: bool) -> List[L]:
    if left_visible:
        return [L.NOSE, L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE, L.LEFT_WRIST, L.LEFT_ELBOW]
    return [L.NOSE, L.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE, L.RIGHT_WRIST, L.RIGHT_ELBOW]


def _in_crunch_position(world: LandmarkList) -> bool:
    """Visibility gate plus the bent-knee sanity check."""
    required = required_landmarks(geometry.is_left_body_visible(world))
    if any(world[idx].visibility < VISIBILITY_THRESHOLD for idx in required):
        return False

    hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
    knee_mid = geometry.midpoint(world[L.LEFT_KNEE], world[L.RIGHT_KNEE])
    ankle_mid = geometry.midpoint(world[L.LEFT_ANKLE], world[L.RIGHT_ANKLE])
    return geometry.angle(hip_mid, knee_mid, ankle_mid) <= MAX_KNEE_ANGLE


def _mids(world: LandmarkList):
    shoulder_mid = geometry.midpoint(world[L.LEFT_SHOULDER], world[L.RIGHT_SHOULDER])
    hip_mid = geometry.midpoint(world[L.LEFT_HIP], world[L.RIGHT_HIP])
    knee_mid = geometry.midpoint(world[L.LEFT_KNEE], world[L.RIGHT_KNEE])
    return shoulder_mid, hip_mid, knee_mid


def _torso_flexion(world: LandmarkList) -> float:
    """1.0 fully crunched, 0.0 lying flat."""
    shoulder_mid, hip_mid, _ = _mids(world)
    torso_angle = geometry.angle(world[L.NOSE], shoulder_mid, hip_mid)
    return 1.0 - geometry.normalize(torso_angle, TORSO_FLEXED, TORSO_EXTENDED)


def _hip_flexion(world: LandmarkList) -> float:
    """1.0 knees tucked to chest, 0.0 legs extended."""
    shoulder_mid, hip_mid, knee_mid = _mids(world)
    hip_angle = geometry.angle(shoulder_mid, hip_mid, knee_mid)
    return 1.0 - geometry.normalize(hip_angle, HIP_FLEXED, HIP_EXTENDED)


def _side_visibility(world: LandmarkList) -> float:
    return mean_visibility(world, required_landmarks(geometry.is_left_body_visible(world)))


# ---------------------------------------------------------------------------
# Crunch
# ---------------------------------------------------------------------------

def crunch_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    if not _in_crunch_position(world):
        return Probabilities.neutral()
    return Probabilities.from_up(_torso_flexion(world))


def crunch_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        shoulder_mid, hip_mid, _ = _mids(world)
        neck_angle = geometry.angle(world[L.NOSE], shoulder_mid, hip_mid)

        left_knee_angle = geometry.angle(world[L.LEFT_HIP], world[L.LEFT_KNEE], world[L.LEFT_ANKLE])
        right_knee_angle = geometry.angle(world[L.RIGHT_HIP], world[L.RIGHT_KNEE], world[L.RIGHT_ANKLE])
        avg_knee_angle = (left_knee_angle + right_knee_angle) / 2

        hip_level_diff = abs(world[L.LEFT_HIP].y - world[L.RIGHT_HIP].y)

        scores = {
            "neck_alignment": geometry.normalize(neck_angle, 140.0, 180.0),
            # Knees should stay bent around 90-120 degrees
            "knee_stability": geometry.clamp(1.0 - abs(avg_knee_angle - 105.0) / 45.0),
            "hip_stability": 1.0 - geometry.clamp(hip_level_diff * 20),
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Crunch form metrics fell back to neutral: {e}")
        scores = fallback_scores(["neck_alignment", "knee_stability", "hip_stability"])

    scores[VISIBILITY_METRIC] = _side_visibility(world)
    return scores


# ---------------------------------------------------------------------------
# Reverse crunch
# ---------------------------------------------------------------------------

def reverse_crunch_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    if not _in_crunch_position(world):
        return Probabilities.neutral()
    return Probabilities.from_up(_hip_flexion(world))


def reverse_crunch_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        left_angle = geometry.angle(world[L.LEFT_SHOULDER], world[L.LEFT_HIP], world[L.LEFT_KNEE])
        right_angle = geometry.angle(world[L.RIGHT_SHOULDER], world[L.RIGHT_HIP], world[L.RIGHT_KNEE])

        shoulder_mid, hip_mid, knee_mid = _mids(world)
        rom_angle = geometry.angle(shoulder_mid, hip_mid, knee_mid)

        scores = {
            "knee_symmetry": geometry.clamp(1.0 - abs(left_angle - right_angle) / 180.0),
            "range_of_motion": 1.0 - geometry.normalize(rom_angle, HIP_FLEXED, 180.0),
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Reverse crunch form metrics fell back to neutral: {e}")
        scores = fallback_scores(["knee_symmetry", "range_of_motion"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores


# ---------------------------------------------------------------------------
# Double crunch
# ---------------------------------------------------------------------------

def double_crunch_probabilities(world: LandmarkList, image: LandmarkList, options: ClassifierOptions) -> Probabilities:
    if not _in_crunch_position(world):
        return Probabilities.neutral()
    return Probabilities.from_up((_torso_flexion(world) + _hip_flexion(world)) / 2)


def double_crunch_form_scores(
    world: LandmarkList,
    image: LandmarkList,
    options: ClassifierOptions,
    position: Optional[str] = None,
) -> Dict[str, float]:
    try:
        torso = _torso_flexion(world)
        hip = _hip_flexion(world)

        nose = world[L.NOSE]
        left_side = geometry.angle(nose, world[L.LEFT_SHOULDER], world[L.LEFT_KNEE])
        right_side = geometry.angle(nose, world[L.RIGHT_SHOULDER], world[L.RIGHT_KNEE])

        scores = {
            "movement_coordination": geometry.clamp(1.0 - abs(torso - hip)),
            "bilateral_symmetry": geometry.clamp(1.0 - abs(left_side - right_side) / 180.0),
            "full_range_activation": (torso + hip) / 2,
        }
    except GEOMETRY_ERRORS as e:
        logger.debug(f"Double crunch form metrics fell back to neutral: {e}")
        scores = fallback_scores(["movement_coordination", "bilateral_symmetry", "full_range_activation"])

    scores[VISIBILITY_METRIC] = mean_visibility(world)
    return scores

"""
Exercise kinds and name-based classifier dispatch.

The set of supported exercises is closed: every ExerciseKind maps to exactly
one ExerciseStrategy (parameter table bound into a pair of pure functions).
ExerciseClassifier adds the only mutable piece, the smoothing window.

Exercise names come from a workout-plan generator and vary in phrasing
("Knee Push-Ups", "push up (knees)", "Wide-grip pushups"), so dispatch
matches substrings instead of exact values.
"""

import logging
from enum import Enum
from functools import partial
from typing import Dict, Optional

from posecoach.cv.classifiers.base import (
    GEOMETRY_ERRORS,
    ClassifierOptions,
    ExerciseStrategy,
    FormMetrics,
    LandmarkList,
    Probabilities,
    Side,
    SmoothingWindow,
    annotate,
    fallback_scores,
)
from posecoach.cv.classifiers.crunch import (
    CRUNCH_RULES,
    DOUBLE_CRUNCH_RULES,
    REVERSE_CRUNCH_RULES,
    crunch_form_scores,
    crunch_probabilities,
    double_crunch_form_scores,
    double_crunch_probabilities,
    reverse_crunch_form_scores,
    reverse_crunch_probabilities,
)
from posecoach.cv.classifiers.plank import (
    PLANK_RULES,
    SIDE_PLANK_RULES,
    plank_form_scores,
    plank_probabilities,
    side_plank_form_scores,
    side_plank_probabilities,
)
from posecoach.cv.classifiers.pushup import (
    PUSH_UP_PARAMS,
    PUSH_UP_RULES,
    PushUpVariant,
    push_up_form_scores,
    push_up_probabilities,
)
from posecoach.cv.classifiers.squat import (
    SPLIT_SQUAT_RULES,
    SQUAT_RULES,
    SUMO_SQUAT_RULES,
    split_squat_form_scores,
    split_squat_probabilities,
    squat_form_scores,
    squat_probabilities,
    sumo_squat_form_scores,
    sumo_squat_probabilities,
)
from posecoach.cv.classifiers.superman import SUPERMAN_RULES, superman_form_scores, superman_probabilities

logger = logging.getLogger(__name__)


class ExerciseKind(Enum):
    """Every exercise the engine can classify."""
    PUSH_UP = "push_up"
    KNEE_PUSH_UP = "knee_push_up"
    WALL_PUSH_UP = "wall_push_up"
    INCLINE_PUSH_UP = "incline_push_up"
    DECLINE_PUSH_UP = "decline_push_up"
    DIAMOND_PUSH_UP = "diamond_push_up"
    WIDE_PUSH_UP = "wide_push_up"
    SQUAT = "squat"
    SUMO_SQUAT = "sumo_squat"
    SPLIT_SQUAT = "split_squat"
    CRUNCH = "crunch"
    REVERSE_CRUNCH = "reverse_crunch"
    DOUBLE_CRUNCH = "double_crunch"
    PLANK = "plank"
    SIDE_PLANK = "side_plank"
    SUPERMAN = "superman"

    @property
    def is_duration_based(self) -> bool:
        return STRATEGIES[self].duration_based

    @property
    def feedback_prefix(self) -> str:
        """Prefix of the pre-recorded feedback cues for this exercise."""
        if self in PUSH_UP_KINDS:
            return "pushup"
        return self.value


PUSH_UP_KINDS: Dict[ExerciseKind, PushUpVariant] = {
    ExerciseKind.PUSH_UP: PushUpVariant.STANDARD,
    ExerciseKind.KNEE_PUSH_UP: PushUpVariant.KNEE,
    ExerciseKind.WALL_PUSH_UP: PushUpVariant.WALL,
    ExerciseKind.INCLINE_PUSH_UP: PushUpVariant.INCLINE,
    ExerciseKind.DECLINE_PUSH_UP: PushUpVariant.DECLINE,
    ExerciseKind.DIAMOND_PUSH_UP: PushUpVariant.DIAMOND,
    ExerciseKind.WIDE_PUSH_UP: PushUpVariant.WIDE,
}


def _push_up_strategy(variant: PushUpVariant) -> ExerciseStrategy:
    params = PUSH_UP_PARAMS[variant]
    return ExerciseStrategy(
        probabilities=partial(push_up_probabilities, params=params),
        form_scores=partial(push_up_form_scores, params=params),
        rules=PUSH_UP_RULES,
    )


STRATEGIES: Dict[ExerciseKind, ExerciseStrategy] = {
    **{kind: _push_up_strategy(variant) for kind, variant in PUSH_UP_KINDS.items()},
    ExerciseKind.SQUAT: ExerciseStrategy(squat_probabilities, squat_form_scores, SQUAT_RULES),
    ExerciseKind.SUMO_SQUAT: ExerciseStrategy(sumo_squat_probabilities, sumo_squat_form_scores, SUMO_SQUAT_RULES),
    ExerciseKind.SPLIT_SQUAT: ExerciseStrategy(
        split_squat_probabilities, split_squat_form_scores, SPLIT_SQUAT_RULES
    ),
    ExerciseKind.CRUNCH: ExerciseStrategy(crunch_probabilities, crunch_form_scores, CRUNCH_RULES),
    ExerciseKind.REVERSE_CRUNCH: ExerciseStrategy(
        reverse_crunch_probabilities, reverse_crunch_form_scores, REVERSE_CRUNCH_RULES
    ),
    ExerciseKind.DOUBLE_CRUNCH: ExerciseStrategy(
        double_crunch_probabilities, double_crunch_form_scores, DOUBLE_CRUNCH_RULES
    ),
    ExerciseKind.PLANK: ExerciseStrategy(plank_probabilities, plank_form_scores, PLANK_RULES, duration_based=True),
    ExerciseKind.SIDE_PLANK: ExerciseStrategy(
        side_plank_probabilities, side_plank_form_scores, SIDE_PLANK_RULES, duration_based=True
    ),
    ExerciseKind.SUPERMAN: ExerciseStrategy(superman_probabilities, superman_form_scores, SUPERMAN_RULES),
}


def _push_up_kind(name: str) -> ExerciseKind:
    if "knee" in name:
        return ExerciseKind.KNEE_PUSH_UP
    if "wall" in name:
        return ExerciseKind.WALL_PUSH_UP
    if "incline" in name:
        return ExerciseKind.INCLINE_PUSH_UP
    if "decline" in name:
        return ExerciseKind.DECLINE_PUSH_UP
    if "diamond" in name or "close" in name:
        return ExerciseKind.DIAMOND_PUSH_UP
    if "wide" in name:
        return ExerciseKind.WIDE_PUSH_UP
    return ExerciseKind.PUSH_UP


def classify_exercise_name(name: str) -> Optional[ExerciseKind]:
    """
    Map a free-form exercise name to an ExerciseKind.

    Returns:
        The matching kind, or None when the exercise has no classifier
    """
    name = (name or "").lower()

    if "push" in name and "up" in name:
        return _push_up_kind(name)
    if "squat" in name:
        if "sumo" in name:
            return ExerciseKind.SUMO_SQUAT
        if "split" in name:
            return ExerciseKind.SPLIT_SQUAT
        return ExerciseKind.SQUAT
    if "crunch" in name:
        if "reverse" in name:
            return ExerciseKind.REVERSE_CRUNCH
        if "double" in name:
            return ExerciseKind.DOUBLE_CRUNCH
        return ExerciseKind.CRUNCH
    if "superman" in name:
        return ExerciseKind.SUPERMAN
    if "plank" in name:
        return ExerciseKind.SIDE_PLANK if "side" in name else ExerciseKind.PLANK
    return None


def options_for_name(name: str) -> ClassifierOptions:
    """Single-sided exercises default to the left side unless the name says otherwise."""
    side = Side.RIGHT if "right" in (name or "").lower() else Side.LEFT
    return ClassifierOptions(front_leg=side, supporting_side=side)


class ExerciseClassifier:
    """
    Stateful classifier for one exercise activation.

    Owns the smoothing window; every classify() call pushes one raw sample,
    including neutral samples for unreliable frames, and returns the window mean.
    """

    def __init__(
        self,
        kind: ExerciseKind,
        smoothing_window: int = 5,
        options: Optional[ClassifierOptions] = None,
    ):
        self.kind = kind
        self.options = options or ClassifierOptions()
        self._strategy = STRATEGIES[kind]
        self._window = SmoothingWindow(smoothing_window)

    @property
    def is_duration_based(self) -> bool:
        return self._strategy.duration_based

    @property
    def smoothing_window(self) -> int:
        return self._window.size

    def classify(self, world: LandmarkList, image: LandmarkList) -> Probabilities:
        """Classify one frame and return the smoothed up/down probabilities."""
        try:
            raw = self._strategy.probabilities(world, image, self.options)
        except GEOMETRY_ERRORS as e:
            logger.debug(f"{self.kind.value}: unusable frame treated as neutral: {e}")
            raw = Probabilities.neutral()
        return self._window.push(raw)

    def calculate_form_metrics(
        self,
        world: LandmarkList,
        image: LandmarkList,
        position: Optional[str] = None,
    ) -> FormMetrics:
        """
        Score the current frame's form.

        Args:
            world: World landmarks
            image: Image landmarks
            position: Confirmed position ("up"/"down") or None for position-agnostic scoring

        Returns:
            Ordered mapping of metric name to score and optional feedback message
        """
        try:
            scores = self._strategy.form_scores(world, image, self.options, position)
        except GEOMETRY_ERRORS as e:
            logger.debug(f"{self.kind.value}: form metrics fell back to neutral: {e}")
            scores = fallback_scores(self._strategy.rules.keys())
        return self.annotate(scores)

    def annotate(self, scores: Dict[str, float]) -> FormMetrics:
        """Attach this exercise's feedback messages to raw scores."""
        return annotate(scores, self._strategy.rules, side=self.options.supporting_side.value)

    def reset(self) -> None:
        self._window.reset()


def create_classifier(
    kind: ExerciseKind,
    smoothing_window: int = 5,
    options: Optional[ClassifierOptions] = None,
) -> ExerciseClassifier:
    """Factory function to create an ExerciseClassifier."""
    return ExerciseClassifier(kind, smoothing_window=smoothing_window, options=options)


def classifier_for_exercise(name: str, smoothing_window: int = 5) -> Optional[ExerciseClassifier]:
    """Create a classifier for a free-form exercise name, or None if unsupported."""
    kind = classify_exercise_name(name)
    if kind is None:
        logger.info(f"No classifier available for exercise '{name}'")
        return None
    return create_classifier(kind, smoothing_window=smoothing_window, options=options_for_name(name))

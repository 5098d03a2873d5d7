"""Per-exercise classification strategies."""

from posecoach.cv.classifiers.base import (
    ClassifierOptions,
    ExerciseStrategy,
    FormMetric,
    FormMetrics,
    MetricRule,
    Probabilities,
    Side,
    SmoothingWindow,
)
from posecoach.cv.classifiers.pushup import PUSH_UP_PARAMS, PushUpParams, PushUpVariant

__all__ = [
    "ClassifierOptions",
    "ExerciseStrategy",
    "FormMetric",
    "FormMetrics",
    "MetricRule",
    "Probabilities",
    "Side",
    "SmoothingWindow",
    "PUSH_UP_PARAMS",
    "PushUpParams",
    "PushUpVariant",
]

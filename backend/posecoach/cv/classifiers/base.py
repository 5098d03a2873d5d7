"""
Shared building blocks for exercise classifiers.

Every exercise is described by an ExerciseStrategy: a pure probability
function, a pure form-score function and the feedback rules applied to
those scores. The stateful part (the smoothing window) lives in
ExerciseClassifier, one instance per exercise activation.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, Mapping, NamedTuple, Optional, Sequence

import numpy as np

from posecoach.cv.geometry import clamp
from posecoach.cv.landmarks import Landmark

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5

# Exceptions a geometric computation may raise on malformed frames
GEOMETRY_ERRORS = (IndexError, ValueError, ArithmeticError, TypeError)


class Side(Enum):
    """Body side used by single-sided exercises."""
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> "Side":
        return Side.RIGHT if self is Side.LEFT else Side.LEFT


@dataclass(frozen=True)
class Probabilities:
    """Up/down probability pair; always sums to 1."""
    up: float
    down: float

    @classmethod
    def neutral(cls) -> "Probabilities":
        return cls(up=0.5, down=0.5)

    @classmethod
    def from_up(cls, up: float) -> "Probabilities":
        up = clamp(up)
        return cls(up=up, down=1.0 - up)

    @classmethod
    def from_down(cls, down: float) -> "Probabilities":
        down = clamp(down)
        return cls(up=1.0 - down, down=down)

    @property
    def confidence(self) -> float:
        """Certainty in [0, 1]: 0 for a 50/50 split, 1 for a certain state."""
        return (max(self.up, self.down) - 0.5) * 2

    def to_dict(self) -> Dict[str, float]:
        return {"up": self.up, "down": self.down}


@dataclass(frozen=True)
class FormMetric:
    """A single form-quality score with optional corrective feedback."""
    score: float
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"score": self.score}
        if self.message is not None:
            data["message"] = self.message
        return data


FormMetrics = Dict[str, FormMetric]


@dataclass(frozen=True)
class MetricRule:
    """Feedback attached to a metric when its score drops below threshold."""
    threshold: float
    message: str


VISIBILITY_METRIC = "overall_visibility"
VISIBILITY_RULE = MetricRule(0.7, "Should ensure the whole body is clearly visible in the camera")


@dataclass(frozen=True)
class ClassifierOptions:
    """Per-activation settings for single-sided exercises."""
    front_leg: Side = Side.LEFT
    supporting_side: Side = Side.LEFT


LandmarkList = Sequence[Landmark]
ProbabilityFn = Callable[[LandmarkList, LandmarkList, ClassifierOptions], Probabilities]
FormScoreFn = Callable[[LandmarkList, LandmarkList, ClassifierOptions, Optional[str]], Dict[str, float]]


class ExerciseStrategy(NamedTuple):
    """Pure functions and feedback table describing one exercise kind."""
    probabilities: ProbabilityFn
    form_scores: FormScoreFn
    rules: Mapping[str, MetricRule]
    duration_based: bool = False


class SmoothingWindow:
    """
    Fixed-capacity FIFO of raw probability samples.

    The smoothed value is the arithmetic mean of the samples currently held.
    """

    def __init__(self, size: int = 5):
        if size < 1:
            raise ValueError("smoothing window size must be at least 1")
        self.size = size
        self._samples: Deque[Probabilities] = deque(maxlen=size)

    def push(self, sample: Probabilities) -> Probabilities:
        self._samples.append(sample)
        return self.mean()

    def mean(self) -> Probabilities:
        if not self._samples:
            return Probabilities.neutral()
        up = sum(s.up for s in self._samples) / len(self._samples)
        down = sum(s.down for s in self._samples) / len(self._samples)
        return Probabilities(up=up, down=down)

    def reset(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)


def mean_visibility(landmarks: LandmarkList, indices: Optional[Iterable[int]] = None) -> float:
    """Mean visibility over all landmarks or the given subset."""
    if indices is None:
        values = [lm.visibility for lm in landmarks]
    else:
        values = [landmarks[i].visibility for i in indices]
    if not values:
        return 0.0
    return float(np.mean(values))


def fallback_scores(names: Iterable[str]) -> Dict[str, float]:
    return {name: NEUTRAL_SCORE for name in names}


def annotate(
    scores: Mapping[str, float],
    rules: Mapping[str, MetricRule],
    **context: str,
) -> FormMetrics:
    """
    Turn raw scores into FormMetrics, attaching messages below each rule's threshold.

    Non-finite scores are replaced by the neutral score.
    """
    metrics: FormMetrics = {}
    for name, score in scores.items():
        if score is None or not math.isfinite(score):
            score = NEUTRAL_SCORE
        rule = rules.get(name)
        message = None
        if rule is not None and score < rule.threshold:
            message = rule.message.format(**context)
        metrics[name] = FormMetric(score=float(score), message=message)
    return metrics

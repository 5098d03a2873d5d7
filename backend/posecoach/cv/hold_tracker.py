"""
Hold timing for duration-based exercises (plank family).

A plank has no up/down cycle. The classifier's UP probability reads as
"holding correct form"; time accumulates between consecutive frames while
it stays above the threshold.
"""

import logging
from typing import Any, Dict, Optional

from posecoach.cv.classifiers.base import FormMetrics, Probabilities
from posecoach.cv.exercises import ExerciseClassifier, ExerciseKind
from posecoach.cv.landmarks import PoseDetectionResult
from posecoach.cv.reps_counter import RepCountingConfig

logger = logging.getLogger(__name__)


class HoldTracker:
    """Accumulates hold time for one duration-based exercise activation."""

    def __init__(self, classifier: ExerciseClassifier, config: Optional[RepCountingConfig] = None):
        if not classifier.is_duration_based:
            raise ValueError(f"{classifier.kind.value} is counted in reps; use RepsCounter instead")
        self._classifier = classifier
        self.config = config or RepCountingConfig.from_settings()
        self._disposed = False
        self.reset()

    @property
    def classifier(self) -> ExerciseClassifier:
        return self._classifier

    @property
    def exercise_kind(self) -> ExerciseKind:
        return self._classifier.kind

    @property
    def held_seconds(self) -> float:
        return self._held_seconds

    @property
    def longest_hold_seconds(self) -> float:
        return max(self._longest_hold, self._current_hold)

    @property
    def is_holding(self) -> bool:
        return self._holding

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def current_metrics(self) -> FormMetrics:
        return dict(self._current_metrics)

    @property
    def last_probabilities(self) -> Optional[Probabilities]:
        return self._last_probabilities

    def process_frame(self, result: PoseDetectionResult) -> Optional[Probabilities]:
        """Classify one frame and update the hold time."""
        if self._disposed:
            logger.debug(f"Ignoring frame for disposed {self.exercise_kind.value} tracker")
            return None
        if not result.has_pose:
            return None

        probabilities = self._classifier.classify(result.world_landmarks, result.image_landmarks)
        self._current_metrics = self._classifier.calculate_form_metrics(
            result.world_landmarks, result.image_landmarks
        )
        self._last_probabilities = probabilities

        if self._holding and self._last_timestamp is not None:
            elapsed = max(0.0, result.timestamp - self._last_timestamp)
            self._held_seconds += elapsed
            self._current_hold += elapsed

        holding = probabilities.up > self.config.probability_threshold
        if holding != self._holding:
            if holding:
                logger.debug(f"{self.exercise_kind.value}: hold started at {result.timestamp:.2f}s")
            else:
                logger.info(f"{self.exercise_kind.value}: hold broken after {self._current_hold:.1f}s")
                self._longest_hold = max(self._longest_hold, self._current_hold)
                self._current_hold = 0.0
        self._holding = holding
        self._last_timestamp = result.timestamp
        return probabilities

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "exercise": self.exercise_kind.value,
            "held_seconds": self._held_seconds,
            "longest_hold_seconds": self.longest_hold_seconds,
            "is_holding": self._holding,
            "form_metrics": {name: metric.to_dict() for name, metric in self._current_metrics.items()},
        }

    def reset(self) -> None:
        self._classifier.reset()
        self._holding = False
        self._held_seconds = 0.0
        self._current_hold = 0.0
        self._longest_hold = 0.0
        self._last_timestamp: Optional[float] = None
        self._last_probabilities: Optional[Probabilities] = None
        self._current_metrics: FormMetrics = {}

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._classifier.reset()
        logger.debug(f"Disposed {self.exercise_kind.value} tracker after {self._held_seconds:.1f}s")

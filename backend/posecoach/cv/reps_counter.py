"""
Repetition counting state machine with form quality assessment.

STATE MACHINE:
The counter tracks the last CONFIRMED body position (UP or DOWN, starting
at UP). Each frame's smoothed probabilities produce a target state:
- UP / DOWN when that probability exceeds the threshold
- TRANSITIONING otherwise (never confirmed, only interrupts a streak)

A target must hold for `state_stability_frames` consecutive frames before
it is confirmed, and no state change is accepted within `min_rep_interval_ms`
of the previous rep. A confirmed DOWN -> UP change completes a repetition.

FORM SCORING:
Form metrics are sampled on every frame of a repetition. When it completes,
each metric is averaged, the form score is the mean of those averages on a
0-10 scale, and the quality rating is dominated by the worst metric.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from posecoach.config import Settings, get_settings
from posecoach.cv.classifiers.base import FormMetrics, Probabilities
from posecoach.cv.exercises import ExerciseClassifier, ExerciseKind
from posecoach.cv.landmarks import PoseDetectionResult

logger = logging.getLogger(__name__)

# Share of the quality rating driven by the worst metric
WORST_METRIC_WEIGHT = 0.7


@dataclass
class RepCountingConfig:
    """Rep counting parameters."""
    probability_threshold: float = 0.6
    state_stability_frames: int = 2
    min_rep_interval_ms: int = 800
    max_history_size: int = 100
    max_rep_samples: int = 900  # ~30s of frames at 30fps

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RepCountingConfig":
        settings = settings or get_settings()
        return cls(
            probability_threshold=settings.probability_threshold,
            state_stability_frames=settings.state_stability_frames,
            min_rep_interval_ms=settings.min_rep_interval_ms,
            max_history_size=settings.max_history_size,
        )


class ExerciseState(Enum):
    """Body position within a repetition."""
    UP = "up"
    DOWN = "down"
    TRANSITIONING = "transitioning"


class RepQuality(Enum):
    """Quality rating of a repetition."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @property
    def points(self) -> int:
        return {"excellent": 4, "good": 3, "fair": 2, "poor": 1}[self.value]

    @classmethod
    def from_score(cls, score: float) -> "RepQuality":
        """Rate a combined 0-1 score."""
        if score >= 0.9:
            return cls.EXCELLENT
        if score >= 0.75:
            return cls.GOOD
        if score >= 0.6:
            return cls.FAIR
        return cls.POOR

    @classmethod
    def from_points(cls, average: float) -> "RepQuality":
        """Rate an average of quality points."""
        if average >= 3.5:
            return cls.EXCELLENT
        if average >= 2.5:
            return cls.GOOD
        if average >= 1.5:
            return cls.FAIR
        return cls.POOR


@dataclass(frozen=True)
class RepetitionData:
    """A completed repetition. Immutable once created."""
    rep_number: int
    timestamp: float  # Completion time, seconds
    duration: float  # Seconds since the previous rep (or exercise start)
    quality: RepQuality
    confidence: float
    form_score: float  # 0-10
    form_metrics: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only copy so the caller's dict cannot change a finished rep
        object.__setattr__(self, "form_metrics", MappingProxyType(dict(self.form_metrics)))

    @property
    def feedback_messages(self) -> Dict[str, str]:
        return {
            name: metric.message
            for name, metric in self.form_metrics.items()
            if metric.message is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rep_number": self.rep_number,
            "timestamp": self.timestamp,
            "duration": self.duration,
            "quality": self.quality.value,
            "confidence": self.confidence,
            "form_score": self.form_score,
            "form_metrics": {name: metric.to_dict() for name, metric in self.form_metrics.items()},
        }


@dataclass(frozen=True)
class RepCountingState:
    """Snapshot of the counter after a frame."""
    total_reps: int
    current_state: ExerciseState
    confidence: float
    average_form_score: float
    average_quality: RepQuality
    last_rep: Optional[RepetitionData] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_reps": self.total_reps,
            "current_state": self.current_state.value,
            "confidence": self.confidence,
            "average_form_score": self.average_form_score,
            "average_quality": self.average_quality.value,
            "last_rep": self.last_rep.to_dict() if self.last_rep else None,
        }


def aggregate_metric_scores(samples: Sequence[Mapping[str, float]]) -> Dict[str, float]:
    """Average each metric over the samples, keeping first-seen metric order."""
    collected: Dict[str, List[float]] = {}
    for sample in samples:
        for name, score in sample.items():
            collected.setdefault(name, []).append(score)
    return {name: float(np.mean(values)) for name, values in collected.items()}


def score_repetition(scores: Mapping[str, float]) -> Tuple[float, RepQuality]:
    """
    Rate a repetition from its averaged metric scores.

    Returns:
        Tuple of (form score on a 0-10 scale, quality rating)
    """
    if not scores:
        return 5.0, RepQuality.FAIR
    values = list(scores.values())
    average = float(np.mean(values))
    worst = min(values)
    combined = worst * WORST_METRIC_WEIGHT + average * (1.0 - WORST_METRIC_WEIGHT)
    return average * 10.0, RepQuality.from_score(combined)


def _metric_scores(metrics: FormMetrics) -> Dict[str, float]:
    return {name: metric.score for name, metric in metrics.items()}


RepListener = Callable[[RepetitionData], None]
StateListener = Callable[[RepCountingState], None]


class RepsCounter:
    """
    Repetition counter for one exercise activation.

    Owns its classifier exclusively. Frames must be delivered from a single
    logical sequence; the counter does no locking.
    """

    def __init__(self, classifier: ExerciseClassifier, config: Optional[RepCountingConfig] = None):
        if classifier.is_duration_based:
            raise ValueError(f"{classifier.kind.value} is duration based; use HoldTracker instead")
        self._classifier = classifier
        self.config = config or RepCountingConfig.from_settings()
        self._rep_listeners: List[RepListener] = []
        self._state_listeners: List[StateListener] = []
        self._disposed = False
        self._reset_state()

    def _reset_state(self) -> None:
        self._current_state = ExerciseState.UP
        self._target_state: Optional[ExerciseState] = None
        self._stable_frame_count = 0
        self._total_reps = 0
        self._exercise_start_time: Optional[float] = None
        self._last_rep_time: Optional[float] = None
        self._last_probabilities: Optional[Probabilities] = None

        # Current frame data
        self._current_confidence = 0.0
        self._current_metrics: FormMetrics = {}

        # Metric samples for the repetition in progress
        self._rep_samples: Deque[Dict[str, float]] = deque(maxlen=self.config.max_rep_samples)

        # Quality tracking at confirmed endpoint positions only
        self._endpoint_confidence: Deque[float] = deque(maxlen=self.config.max_history_size)
        self._endpoint_metrics: Deque[Dict[str, float]] = deque(maxlen=self.config.max_history_size)

        self._repetitions: List[RepetitionData] = []

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def classifier(self) -> ExerciseClassifier:
        return self._classifier

    @property
    def exercise_kind(self) -> ExerciseKind:
        return self._classifier.kind

    @property
    def total_reps(self) -> int:
        return self._total_reps

    @property
    def state(self) -> ExerciseState:
        """Last confirmed position."""
        return self._current_state

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def repetitions(self) -> List[RepetitionData]:
        return list(self._repetitions)

    @property
    def last_probabilities(self) -> Optional[Probabilities]:
        return self._last_probabilities

    @property
    def current_metrics(self) -> FormMetrics:
        return dict(self._current_metrics)

    @property
    def counting_state(self) -> RepCountingState:
        return RepCountingState(
            total_reps=self._total_reps,
            current_state=self._current_state,
            confidence=self._average_confidence(),
            average_form_score=self._average_form_score(),
            average_quality=self._average_quality(),
            last_rep=self._repetitions[-1] if self._repetitions else None,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_rep_listener(self, listener: RepListener) -> None:
        self._rep_listeners.append(listener)

    def remove_rep_listener(self, listener: RepListener) -> None:
        if listener in self._rep_listeners:
            self._rep_listeners.remove(listener)

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def process_frame(self, result: PoseDetectionResult) -> Optional[RepetitionData]:
        """
        Process one pose detection frame.

        Low-visibility frames are still classified (they yield neutral samples);
        only frames without any detected person are skipped.

        Returns:
            The completed repetition, if this frame completed one
        """
        if self._disposed:
            logger.debug(f"Ignoring frame for disposed {self.exercise_kind.value} counter")
            return None
        if not result.has_pose:
            return None

        if self._exercise_start_time is None:
            self._exercise_start_time = result.timestamp

        probabilities = self._classifier.classify(result.world_landmarks, result.image_landmarks)
        metrics = self._classifier.calculate_form_metrics(
            result.world_landmarks,
            result.image_landmarks,
            position=self._current_state.value,
        )

        self._last_probabilities = probabilities
        self._current_confidence = probabilities.confidence
        self._current_metrics = metrics
        self._rep_samples.append(_metric_scores(metrics))

        rep = self._update_state(self._target_for(probabilities), result.timestamp)

        state = self.counting_state
        for listener in list(self._state_listeners):
            listener(state)
        return rep

    def _target_for(self, probabilities: Probabilities) -> ExerciseState:
        if probabilities.up > self.config.probability_threshold:
            return ExerciseState.UP
        if probabilities.down > self.config.probability_threshold:
            return ExerciseState.DOWN
        return ExerciseState.TRANSITIONING

    def _update_state(self, target: ExerciseState, timestamp: float) -> Optional[RepetitionData]:
        if target != self._target_state:
            self._target_state = target
            self._stable_frame_count = 1
        else:
            self._stable_frame_count += 1

        if target == ExerciseState.TRANSITIONING or target == self._current_state:
            return None
        if self._stable_frame_count < self.config.state_stability_frames:
            return None

        if self._last_rep_time is not None:
            elapsed_ms = (timestamp - self._last_rep_time) * 1000.0
            if elapsed_ms < self.config.min_rep_interval_ms:
                return None

        previous = self._current_state
        self._current_state = target
        self._target_state = None
        self._stable_frame_count = 0
        self._record_endpoint()

        logger.debug(f"{self.exercise_kind.value}: {previous.value} -> {target.value}")

        if previous == ExerciseState.DOWN and target == ExerciseState.UP:
            return self._complete_repetition(timestamp)
        return None

    def _record_endpoint(self) -> None:
        self._endpoint_confidence.append(self._current_confidence)
        self._endpoint_metrics.append(_metric_scores(self._current_metrics))

    def _complete_repetition(self, timestamp: float) -> RepetitionData:
        self._total_reps += 1

        started = self._last_rep_time if self._last_rep_time is not None else self._exercise_start_time
        duration = max(0.0, timestamp - started) if started is not None else 0.0

        scores = aggregate_metric_scores(self._rep_samples)
        form_score, quality = score_repetition(scores)

        rep = RepetitionData(
            rep_number=self._total_reps,
            timestamp=timestamp,
            duration=duration,
            quality=quality,
            confidence=self._current_confidence,
            form_score=form_score,
            form_metrics=self._classifier.annotate(scores),
        )

        self._repetitions.append(rep)
        self._last_rep_time = timestamp
        self._rep_samples.clear()

        logger.info(
            f"{self.exercise_kind.value} rep {rep.rep_number}: form {form_score:.1f}/10 "
            f"({quality.value}), {duration:.2f}s"
        )

        for listener in list(self._rep_listeners):
            listener(rep)
        return rep

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _average_confidence(self) -> float:
        if not self._endpoint_confidence:
            return 0.0
        return float(np.mean(self._endpoint_confidence))

    def _average_form_score(self) -> float:
        """Mean form score (0-10) over confirmed endpoint positions."""
        if not self._endpoint_metrics:
            return 0.0
        return float(np.mean([score_repetition(m)[0] for m in self._endpoint_metrics]))

    def _average_quality(self) -> RepQuality:
        if not self._repetitions:
            return RepQuality.FAIR
        return RepQuality.from_points(float(np.mean([r.quality.points for r in self._repetitions])))

    def get_statistics(self) -> Dict[str, Any]:
        """Get detailed statistics for the current activation."""
        distribution = {quality.value: 0 for quality in RepQuality}
        for rep in self._repetitions:
            distribution[rep.quality.value] += 1

        best = max(self._repetitions, key=lambda r: r.form_score, default=None)
        worst = min(self._repetitions, key=lambda r: r.form_score, default=None)
        average_duration = float(np.mean([r.duration for r in self._repetitions])) if self._repetitions else 0.0

        return {
            "exercise": self.exercise_kind.value,
            "total_reps": self._total_reps,
            "average_form_score": self._average_form_score(),
            "average_quality": self._average_quality().value,
            "average_confidence": self._average_confidence(),
            "quality_distribution": distribution,
            "average_rep_duration": average_duration,
            "best_rep": best.to_dict() if best else None,
            "worst_rep": worst.to_dict() if worst else None,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Return to the initial state with a fresh smoothing window."""
        self._classifier.reset()
        self._reset_state()

    def dispose(self) -> None:
        """Stop accepting frames and release per-activation state."""
        if self._disposed:
            return
        self._disposed = True
        self._classifier.reset()
        self._rep_samples.clear()
        self._rep_listeners.clear()
        self._state_listeners.clear()
        logger.debug(f"Disposed {self.exercise_kind.value} counter after {self._total_reps} reps")

"""
Pose classification and repetition counting.

PIPELINE COMPONENTS:
1. PoseDetectionResult: One frame of world + image landmarks from the pose detector
2. ExerciseClassifier: Per-exercise up/down probabilities and form metrics, smoothed over 5 frames
3. RepsCounter: Debounced up/down state machine, one rep per confirmed DOWN -> UP
4. HoldTracker: Hold timing for duration-based exercises (plank family)

FORM METRICS:
Every classifier scores 2-5 exercise-specific metrics in [0, 1] plus
overall_visibility. A metric below its threshold carries a corrective message.

Usage:
    from posecoach.cv import RepsCounter, classifier_for_exercise

    classifier = classifier_for_exercise("Sumo Squats")
    counter = RepsCounter(classifier)
    for frame in frames:
        rep = counter.process_frame(frame)
        if rep:
            print(f"Rep {rep.rep_number}: {rep.quality.value}")
"""

from posecoach.cv.landmarks import Landmark, PoseLandmark, PoseDetectionResult, NUM_LANDMARKS
from posecoach.cv.classifiers import ClassifierOptions, FormMetric, FormMetrics, Probabilities, Side
from posecoach.cv.exercises import (
    ExerciseClassifier,
    ExerciseKind,
    classifier_for_exercise,
    classify_exercise_name,
    create_classifier,
)
from posecoach.cv.reps_counter import (
    ExerciseState,
    RepCountingConfig,
    RepCountingState,
    RepQuality,
    RepetitionData,
    RepsCounter,
)
from posecoach.cv.hold_tracker import HoldTracker

__all__ = [
    "Landmark",
    "PoseLandmark",
    "PoseDetectionResult",
    "NUM_LANDMARKS",
    "ClassifierOptions",
    "FormMetric",
    "FormMetrics",
    "Probabilities",
    "Side",
    "ExerciseClassifier",
    "ExerciseKind",
    "classifier_for_exercise",
    "classify_exercise_name",
    "create_classifier",
    "ExerciseState",
    "RepCountingConfig",
    "RepCountingState",
    "RepQuality",
    "RepetitionData",
    "RepsCounter",
    "HoldTracker",
]

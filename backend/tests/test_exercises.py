"""Tests for exercise name dispatch."""

import pytest

from posecoach.cv.classifiers.base import Side
from posecoach.cv.exercises import (
    STRATEGIES,
    ExerciseKind,
    classifier_for_exercise,
    classify_exercise_name,
    options_for_name,
)


class TestClassifyExerciseName:
    @pytest.mark.parametrize("name, kind", [
        ("Push-Ups", ExerciseKind.PUSH_UP),
        ("Knee Push Ups", ExerciseKind.KNEE_PUSH_UP),
        ("wall push-up", ExerciseKind.WALL_PUSH_UP),
        ("Incline Pushups", ExerciseKind.INCLINE_PUSH_UP),
        ("Decline push up", ExerciseKind.DECLINE_PUSH_UP),
        ("Diamond Push-Ups", ExerciseKind.DIAMOND_PUSH_UP),
        ("Close-grip push ups", ExerciseKind.DIAMOND_PUSH_UP),
        ("Wide Push-Ups", ExerciseKind.WIDE_PUSH_UP),
        ("Bodyweight Squats", ExerciseKind.SQUAT),
        ("Sumo Squat", ExerciseKind.SUMO_SQUAT),
        ("Bulgarian split squat", ExerciseKind.SPLIT_SQUAT),
        ("Crunches", ExerciseKind.CRUNCH),
        ("Reverse Crunch", ExerciseKind.REVERSE_CRUNCH),
        ("Double crunches", ExerciseKind.DOUBLE_CRUNCH),
        ("Forearm Plank", ExerciseKind.PLANK),
        ("Side Plank (right)", ExerciseKind.SIDE_PLANK),
        ("Superman Hold", ExerciseKind.SUPERMAN),
    ])
    def test_known_names(self, name, kind):
        assert classify_exercise_name(name) == kind

    @pytest.mark.parametrize("name", ["Jumping Jacks", "Burpees", "", "Push press"])
    def test_unknown_names(self, name):
        assert classify_exercise_name(name) is None

    def test_unknown_name_has_no_classifier(self):
        assert classifier_for_exercise("Mountain climbers") is None


class TestExerciseKind:
    def test_every_kind_has_a_strategy(self):
        assert set(STRATEGIES) == set(ExerciseKind)

    def test_feedback_prefix(self):
        assert ExerciseKind.DIAMOND_PUSH_UP.feedback_prefix == "pushup"
        assert ExerciseKind.SUMO_SQUAT.feedback_prefix == "sumo_squat"

    def test_duration_based_kinds(self):
        duration = {kind for kind in ExerciseKind if kind.is_duration_based}
        assert duration == {ExerciseKind.PLANK, ExerciseKind.SIDE_PLANK}


class TestClassifierFactory:
    def test_side_from_name(self):
        assert options_for_name("Side plank right").supporting_side is Side.RIGHT
        assert options_for_name("Side plank").supporting_side is Side.LEFT

    def test_classifier_gets_settings(self):
        classifier = classifier_for_exercise("Split Squat (right leg forward)", smoothing_window=3)
        assert classifier.kind is ExerciseKind.SPLIT_SQUAT
        assert classifier.smoothing_window == 3
        assert classifier.options.front_leg is Side.RIGHT

    def test_classifiers_do_not_share_windows(self):
        first = classifier_for_exercise("Squats")
        second = classifier_for_exercise("Squats")
        assert first._window is not second._window

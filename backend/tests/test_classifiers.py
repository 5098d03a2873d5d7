"""Tests for the per-exercise classifiers and form metrics."""

import math

import pytest

from posecoach.cv.classifiers.base import (
    VISIBILITY_METRIC,
    ClassifierOptions,
    MetricRule,
    Probabilities,
    Side,
    SmoothingWindow,
    annotate,
)
from posecoach.cv.classifiers.pushup import PUSH_UP_PARAMS, PushUpVariant, elbow_angle_probability
from posecoach.cv.classifiers.superman import back_extension_angle, superman_probabilities
from posecoach.cv.exercises import ExerciseClassifier, ExerciseKind, classifier_for_exercise
from posecoach.cv.landmarks import Landmark
from posecoach.cv.landmarks import PoseLandmark as L

from tests.poses import (
    CRUNCHED_NOSE,
    STRAIGHT_LEGS,
    TUCKED_KNEES,
    crunch_world,
    make_landmarks,
    plank_frame,
    pushup_frame,
    split_stance_frame,
    sumo_squat_frame,
)


# ---------------------------------------------------------------------------
# Probabilities and smoothing
# ---------------------------------------------------------------------------

class TestProbabilities:
    def test_from_up_clamps_and_sums_to_one(self):
        p = Probabilities.from_up(1.4)
        assert p.up == 1.0 and p.down == 0.0

    def test_confidence(self):
        assert Probabilities.neutral().confidence == 0.0
        assert Probabilities.from_down(1.0).confidence == 1.0
        assert Probabilities.from_up(0.8).confidence == pytest.approx(0.6)

    def test_window_mean(self):
        window = SmoothingWindow(2)
        window.push(Probabilities.from_up(1.0))
        smoothed = window.push(Probabilities.from_up(0.0))
        assert smoothed.up == pytest.approx(0.5)
        smoothed = window.push(Probabilities.from_up(0.0))
        assert smoothed.up == pytest.approx(0.0)
        assert len(window) == 2

    def test_window_rejects_zero_size(self):
        with pytest.raises(ValueError):
            SmoothingWindow(0)

    @pytest.mark.parametrize("kind", list(ExerciseKind))
    def test_smoothed_output_sums_to_one(self, kind):
        classifier = ExerciseClassifier(kind)
        for angle in (170.0, 140.0, 110.0, 125.0, 165.0, 150.0):
            frame = pushup_frame(angle, 0.0)
            p = classifier.classify(frame.world_landmarks, frame.image_landmarks)
            assert 0.0 <= p.up <= 1.0
            assert p.up + p.down == pytest.approx(1.0)

    @pytest.mark.parametrize("kind", list(ExerciseKind))
    def test_low_visibility_is_neutral(self, kind):
        classifier = ExerciseClassifier(kind)
        frame = pushup_frame(110.0, 0.0, visibility=0.3)
        for _ in range(10):
            p = classifier.classify(frame.world_landmarks, frame.image_landmarks)
        assert p.up == pytest.approx(0.5)
        assert p.down == pytest.approx(0.5)

    @pytest.mark.parametrize("kind", list(ExerciseKind))
    def test_malformed_frame_never_raises(self, kind):
        classifier = ExerciseClassifier(kind)
        short = [Landmark(0.1, 0.2) for _ in range(5)]
        assert classifier.classify(short, short) == Probabilities.neutral()

        metrics = classifier.calculate_form_metrics(short, short)
        assert VISIBILITY_METRIC in metrics
        for name, metric in metrics.items():
            if name != VISIBILITY_METRIC:
                assert metric.score == 0.5

    def test_reset_clears_window(self):
        classifier = ExerciseClassifier(ExerciseKind.PUSH_UP)
        down = pushup_frame(100.0, 0.0)
        for _ in range(5):
            classifier.classify(down.world_landmarks, down.image_landmarks)
        classifier.reset()
        up = pushup_frame(170.0, 0.0)
        assert classifier.classify(up.world_landmarks, up.image_landmarks).up == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Push-up
# ---------------------------------------------------------------------------

class TestPushUp:
    def test_elbow_band_is_squared(self):
        params = PUSH_UP_PARAMS[PushUpVariant.STANDARD]
        assert elbow_angle_probability(160.0, params) == 1.0
        assert elbow_angle_probability(120.0, params) == 0.0
        assert elbow_angle_probability(135.0, params) == pytest.approx(0.25)

    def test_extended_arms_are_up(self):
        classifier = ExerciseClassifier(ExerciseKind.PUSH_UP)
        frame = pushup_frame(170.0, 0.0)
        assert classifier.classify(frame.world_landmarks, frame.image_landmarks).up == pytest.approx(1.0)

    def test_bent_arms_are_down(self):
        classifier = ExerciseClassifier(ExerciseKind.PUSH_UP)
        frame = pushup_frame(100.0, 0.0)
        p = classifier.classify(frame.world_landmarks, frame.image_landmarks)
        assert p.down == pytest.approx(0.9)

    def test_wall_band_differs_from_standard(self):
        frame = pushup_frame(138.0, 0.0)
        standard = ExerciseClassifier(ExerciseKind.PUSH_UP).classify(frame.world_landmarks, frame.image_landmarks)
        wall = ExerciseClassifier(ExerciseKind.WALL_PUSH_UP).classify(frame.world_landmarks, frame.image_landmarks)
        assert wall.up > standard.up

    def test_form_metric_names(self):
        frame = pushup_frame(150.0, 0.0)
        metrics = ExerciseClassifier(ExerciseKind.PUSH_UP).calculate_form_metrics(
            frame.world_landmarks, frame.image_landmarks
        )
        assert list(metrics) == ["body_alignment", "hand_width", "wrist_positioning", VISIBILITY_METRIC]
        for metric in metrics.values():
            assert 0.0 <= metric.score <= 1.0


# ---------------------------------------------------------------------------
# Squat family
# ---------------------------------------------------------------------------

class TestSumoSquat:
    def test_wide_stance_has_no_message(self):
        frame = sumo_squat_frame(95.0)
        metrics = ExerciseClassifier(ExerciseKind.SUMO_SQUAT).calculate_form_metrics(
            frame.world_landmarks, frame.image_landmarks
        )
        assert metrics["sumo_stance_width"].score >= 0.95
        assert metrics["sumo_stance_width"].message is None
        assert metrics["knee_tracking"].score == pytest.approx(1.0)

    def test_narrow_stance_gets_message(self):
        frame = sumo_squat_frame(95.0, stance_ratio=0.6)
        metrics = ExerciseClassifier(ExerciseKind.SUMO_SQUAT).calculate_form_metrics(
            frame.world_landmarks, frame.image_landmarks
        )
        assert metrics["sumo_stance_width"].score < 0.7
        assert "wider" in metrics["sumo_stance_width"].message

    def test_deep_knee_bend_is_down(self):
        frame = sumo_squat_frame(95.0)
        p = ExerciseClassifier(ExerciseKind.SUMO_SQUAT).classify(frame.world_landmarks, frame.image_landmarks)
        assert p.down > 0.9

    def test_depth_skipped_when_standing(self):
        frame = sumo_squat_frame(170.0)
        classifier = ExerciseClassifier(ExerciseKind.SUMO_SQUAT)
        assert "squat_depth" not in classifier.calculate_form_metrics(
            frame.world_landmarks, frame.image_landmarks, position="up"
        )
        assert "squat_depth" in classifier.calculate_form_metrics(
            frame.world_landmarks, frame.image_landmarks, position="down"
        )


class TestSquatVariants:
    def _classify(self, name):
        frame = split_stance_frame()
        return classifier_for_exercise(name).classify(frame.world_landmarks, frame.image_landmarks)

    def test_split_squat_follows_front_leg(self):
        # Left leg bent at the bottom, right leg straight
        assert self._classify("Split Squat").down > 0.9
        assert self._classify("Split Squat (right leg forward)").up > 0.9

    @pytest.mark.parametrize("name", ["Squats", "Goblet Squat", "Jump squats"])
    def test_standard_variants_read_the_camera_side(self, name):
        classifier = classifier_for_exercise(name)
        assert classifier.kind is ExerciseKind.SQUAT
        frame = split_stance_frame()
        assert classifier.classify(frame.world_landmarks, frame.image_landmarks).down > 0.9

    def test_split_squat_metrics_use_front_leg(self):
        frame = split_stance_frame()
        left = classifier_for_exercise("Split Squat").calculate_form_metrics(
            frame.world_landmarks, frame.image_landmarks
        )
        assert list(left) == ["front_knee_tracking", "stance_length", VISIBILITY_METRIC]
        # Left knee sits straight above its ankle
        assert left["front_knee_tracking"].score == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Crunch family
# ---------------------------------------------------------------------------

class TestCrunch:
    def _classify(self, kind, world):
        return ExerciseClassifier(kind).classify(world, world)

    def test_flat_is_down_and_crunched_is_up(self):
        assert self._classify(ExerciseKind.CRUNCH, crunch_world()).down > 0.99
        assert self._classify(ExerciseKind.CRUNCH, crunch_world(nose=CRUNCHED_NOSE)).up > 0.99

    @pytest.mark.parametrize("kind", [ExerciseKind.CRUNCH, ExerciseKind.REVERSE_CRUNCH, ExerciseKind.DOUBLE_CRUNCH])
    def test_straight_legs_are_neutral(self, kind):
        world = crunch_world(nose=CRUNCHED_NOSE, legs=STRAIGHT_LEGS)
        assert self._classify(kind, world) == Probabilities.neutral()

    def test_reverse_crunch_reads_hip_flexion(self):
        tucked = crunch_world(legs=TUCKED_KNEES)
        assert self._classify(ExerciseKind.REVERSE_CRUNCH, crunch_world()).down > 0.99
        assert self._classify(ExerciseKind.REVERSE_CRUNCH, tucked).up > 0.99
        # Torso still flat, so a standard crunch stays down
        assert self._classify(ExerciseKind.CRUNCH, tucked).down > 0.99

    def test_double_crunch_averages_both_signals(self):
        half = self._classify(ExerciseKind.DOUBLE_CRUNCH, crunch_world(legs=TUCKED_KNEES))
        assert half.up == pytest.approx(0.5, abs=0.01)
        full = self._classify(ExerciseKind.DOUBLE_CRUNCH, crunch_world(nose=CRUNCHED_NOSE, legs=TUCKED_KNEES))
        assert full.up > 0.99

    def test_names_pick_the_variant(self):
        assert classifier_for_exercise("Reverse Crunches").kind is ExerciseKind.REVERSE_CRUNCH
        assert classifier_for_exercise("Crunches").kind is ExerciseKind.CRUNCH


# ---------------------------------------------------------------------------
# Plank family
# ---------------------------------------------------------------------------

class TestPlank:
    def _side_plank_world(self):
        return make_landmarks({
            L.LEFT_SHOULDER: (0.0, 0.0, 0.0),
            L.RIGHT_SHOULDER: (0.0, -0.05, 0.0),
            L.LEFT_ELBOW: (0.0, 0.3, 0.0),
            L.RIGHT_ELBOW: (0.1, -0.1, 0.0),
            L.LEFT_WRIST: (0.0, 0.6, 0.0),
            L.LEFT_HIP: (0.6, 0.1, 0.0),
            L.RIGHT_HIP: (0.6, 0.1, 0.0),
            L.LEFT_ANKLE: (1.4, 0.3, 0.0),
            L.RIGHT_ANKLE: (1.4, 0.3, 0.0),
        })

    def test_plank_is_duration_based(self):
        assert ExerciseClassifier(ExerciseKind.PLANK).is_duration_based
        assert ExerciseClassifier(ExerciseKind.SIDE_PLANK).is_duration_based
        assert not ExerciseClassifier(ExerciseKind.PUSH_UP).is_duration_based

    def test_straight_plank_is_up(self):
        frame = plank_frame(0.0)
        p = ExerciseClassifier(ExerciseKind.PLANK).classify(frame.world_landmarks, frame.image_landmarks)
        assert p.up > 0.6
        assert p.up == pytest.approx(1.0)

    def test_sagging_hips_are_not_a_hold(self):
        frame = plank_frame(0.0, hip_drop=0.2)
        p = ExerciseClassifier(ExerciseKind.PLANK).classify(frame.world_landmarks, frame.image_landmarks)
        assert p.up < 0.6

    def test_supporting_side_in_message(self):
        world = self._side_plank_world()
        options = ClassifierOptions(supporting_side=Side.RIGHT)
        metrics = ExerciseClassifier(ExerciseKind.SIDE_PLANK, options=options).calculate_form_metrics(world, world)
        assert metrics["supporting_arm_stability"].score < 0.7
        assert "right supporting arm" in metrics["supporting_arm_stability"].message
        assert list(metrics)[-1] == VISIBILITY_METRIC


# ---------------------------------------------------------------------------
# Superman
# ---------------------------------------------------------------------------

class TestSuperman:
    def _world(self, shoulder_y, ankle):
        return make_landmarks({
            L.NOSE: (-0.2, shoulder_y, 0.0),
            L.LEFT_SHOULDER: (0.0, shoulder_y, 0.0),
            L.RIGHT_SHOULDER: (0.0, shoulder_y, 0.0),
            L.LEFT_HIP: (0.5, 0.5, 0.0),
            L.RIGHT_HIP: (0.5, 0.5, 0.0),
            L.LEFT_ANKLE: ankle,
            L.RIGHT_ANKLE: ankle,
        })

    def test_flat_is_down(self):
        world = self._world(0.5, (1.3, 0.5, 0.0))
        p = superman_probabilities(world, world, ClassifierOptions())
        assert p.down > 0.9

    def test_lifted_is_up(self):
        world = self._world(0.4, (1.2, 0.3, 0.0))
        p = superman_probabilities(world, world, ClassifierOptions())
        assert p.up > 0.9

    def test_back_extension_goes_past_straight(self):
        shoulder = Landmark(0.0, 0.4)
        hip = Landmark(0.5, 0.5)
        ankle = Landmark(1.2, 0.3)
        assert back_extension_angle(shoulder, hip, ankle) > 180.0

    def test_low_nose_visibility_is_neutral(self):
        world = make_landmarks(overrides={L.NOSE: 0.4})
        assert superman_probabilities(world, world, ClassifierOptions()) == Probabilities.neutral()


# ---------------------------------------------------------------------------
# annotate
# ---------------------------------------------------------------------------

class TestAnnotate:
    def test_message_below_threshold_only(self):
        rules = {"depth": MetricRule(0.7, "Go deeper")}
        metrics = annotate({"depth": 0.5, "other": 0.1}, rules)
        assert metrics["depth"].message == "Go deeper"
        assert metrics["other"].message is None
        assert annotate({"depth": 0.7}, rules)["depth"].message is None

    def test_non_finite_becomes_neutral(self):
        metrics = annotate({"depth": math.nan}, {})
        assert metrics["depth"].score == 0.5

    def test_context_fills_placeholders(self):
        rules = {"arm": MetricRule(0.7, "Keep the {side} arm strong")}
        assert annotate({"arm": 0.1}, rules, side="left")["arm"].message == "Keep the left arm strong"

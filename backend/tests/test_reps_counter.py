"""Tests for the repetition state machine and hold tracker."""

import pytest

from posecoach.config import Settings
from posecoach.cv.classifiers.base import FormMetric
from posecoach.cv.exercises import ExerciseClassifier, ExerciseKind
from posecoach.cv.hold_tracker import HoldTracker
from posecoach.cv.reps_counter import (
    ExerciseState,
    RepCountingConfig,
    RepetitionData,
    RepQuality,
    RepsCounter,
    aggregate_metric_scores,
    score_repetition,
)

from tests.poses import (
    FRAME_INTERVAL,
    empty_frame,
    low_visibility_frame,
    plank_frame,
    pushup_frame,
    pushup_frames,
    pushup_rep_angles,
)


def _counter(**config) -> RepsCounter:
    return RepsCounter(ExerciseClassifier(ExerciseKind.PUSH_UP), RepCountingConfig(**config))


def _run(counter, frames):
    return [rep for rep in (counter.process_frame(f) for f in frames) if rep is not None]


# ---------------------------------------------------------------------------
# Counting
# ---------------------------------------------------------------------------

class TestRepCounting:
    def test_single_pushup_counts_once(self):
        counter = _counter()
        reps = _run(counter, pushup_frames(pushup_rep_angles()))

        assert len(reps) == 1
        assert counter.total_reps == 1
        assert reps[0].rep_number == 1
        assert counter.state == ExerciseState.UP

    def test_rep_completes_on_the_way_up(self):
        counter = _counter()
        completed_at = [
            i for i, frame in enumerate(pushup_frames(pushup_rep_angles()))
            if counter.process_frame(frame) is not None
        ]
        assert completed_at == [18]

    def test_occluded_wrists_do_not_block_the_rep(self):
        counter = _counter()
        reps = _run(counter, pushup_frames(pushup_rep_angles(), occluded=range(8, 13)))
        assert len(reps) == 1

    def test_neutral_frames_never_count(self):
        counter = _counter()
        reps = _run(counter, [low_visibility_frame(i * FRAME_INTERVAL) for i in range(500)])
        assert reps == []
        assert counter.state == ExerciseState.UP

    def test_frames_without_pose_are_skipped(self):
        counter = _counter()
        assert counter.process_frame(empty_frame(0.0)) is None
        assert counter.last_probabilities is None

    def test_numbering_and_durations(self):
        counter = _counter()
        angles = pushup_rep_angles() * 3
        reps = _run(counter, pushup_frames(angles, interval=0.1, start=2.0))

        assert [r.rep_number for r in reps] == [1, 2, 3]
        assert all(r.duration >= 0.0 for r in reps)
        # First rep is timed from the first frame, later ones from the previous rep
        assert reps[0].duration == pytest.approx(1.8)
        assert reps[1].duration == pytest.approx(2.0)

    def test_min_interval_blocks_fast_reps(self):
        counter = _counter()
        reps = _run(counter, pushup_frames(pushup_rep_angles() * 2, interval=0.01))
        assert len(reps) == 1

    def test_stability_frames_required(self):
        counter = _counter(state_stability_frames=50)
        assert _run(counter, pushup_frames(pushup_rep_angles())) == []


# ---------------------------------------------------------------------------
# Form scoring
# ---------------------------------------------------------------------------

class TestFormScoring:
    def test_aggregate_means_per_metric(self):
        scores = aggregate_metric_scores([{"a": 1.0, "b": 0.2}, {"a": 0.5}])
        assert scores == {"a": pytest.approx(0.75), "b": pytest.approx(0.2)}

    def test_worst_metric_dominates_quality(self):
        form_score, quality = score_repetition({"a": 1.0, "b": 1.0, "c": 0.3})
        assert form_score == pytest.approx(7.666, abs=0.01)
        assert quality is RepQuality.POOR

    def test_excellent(self):
        form_score, quality = score_repetition({"a": 0.95, "b": 1.0})
        assert form_score > 9.0
        assert quality is RepQuality.EXCELLENT

    def test_rep_carries_messages(self):
        counter = _counter()
        rep = _run(counter, pushup_frames(pushup_rep_angles()))[0]
        assert 0.0 <= rep.form_score <= 10.0
        assert isinstance(rep.quality, RepQuality)
        # Synthetic frames stack hips on ankles, so the body line is flagged
        assert rep.form_metrics["body_alignment"].message is not None
        assert "body_alignment" in rep.feedback_messages

    def test_rep_metrics_are_read_only(self):
        metrics = {"a": FormMetric(0.9)}
        rep = RepetitionData(
            rep_number=1,
            timestamp=1.0,
            duration=1.0,
            quality=RepQuality.GOOD,
            confidence=0.8,
            form_score=9.0,
            form_metrics=metrics,
        )
        metrics["b"] = FormMetric(0.1, "Changed later")

        assert list(rep.form_metrics) == ["a"]
        assert rep.feedback_messages == {}
        with pytest.raises(TypeError):
            rep.form_metrics["c"] = FormMetric(0.5)

    def test_to_dict(self):
        counter = _counter()
        rep = _run(counter, pushup_frames(pushup_rep_angles()))[0]
        data = rep.to_dict()
        assert data["rep_number"] == 1
        assert data["quality"] == rep.quality.value
        assert set(data["form_metrics"]) == set(rep.form_metrics)
        assert "score" in data["form_metrics"]["overall_visibility"]


# ---------------------------------------------------------------------------
# Lifecycle and statistics
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_reset_is_idempotent(self):
        counter = _counter()
        _run(counter, pushup_frames(pushup_rep_angles()))
        counter.reset()
        first = counter.get_statistics()
        counter.reset()
        assert counter.get_statistics() == first
        assert counter.total_reps == 0
        assert counter.state == ExerciseState.UP
        assert counter.current_metrics == {}

    def test_counts_again_after_reset(self):
        counter = _counter()
        _run(counter, pushup_frames(pushup_rep_angles()))
        counter.reset()
        reps = _run(counter, pushup_frames(pushup_rep_angles(), start=10.0))
        assert [r.rep_number for r in reps] == [1]

    def test_dispose_stops_processing(self):
        counter = _counter()
        counter.dispose()
        assert counter.is_disposed
        assert _run(counter, pushup_frames(pushup_rep_angles())) == []
        assert counter.total_reps == 0

    def test_listeners(self):
        counter = _counter()
        reps, states = [], []
        counter.add_rep_listener(reps.append)
        counter.add_state_listener(states.append)
        frames = pushup_frames(pushup_rep_angles())
        _run(counter, frames)

        assert len(reps) == 1
        assert len(states) == len(frames)
        assert states[-1].total_reps == 1
        assert states[-1].last_rep is reps[0]

    def test_statistics(self):
        counter = _counter()
        _run(counter, pushup_frames(pushup_rep_angles() * 2, interval=0.1))
        stats = counter.get_statistics()

        assert stats["exercise"] == "push_up"
        assert stats["total_reps"] == 2
        assert sum(stats["quality_distribution"].values()) == 2
        assert stats["best_rep"]["form_score"] >= stats["worst_rep"]["form_score"]
        assert stats["average_rep_duration"] > 0.0

    def test_rejects_duration_based_classifier(self):
        with pytest.raises(ValueError):
            RepsCounter(ExerciseClassifier(ExerciseKind.PLANK))

    def test_config_from_settings(self):
        config = RepCountingConfig.from_settings(Settings(probability_threshold=0.7, min_rep_interval_ms=500))
        assert config.probability_threshold == 0.7
        assert config.min_rep_interval_ms == 500


# ---------------------------------------------------------------------------
# Hold tracker
# ---------------------------------------------------------------------------

class TestHoldTracker:
    def _tracker(self):
        return HoldTracker(ExerciseClassifier(ExerciseKind.PLANK), RepCountingConfig())

    def test_rejects_counted_exercise(self):
        with pytest.raises(ValueError):
            HoldTracker(ExerciseClassifier(ExerciseKind.PUSH_UP))

    def test_neutral_frames_do_not_accumulate(self):
        tracker = self._tracker()
        for i in range(30):
            tracker.process_frame(low_visibility_frame(i * 0.1))
        assert tracker.held_seconds == 0.0
        assert not tracker.is_holding

    def test_reset_and_dispose(self):
        tracker = self._tracker()
        tracker.process_frame(pushup_frame(170.0, 0.0))
        assert tracker.current_metrics
        tracker.reset()
        assert tracker.current_metrics == {}
        tracker.dispose()
        assert tracker.process_frame(pushup_frame(170.0, 1.0)) is None

    def test_valid_hold_accumulates(self):
        tracker = HoldTracker(ExerciseClassifier(ExerciseKind.PLANK), RepCountingConfig(probability_threshold=0.65))
        for i in range(10):
            tracker.process_frame(plank_frame(i * 0.1))

        assert tracker.is_holding
        assert tracker.held_seconds == pytest.approx(0.9)
        assert tracker.longest_hold_seconds == pytest.approx(0.9)

        # Occluded frames pull the smoothed probability down until the hold breaks
        for i in range(10, 15):
            tracker.process_frame(plank_frame(i * 0.1, visibility=0.3))

        assert not tracker.is_holding
        assert tracker.held_seconds == pytest.approx(1.3)
        assert tracker.longest_hold_seconds == pytest.approx(1.3)
        assert tracker.get_statistics()["held_seconds"] == pytest.approx(1.3)

"""
Workout session orchestration.

The manager walks the exercises of one workout session. For the current
exercise it owns exactly one tracker:
- RepsCounter for counted exercises
- HoldTracker for duration-based exercises (plank family)
- nothing when the exercise name has no classifier

Switching exercises disposes the outgoing tracker before the incoming one
is created, so a frame can never reach two classifiers. Pending feedback for
the outgoing exercise is delivered before the switch completes. Completed reps are
turned into feedback decisions on the frame path; delivery to the coaching
channel runs as a separate task and never blocks frame processing.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set, Union

from posecoach.config import Settings, get_settings
from posecoach.cv.exercises import ExerciseKind, classifier_for_exercise
from posecoach.cv.hold_tracker import HoldTracker
from posecoach.cv.landmarks import PoseDetectionResult
from posecoach.cv.reps_counter import RepCountingConfig, RepetitionData, RepsCounter
from posecoach.session.feedback import CoachingChannel, FeedbackDecision, FeedbackDispatcher
from posecoach.session.pose_detector import PoseDetector, PoseDetectorError
from posecoach.session.progress import Exercise, WorkoutProgress, WorkoutSession

logger = logging.getLogger(__name__)

ExerciseTracker = Union[RepsCounter, HoldTracker]


class WorkoutSessionManager:
    """Drives one workout session: navigation, trackers, progress and feedback."""

    def __init__(
        self,
        session: WorkoutSession,
        detector: PoseDetector,
        channel: Optional[CoachingChannel] = None,
        progress: Optional[WorkoutProgress] = None,
        settings: Optional[Settings] = None,
    ):
        if not session.exercises:
            raise ValueError("Workout session has no exercises")

        self.session = session
        self.detector = detector
        self.settings = settings or get_settings()
        self.progress = progress or WorkoutProgress()
        self.dispatcher = FeedbackDispatcher(channel, self.settings)
        self.counting_config = RepCountingConfig.from_settings(self.settings)

        self.current_index = self._first_incomplete_index()
        self.tracker: Optional[ExerciseTracker] = None
        self.is_active = False
        self.is_closed = False
        self.last_error: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

        detector.subscribe(self.handle_frame, self._on_detector_error)

    # ------------------------------------------------------------------
    # Navigation state
    # ------------------------------------------------------------------

    def _first_incomplete_index(self) -> int:
        for index in range(len(self.session.exercises)):
            if not self.progress.is_exercise_completed(self.exercise_key(index)):
                return index
        return 0

    def exercise_key(self, index: int) -> str:
        return WorkoutProgress.exercise_key(self.session.week, self.session.session_index, index)

    @property
    def current_exercise(self) -> Exercise:
        return self.session.exercises[self.current_index]

    @property
    def exercise_kind(self) -> Optional[ExerciseKind]:
        return self.tracker.exercise_kind if self.tracker else None

    @property
    def is_first_exercise(self) -> bool:
        return self.current_index == 0

    @property
    def is_last_exercise(self) -> bool:
        return self.current_index == len(self.session.exercises) - 1

    @property
    def reps_counter(self) -> Optional[RepsCounter]:
        return self.tracker if isinstance(self.tracker, RepsCounter) else None

    @property
    def hold_tracker(self) -> Optional[HoldTracker]:
        return self.tracker if isinstance(self.tracker, HoldTracker) else None

    # ------------------------------------------------------------------
    # Exercise lifecycle
    # ------------------------------------------------------------------

    async def start_current_exercise(self) -> None:
        """
        Attach a tracker to the current exercise and start the detector.

        Raises:
            PoseDetectorError: If the pose detector fails to start
        """
        if self.is_closed:
            raise RuntimeError("Workout session is closed")
        await self._activate(self.current_index)
        try:
            await self.detector.start()
        except PoseDetectorError as e:
            logger.error(f"Pose detector failed to start: {e}")
            self.last_error = str(e)
            self.is_active = False
            raise
        self.is_active = True

    async def go_to_exercise(self, index: int) -> None:
        if not 0 <= index < len(self.session.exercises):
            raise ValueError(f"Exercise index {index} out of range (0-{len(self.session.exercises) - 1})")
        self.current_index = index
        if self.is_active:
            await self._activate(index)

    async def next_exercise(self) -> bool:
        if self.is_last_exercise:
            return False
        await self.go_to_exercise(self.current_index + 1)
        return True

    async def previous_exercise(self) -> bool:
        if self.is_first_exercise:
            return False
        await self.go_to_exercise(self.current_index - 1)
        return True

    async def mark_current_exercise_as_complete(self) -> None:
        """Record completion, then advance or stop after the last exercise."""
        key = self.exercise_key(self.current_index)
        self.progress = self.progress.with_exercise_completed(key)
        logger.info(f"Completed exercise {key} ({self.current_exercise.name})")

        if self.is_last_exercise:
            await self.stop()
        else:
            await self.next_exercise()

    async def stop(self) -> None:
        await self.detector.stop()
        self.is_active = False

    async def close(self) -> None:
        """Stop the detector, dispose the tracker and abandon pending feedback."""
        if self.is_closed:
            return
        await self.stop()
        self._dispose_tracker()
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self.is_closed = True

    def _dispose_tracker(self) -> None:
        if self.tracker is not None:
            self.tracker.dispose()
            self.tracker = None

    async def _activate(self, index: int) -> None:
        self._dispose_tracker()
        # Deliveries for the outgoing exercise finish before its reps are forgotten
        await self.wait_for_feedback()
        self.dispatcher.reset()

        exercise = self.session.exercises[index]
        classifier = classifier_for_exercise(exercise.name, smoothing_window=self.settings.smoothing_window)
        if classifier is None:
            logger.info(f"No counter available for '{exercise.name}'")
            return

        if classifier.is_duration_based:
            self.tracker = HoldTracker(classifier, self.counting_config)
        else:
            counter = RepsCounter(classifier, self.counting_config)
            counter.add_rep_listener(self._on_rep)
            self.tracker = counter
        logger.info(f"Switched to exercise {index} '{exercise.name}' ({classifier.kind.value})")

    # ------------------------------------------------------------------
    # Frame and feedback path
    # ------------------------------------------------------------------

    def handle_frame(self, result: PoseDetectionResult) -> None:
        if not self.is_active or self.tracker is None:
            return
        self.tracker.process_frame(result)

    def _on_detector_error(self, error: Exception) -> None:
        logger.error(f"Pose detector error: {error}")
        self.last_error = str(error)

    def _on_rep(self, rep: RepetitionData) -> None:
        decision = self.dispatcher.record(rep, self.exercise_kind)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop; feedback for rep {rep.rep_number} not delivered")
            return
        task = loop.create_task(self._deliver(decision, self.current_exercise.name))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, decision: FeedbackDecision, exercise_name: str) -> None:
        try:
            await self.dispatcher.deliver(decision, exercise_name)
        except Exception as e:
            logger.exception(f"Feedback delivery failed for rep {decision.rep_number}: {e}")

    async def wait_for_feedback(self) -> None:
        """Wait for all scheduled feedback deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_statistics(self) -> Optional[Dict[str, Any]]:
        if self.tracker is None:
            return None
        return self.tracker.get_statistics()

    def tracker_state(self) -> Optional[Dict[str, Any]]:
        """Live tracker state after the latest frame."""
        if self.reps_counter is not None:
            return self.reps_counter.counting_state.to_dict()
        if self.hold_tracker is not None:
            return self.hold_tracker.get_statistics()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week": self.session.week,
            "session_index": self.session.session_index,
            "current_index": self.current_index,
            "current_exercise": self.current_exercise.name,
            "exercise_kind": self.exercise_kind.value if self.exercise_kind else None,
            "is_active": self.is_active,
            "is_first_exercise": self.is_first_exercise,
            "is_last_exercise": self.is_last_exercise,
            "completed": [
                self.progress.is_exercise_completed(self.exercise_key(i))
                for i in range(len(self.session.exercises))
            ],
            "tracker": self.tracker_state(),
            "last_error": self.last_error,
        }

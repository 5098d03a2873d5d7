"""Workout session orchestration: navigation, pose detector lifecycle and coaching feedback."""

from posecoach.session.feedback import (
    CoachingChannel,
    FeedbackDecision,
    FeedbackDispatcher,
    FeedbackEvent,
    FeedbackKind,
    build_summary,
    decide_feedback,
    feedback_key,
)
from posecoach.session.manager import WorkoutSessionManager
from posecoach.session.pose_detector import PoseDetector, PoseDetectorError, QueuePoseDetector
from posecoach.session.progress import Exercise, WorkoutProgress, WorkoutSession

__all__ = [
    "CoachingChannel",
    "FeedbackDecision",
    "FeedbackDispatcher",
    "FeedbackEvent",
    "FeedbackKind",
    "build_summary",
    "decide_feedback",
    "feedback_key",
    "WorkoutSessionManager",
    "PoseDetector",
    "PoseDetectorError",
    "QueuePoseDetector",
    "Exercise",
    "WorkoutProgress",
    "WorkoutSession",
]

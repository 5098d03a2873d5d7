"""Pydantic schemas for API request/response models."""

from posecoach.schemas.frame import (
    LandmarkIn,
    FrameIn,
    FormMetricResponse,
    RepetitionResponse,
    FrameResponse,
)
from posecoach.schemas.session import (
    ExerciseIn,
    SessionCreate,
    SessionResponse,
    FeedbackEventResponse,
    ExerciseResolveRequest,
    ExerciseResolveResponse,
)

__all__ = [
    "LandmarkIn",
    "FrameIn",
    "FormMetricResponse",
    "RepetitionResponse",
    "FrameResponse",
    "ExerciseIn",
    "SessionCreate",
    "SessionResponse",
    "FeedbackEventResponse",
    "ExerciseResolveRequest",
    "ExerciseResolveResponse",
]

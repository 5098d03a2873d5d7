"""Pose frame schemas."""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator

from posecoach.cv.landmarks import NUM_LANDMARKS, Landmark, PoseDetectionResult


class LandmarkIn(BaseModel):
    """Single joint as reported by the pose detector."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = Field(1.0, ge=0.0, le=1.0)


class FrameIn(BaseModel):
    """
    One pose detection frame.

    Both landmark lists are either empty (no person detected) or contain
    exactly 33 joints in MediaPipe order.
    """
    timestamp_ms: float = Field(..., ge=0, description="Frame timestamp in milliseconds")
    world_landmarks: List[LandmarkIn] = Field(default_factory=list)
    image_landmarks: List[LandmarkIn] = Field(default_factory=list)

    @field_validator("world_landmarks", "image_landmarks")
    @classmethod
    def validate_landmark_count(cls, v: List[LandmarkIn]) -> List[LandmarkIn]:
        if v and len(v) != NUM_LANDMARKS:
            raise ValueError(f"expected {NUM_LANDMARKS} landmarks, got {len(v)}")
        return v

    def to_result(self) -> PoseDetectionResult:
        if bool(self.world_landmarks) != bool(self.image_landmarks):
            raise ValueError("world_landmarks and image_landmarks must both be present or both be empty")
        return PoseDetectionResult(
            timestamp=self.timestamp_ms / 1000.0,
            world_landmarks=[Landmark(**lm.model_dump()) for lm in self.world_landmarks],
            image_landmarks=[Landmark(**lm.model_dump()) for lm in self.image_landmarks],
        )


class FormMetricResponse(BaseModel):
    score: float
    message: Optional[str] = None


class RepetitionResponse(BaseModel):
    """Completed repetition."""
    rep_number: int
    timestamp: float
    duration: float
    quality: str  # "excellent", "good", "fair", "poor"
    confidence: float
    form_score: float  # 0-10
    form_metrics: Dict[str, FormMetricResponse]


class FrameResponse(BaseModel):
    """Tracker state after a frame was processed."""
    accepted: bool
    exercise_kind: Optional[str] = None
    tracker: Optional[Dict[str, Any]] = None
    repetition: Optional[RepetitionResponse] = None

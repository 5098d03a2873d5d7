"""Workout session schemas."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, model_validator

from posecoach.session.progress import Exercise


class ExerciseIn(BaseModel):
    """Exercise entry of a workout session."""
    name: str = Field(..., min_length=1)
    sets: int = Field(1, ge=1)
    reps: Optional[int] = Field(None, ge=1)
    duration_seconds: Optional[int] = Field(None, ge=1)
    rest_seconds: int = Field(60, ge=0)

    def to_exercise(self) -> Exercise:
        return Exercise(**self.model_dump())


class SessionCreate(BaseModel):
    """Schema for starting a workout session."""
    name: str = "Workout"
    week: int = Field(1, ge=1)
    session_index: int = Field(0, ge=0)
    exercises: List[ExerciseIn]
    completions: Dict[str, bool] = Field(
        default_factory=dict,
        description="Previously completed exercises keyed w{week}_s{session}_e{index}",
    )

    @model_validator(mode="after")
    def validate_exercises(self) -> "SessionCreate":
        if not self.exercises:
            raise ValueError("exercises must not be empty")
        return self


class SessionResponse(BaseModel):
    """Current state of a workout session."""
    id: str
    week: int
    session_index: int
    current_index: int
    current_exercise: str
    exercise_kind: Optional[str] = None
    is_active: bool
    is_first_exercise: bool
    is_last_exercise: bool
    completed: List[bool]
    tracker: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None


class FeedbackEventResponse(BaseModel):
    kind: str  # "corrective", "praise", "count"
    rep_number: int
    cue_keys: List[str]
    messages: Dict[str, str]
    exercise_name: str
    summary: Optional[str] = None
    sent_at: str


class ExerciseResolveRequest(BaseModel):
    name: str


class ExerciseResolveResponse(BaseModel):
    name: str
    exercise_kind: Optional[str] = None
    duration_based: bool = False

"""Exercise lookup endpoints."""

from fastapi import APIRouter

from posecoach.cv.exercises import classify_exercise_name
from posecoach.schemas.session import ExerciseResolveRequest, ExerciseResolveResponse

router = APIRouter()


@router.post("/resolve", response_model=ExerciseResolveResponse)
async def resolve_exercise(request: ExerciseResolveRequest):
    """Map a free-form exercise name to the classifier that would track it."""
    kind = classify_exercise_name(request.name)
    return ExerciseResolveResponse(
        name=request.name,
        exercise_kind=kind.value if kind else None,
        duration_based=kind.is_duration_based if kind else False,
    )

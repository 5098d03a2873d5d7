"""Workout session API endpoints."""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from posecoach.config import get_settings
from posecoach.schemas.frame import FrameIn, FrameResponse, RepetitionResponse
from posecoach.schemas.session import FeedbackEventResponse, SessionCreate, SessionResponse
from posecoach.session.manager import WorkoutSessionManager
from posecoach.session.pose_detector import PoseDetectorError, QueuePoseDetector
from posecoach.session.progress import WorkoutProgress, WorkoutSession

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass
class SessionHandle:
    id: str
    manager: WorkoutSessionManager
    detector: QueuePoseDetector


class SessionRegistry:
    """In-memory registry of live workout sessions."""

    def __init__(self):
        self._sessions: Dict[str, SessionHandle] = {}

    def add(self, manager: WorkoutSessionManager, detector: QueuePoseDetector) -> SessionHandle:
        handle = SessionHandle(id=str(uuid.uuid4()), manager=manager, detector=detector)
        self._sessions[handle.id] = handle
        return handle

    def get(self, session_id: str) -> SessionHandle:
        handle = self._sessions.get(session_id)
        if handle is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Session not found"
            )
        return handle

    def find(self, session_id: str):
        return self._sessions.get(session_id)

    async def remove(self, session_id: str) -> None:
        handle = self.get(session_id)
        del self._sessions[session_id]
        await handle.manager.close()
        await handle.detector.close()

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.remove(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return registry


def _session_response(handle: SessionHandle) -> SessionResponse:
    return SessionResponse(id=handle.id, **handle.manager.to_dict())


async def push_frame(handle: SessionHandle, frame: FrameIn) -> FrameResponse:
    """Deliver a frame through the session's detector and report the outcome."""
    try:
        result = frame.to_result()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    manager = handle.manager
    counter = manager.reps_counter
    reps_before = counter.total_reps if counter else 0

    accepted = handle.detector.submit(result)
    if accepted:
        await handle.detector.drain()

    repetition = None
    if counter is not None and counter is manager.reps_counter and counter.total_reps > reps_before:
        repetition = RepetitionResponse(**counter.repetitions[-1].to_dict())

    kind = manager.exercise_kind
    return FrameResponse(
        accepted=accepted,
        exercise_kind=kind.value if kind else None,
        tracker=manager.tracker_state(),
        repetition=repetition,
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreate,
    sessions: SessionRegistry = Depends(get_registry)
):
    """Create a workout session; it starts at the first incomplete exercise."""
    workout = WorkoutSession(
        week=request.week,
        session_index=request.session_index,
        exercises=[e.to_exercise() for e in request.exercises],
        name=request.name,
    )
    detector = QueuePoseDetector()
    manager = WorkoutSessionManager(
        workout,
        detector,
        progress=WorkoutProgress(completions=dict(request.completions)),
        settings=get_settings(),
    )
    handle = sessions.add(manager, detector)
    logger.info(f"Created session {handle.id} with {len(workout.exercises)} exercises")
    return _session_response(handle)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Get the current state of a session."""
    return _session_response(sessions.get(session_id))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """End a session and release its detector."""
    await sessions.remove(session_id)
    logger.info(f"Deleted session {session_id}")


@router.post("/{session_id}/start", response_model=SessionResponse)
async def start_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Start tracking the current exercise."""
    handle = sessions.get(session_id)
    try:
        await handle.manager.start_current_exercise()
    except PoseDetectorError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Pose detector unavailable: {e}"
        )
    return _session_response(handle)


@router.post("/{session_id}/next", response_model=SessionResponse)
async def next_exercise(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    handle = sessions.get(session_id)
    await handle.manager.next_exercise()
    return _session_response(handle)


@router.post("/{session_id}/previous", response_model=SessionResponse)
async def previous_exercise(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    handle = sessions.get(session_id)
    await handle.manager.previous_exercise()
    return _session_response(handle)


@router.post("/{session_id}/goto/{index}", response_model=SessionResponse)
async def go_to_exercise(session_id: str, index: int, sessions: SessionRegistry = Depends(get_registry)):
    handle = sessions.get(session_id)
    try:
        await handle.manager.go_to_exercise(index)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _session_response(handle)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_exercise(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Mark the current exercise complete and advance."""
    handle = sessions.get(session_id)
    await handle.manager.mark_current_exercise_as_complete()
    return _session_response(handle)


@router.post("/{session_id}/frames", response_model=FrameResponse)
async def post_frame(session_id: str, frame: FrameIn, sessions: SessionRegistry = Depends(get_registry)):
    """Push one pose detection frame."""
    return await push_frame(sessions.get(session_id), frame)


@router.get("/{session_id}/statistics")
async def get_statistics(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Get statistics for the current exercise."""
    handle = sessions.get(session_id)
    statistics = handle.manager.get_statistics()
    if statistics is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No counter available for the current exercise"
        )
    return statistics


@router.get("/{session_id}/feedback", response_model=List[FeedbackEventResponse])
async def get_feedback(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Feedback events delivered for the current exercise, oldest first."""
    handle = sessions.get(session_id)
    await handle.manager.wait_for_feedback()
    return [FeedbackEventResponse(**event.to_dict()) for event in handle.manager.dispatcher.events]


@router.websocket("/{session_id}/stream")
async def stream_frames(websocket: WebSocket, session_id: str):
    """Frames in, tracker state and completed reps out."""
    handle = registry.find(session_id)
    await websocket.accept()
    if handle is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Session not found")
        return

    try:
        while True:
            data = await websocket.receive_json()
            try:
                frame = FrameIn.model_validate(data)
                response = await push_frame(handle, frame)
            except ValidationError as e:
                await websocket.send_json({"error": "invalid frame", "detail": str(e)})
                continue
            except HTTPException as e:
                await websocket.send_json({"error": "invalid frame", "detail": e.detail})
                continue
            await websocket.send_json(response.model_dump())
    except WebSocketDisconnect:
        logger.info(f"Stream disconnected for session {session_id}")

"""
Pose detector collaborator.

Camera capture and landmark inference happen outside this package. A
detector only has to honour the lifecycle (start/stop), deliver frames to
its subscribers and report runtime errors. QueuePoseDetector is the
in-process implementation used by the HTTP and WebSocket API: frames are
submitted by the client and pumped to subscribers by a background task.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Protocol

from posecoach.cv.landmarks import PoseDetectionResult

logger = logging.getLogger(__name__)

FrameCallback = Callable[[PoseDetectionResult], None]
ErrorCallback = Callable[[Exception], None]


class PoseDetectorError(Exception):
    """Raised when the pose detector cannot be started."""
    pass


class PoseDetector(Protocol):
    """Lifecycle, result stream and error stream of a pose detector."""

    @property
    def is_running(self) -> bool:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    def subscribe(self, on_frame: FrameCallback, on_error: Optional[ErrorCallback] = None) -> None:
        ...


class QueuePoseDetector:
    """
    Pose detector fed by submitted frames.

    When the queue is full the oldest frame is dropped so that a slow
    consumer never blocks the producer.
    """

    def __init__(self, max_queue_size: int = 64):
        self.max_queue_size = max_queue_size
        self._frame_callbacks: List[FrameCallback] = []
        self._error_callbacks: List[ErrorCallback] = []
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.dropped_frames = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, on_frame: FrameCallback, on_error: Optional[ErrorCallback] = None) -> None:
        self._frame_callbacks.append(on_frame)
        if on_error is not None:
            self._error_callbacks.append(on_error)

    async def start(self) -> None:
        if self._closed:
            raise PoseDetectorError("Pose detector has been closed")
        if self.is_running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._task = asyncio.create_task(self._pump())
        logger.info("Pose detector started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._queue = None
        logger.info("Pose detector stopped")

    async def close(self) -> None:
        await self.stop()
        self._closed = True
        self._frame_callbacks.clear()
        self._error_callbacks.clear()

    def submit(self, result: PoseDetectionResult) -> bool:
        """
        Queue a frame for delivery.

        Returns:
            False if the detector is not running and the frame was discarded
        """
        if self._queue is None or not self.is_running:
            logger.debug("Pose detector not running; frame discarded")
            return False
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped_frames += 1
            logger.debug(f"Frame queue full; dropped oldest frame ({self.dropped_frames} total)")
        self._queue.put_nowait(result)
        return True

    async def drain(self) -> None:
        """Wait until every submitted frame has been delivered."""
        if self._queue is not None and self.is_running:
            await self._queue.join()

    async def _pump(self) -> None:
        queue = self._queue
        while True:
            result = await queue.get()
            try:
                for callback in list(self._frame_callbacks):
                    callback(result)
            except Exception as e:
                logger.exception(f"Frame subscriber failed: {e}")
                for on_error in list(self._error_callbacks):
                    on_error(e)
            finally:
                queue.task_done()

"""Scan session: serializes frames and runs the periodic expiry sweep.

Both the frame consumer and the sweeper run as tasks on one event loop, so
the coordinator's track registry has a single owner even when frames arrive
from a camera thread.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Iterable

from config import EXPIRY_SWEEP_INTERVAL_MS
from detection import Detection

from .coordinator import FrameResult, ScanCoordinator

logger = logging.getLogger(__name__)

_STOP = object()


class ScanSession:
    """Async context manager owning a coordinator's background tasks.

    Example:
        >>> async with ScanSession(coordinator) as session:
        ...     session.submit(detections)
    """

    def __init__(
        self,
        coordinator: ScanCoordinator,
        sweep_interval_ms: float = EXPIRY_SWEEP_INTERVAL_MS,
        max_queued_frames: int = 0,
    ) -> None:
        if sweep_interval_ms <= 0:
            raise ValueError(f"sweep_interval_ms must be positive, got {sweep_interval_ms}")
        self.coordinator = coordinator
        self.sweep_interval_ms = sweep_interval_ms
        self.max_queued_frames = max_queued_frames
        self.frames_processed = 0
        self.frames_dropped = 0
        self.last_result: FrameResult | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._sweeper: asyncio.Task | None = None
        self._closing = False

    @property
    def running(self) -> bool:
        return self._queue is not None

    async def __aenter__(self) -> ScanSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        if self.running:
            return
        self._closing = False
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.max_queued_frames)
        self._consumer = asyncio.create_task(self._consume_frames())
        self._sweeper = asyncio.create_task(self._sweep_expired())
        logger.debug("Scan session started")

    def submit(self, detections: Iterable[Detection], now: float | None = None) -> bool:
        """Queue one frame from the event loop thread.

        Returns:
            False if the frame was dropped because the queue is full or the
            session is closing.
        """
        if self._queue is None:
            raise RuntimeError("Scan session is not running")
        if self._closing:
            self.frames_dropped += 1
            logger.debug("Session closing; dropped frame")
            return False
        try:
            self._queue.put_nowait((list(detections), now))
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.debug("Frame queue full; dropped frame")
            return False
        return True

    def submit_threadsafe(self, detections: Iterable[Detection], now: float | None = None) -> None:
        """Queue one frame from any thread (e.g. a camera callback)."""
        if self._loop is None or self._queue is None:
            raise RuntimeError("Scan session is not running")
        self._loop.call_soon_threadsafe(self.submit, list(detections), now)

    async def _consume_frames(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                detections, now = item
                try:
                    self.last_result = self.coordinator.process_frame(detections, now)
                except Exception:
                    logger.exception("Frame processing failed")
                self.frames_processed += 1
            finally:
                self._queue.task_done()

    async def _sweep_expired(self) -> None:
        interval = self.sweep_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self.coordinator.expire_tracks()

    async def join(self) -> None:
        """Wait until every queued frame has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Process queued frames, stop the sweeper and drain store writes."""
        if not self.running or self._closing:
            return
        self._closing = True
        await self._queue.put(_STOP)
        await self._consumer
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        await self.coordinator.drain()
        self._queue = None
        self._consumer = None
        self._sweeper = None
        logger.debug(
            "Scan session closed: %s frames processed, %s dropped",
            self.frames_processed,
            self.frames_dropped,
        )

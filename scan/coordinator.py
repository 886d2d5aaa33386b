"""Scan coordinator: drives per-frame detections to confirmed scans.

Frame processing is synchronous and never awaits. When a track is newly
confirmed, its code is reserved in the scanned set immediately and the
store write is scheduled on the running event loop. The write then either
commits (marker created, regions recomputed, listeners notified) or rolls
the reservation back so a later frame can retry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

from config import (
    FAILED_SCAN_RETRY_DELAY_MS,
    REGION_GROUP_SIZE,
    REGION_ROW_TOLERANCE,
    VIEWFINDER_WIDTH_RATIO,
    VIEWFINDER_HEIGHT_RATIO,
    VIEWFINDER_VERTICAL_OFFSET,
)
from detection import (
    ConfirmedDetection,
    Detection,
    DetectionConfig,
    TrackRegistry,
    assign_regions,
    is_acceptable,
    is_confirmed,
    is_well_formed,
)
from geometry import Rect, RegionOfInterest, viewfinder_roi

from .keys import KeyExtractor, product_group_key
from .store import DuplicateScanError, ScanRecord, ScanStore

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Wall clock in milliseconds."""
    return time.time() * 1000


@dataclass(frozen=True)
class ScanGeometry:
    """Display geometry the coordinator validates detections against."""

    roi: RegionOfInterest
    frame_width: float
    frame_height: float

    @classmethod
    def for_screen(
        cls,
        width: float,
        height: float,
        width_ratio: float = VIEWFINDER_WIDTH_RATIO,
        height_ratio: float = VIEWFINDER_HEIGHT_RATIO,
        vertical_offset: float = VIEWFINDER_VERTICAL_OFFSET,
    ) -> ScanGeometry:
        """Geometry for a full-screen preview with the standard viewfinder."""
        roi = viewfinder_roi(width, height, width_ratio, height_ratio, vertical_offset)
        return cls(roi=roi, frame_width=width, frame_height=height)


@dataclass
class ScanContext:
    """Session state owned by one coordinator.

    Attributes:
        registry: Active tracks
        scanned: Codes reserved or persisted; never submitted again
        markers: Confirmed detections keyed by code, in reading order
    """

    registry: TrackRegistry = field(default_factory=TrackRegistry)
    scanned: set[str] = field(default_factory=set)
    markers: dict[str, ConfirmedDetection] = field(default_factory=dict)

    def reset(self) -> None:
        self.registry.clear()
        self.scanned.clear()
        self.markers.clear()


@dataclass(frozen=True)
class ConfirmedScan:
    """Event emitted once a confirmed code has been persisted."""

    code: str
    product_group_key: str


@dataclass
class FrameResult:
    """Counters for one processed frame."""

    detections: int = 0
    malformed: int = 0
    rejected: int = 0
    duplicates: int = 0
    unsaved: int = 0
    matched: int = 0
    created: int = 0
    confirmed: list[str] = field(default_factory=list)


ScanListener = Callable[[ConfirmedScan], None]


class ScanCoordinator:
    """Turns per-frame detections into persisted, de-duplicated scans.

    All methods except the persistence tasks must run on the event loop
    thread; ``ScanSession`` takes care of that for hosts with camera threads.

    Example:
        >>> coordinator = ScanCoordinator(store, DetectionConfig(), geometry)
        >>> result = coordinator.process_frame(detections)
        >>> await coordinator.drain()
        >>> coordinator.markers
    """

    def __init__(
        self,
        store: ScanStore,
        config: DetectionConfig,
        geometry: ScanGeometry,
        key_extractor: KeyExtractor = product_group_key,
        clock: Callable[[], float] = now_ms,
        context: ScanContext | None = None,
        retry_delay_ms: float = FAILED_SCAN_RETRY_DELAY_MS,
        group_size: int = REGION_GROUP_SIZE,
        row_tolerance: float = REGION_ROW_TOLERANCE,
    ) -> None:
        config.validate()
        self.store = store
        self.config = config
        self.geometry = geometry
        self.key_extractor = key_extractor
        self.context = context if context is not None else ScanContext()
        self.retry_delay_ms = retry_delay_ms
        self.group_size = group_size
        self.row_tolerance = row_tolerance
        self.persisted = 0
        self.failed = 0
        self._clock = clock
        self._listeners: list[ScanListener] = []
        self._pending: set[asyncio.Task] = set()
        self._generation = 0
        # code -> coordinator time at which a failed reservation is released
        self._release_at: dict[str, float] = {}
        self._last_now: float | None = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def registry(self) -> TrackRegistry:
        return self.context.registry

    @property
    def markers(self) -> list[ConfirmedDetection]:
        """Confirmed detections in reading order with region indices."""
        return list(self.context.markers.values())

    def is_scanned(self, code: str) -> bool:
        return code in self.context.scanned

    def add_listener(self, listener: ScanListener) -> None:
        self._listeners.append(listener)

    def update_geometry(self, geometry: ScanGeometry) -> None:
        """Replace the ROI and frame size after the display geometry changed."""
        self.geometry = geometry

    # =========================================================================
    # FRAME PROCESSING
    # =========================================================================

    def process_frame(
        self,
        detections: Iterable[Detection],
        now: float | None = None,
    ) -> FrameResult:
        """Run one frame of detections through validation, tracking and confirmation.

        Args:
            detections: Raw detections reported for the frame
            now: Frame timestamp in ms (defaults to the coordinator clock)

        Returns:
            FrameResult with per-frame counters and newly confirmed codes
        """
        if now is None:
            now = self._clock()
        self._advance(now)

        result = FrameResult()
        geometry = self.geometry
        registry = self.context.registry

        for detection in detections:
            result.detections += 1

            if not is_well_formed(detection):
                result.malformed += 1
                continue

            if not is_acceptable(
                detection,
                geometry.roi,
                geometry.frame_width,
                geometry.frame_height,
                self.config,
            ):
                result.rejected += 1
                continue

            code = detection.value
            frame = detection.rect

            if code in self.context.markers:
                self._refresh_marker(code, frame)

            if code in self.context.scanned:
                result.duplicates += 1
                continue

            track = registry.find_match(code, frame, self.config.iou_threshold)
            if track is not None:
                track = registry.update(track, frame, now)
                result.matched += 1
            else:
                track = registry.create(code, frame, now)
                result.created += 1
                logger.debug("Detected %s (track %s)", code, track.handle)

            if is_confirmed(track, self.config.confirmation_threshold):
                if self._reserve(code, frame):
                    logger.info("Confirmed %s after %s hits", code, track.hit_count)
                    result.confirmed.append(code)
                else:
                    result.unsaved += 1

        if result.detections:
            logger.debug(
                "Frame: %s detections, %s malformed, %s rejected, %s duplicates, %s confirmed",
                result.detections,
                result.malformed,
                result.rejected,
                result.duplicates,
                len(result.confirmed),
            )
        return result

    def expire_tracks(self, now: float | None = None) -> int:
        """Forget tracks idle past the configured timeout."""
        if now is None:
            now = self._clock()
        self._advance(now)
        expired = self.context.registry.expire(now, self.config.track_timeout_ms)
        if expired:
            logger.debug("Expired %s tracks: %s", len(expired), [t.code for t in expired])
        return len(expired)

    # =========================================================================
    # TWO-PHASE COMMIT
    # =========================================================================

    def _reserve(self, code: str, frame: Rect) -> bool:
        """Mark the code scanned and schedule the store write.

        Returns:
            False if the write could not be scheduled; the code is left
            unmarked so a later frame can try again.
        """
        try:
            group_key = self.key_extractor(code)
        except Exception as exc:
            logger.error("Could not derive product key for %s: %s", code, exc)
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("No running event loop; cannot save %s", code)
            return False

        # Mark and schedule with nothing in between that can fail or yield.
        self.context.scanned.add(code)
        task = loop.create_task(self._persist(code, group_key, frame, self._generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _persist(self, code: str, group_key: str, frame: Rect, generation: int) -> None:
        try:
            await self.store.add_scan(code, group_key)
        except DuplicateScanError:
            logger.info("%s is already stored; not adding it again", code)
            return
        except Exception as exc:
            self.failed += 1
            logger.error("Scan failed for %s: %s", code, exc)
            self._schedule_release(code, generation)
            return

        self.persisted += 1
        if generation != self._generation:
            logger.debug("Session cleared while saving %s; no marker created", code)
            return

        logger.info("Scan added: %s (product %s)", code, group_key)
        self._commit_marker(code, frame)
        self._notify(ConfirmedScan(code=code, product_group_key=group_key))

    def _schedule_release(self, code: str, generation: int) -> None:
        """Roll back a failed reservation after the retry delay.

        The delay runs in coordinator time (frame timestamps or the clock),
        so replayed frames see the same retry behavior as a live camera.
        """
        if generation != self._generation:
            return
        if self.retry_delay_ms <= 0:
            self._release(code)
            return
        base = self._last_now if self._last_now is not None else self._clock()
        self._release_at[code] = base + self.retry_delay_ms

    def _advance(self, now: float) -> None:
        """Record the current coordinator time and release due reservations."""
        self._last_now = now
        for code, due in list(self._release_at.items()):
            if now >= due:
                del self._release_at[code]
                self._release(code)

    def _release(self, code: str) -> None:
        self.context.scanned.discard(code)
        logger.debug("Released %s for retry", code)

    def _notify(self, event: ConfirmedScan) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as exc:
                logger.error("Scan listener failed for %s: %s", event.code, exc)

    async def drain(self) -> None:
        """Wait for every in-flight store write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # MARKERS
    # =========================================================================

    def _commit_marker(self, code: str, frame: Rect) -> None:
        markers = self.context.markers
        existing = markers.get(code)
        if existing is not None:
            markers[code] = replace(existing, frame=frame)
        else:
            markers[code] = ConfirmedDetection.for_code(code, frame, self._clock())
        self._reassign_regions()

    def _refresh_marker(self, code: str, frame: Rect) -> None:
        marker = self.context.markers[code]
        if marker.frame != frame:
            self.context.markers[code] = replace(marker, frame=frame)
            self._reassign_regions()

    def _reassign_regions(self) -> None:
        ordered = assign_regions(
            self.context.markers.values(),
            group_size=self.group_size,
            row_tolerance=self.row_tolerance,
        )
        self.context.markers = {marker.code: marker for marker in ordered}

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    async def load(self) -> list[ScanRecord]:
        """Seed the scanned set with codes stored by earlier sessions."""
        records = await self.store.load_all()
        self.context.scanned.update(record.code for record in records)
        logger.info("Loaded %s stored scans", len(records))
        return records

    def clear_session(self) -> None:
        """Forget markers, scanned codes and tracks (stored scans are kept)."""
        self._generation += 1
        self._release_at.clear()
        self.context.reset()
        logger.info("Session cleared")

    async def clear_all(self) -> None:
        """Remove stored scans, then reset the session."""
        await self.store.clear_all()
        self.clear_session()

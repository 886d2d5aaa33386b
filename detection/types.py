"""
Type definitions for the detection module.

This module defines the core data structures used throughout the
stabilization pipeline: raw per-frame detections, tracks that follow a code
across frames, and confirmed detections shown to the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from config import (
    CONFIRMATION_THRESHOLD,
    IOU_MATCH_THRESHOLD,
    MIN_BOX_AREA_RATIO,
    MIN_ASPECT_RATIO,
    MAX_ASPECT_RATIO,
    TRACK_TIMEOUT_MS,
)
from geometry import Point, Rect

DetectionStatus = Literal["confirmed"]


@dataclass(frozen=True)
class Detection:
    """A code read reported by the camera for a single frame.

    Detections have no identity across frames. Either ``frame`` or
    ``corners`` locates the code; both may be missing on partial reads.

    Attributes:
        value: Decoded code string (may be None or empty on partial reads)
        frame: Bounding rectangle in screen coordinates
        corners: Optional 4 corner points of the code
    """

    value: str | None
    frame: Rect | None = None
    corners: Sequence[Point] | None = None

    @property
    def rect(self) -> Rect | None:
        """Bounding rectangle, derived from the corners when frame is absent."""
        if self.frame is not None:
            return self.frame
        if self.corners is not None and len(self.corners) == 4:
            return Rect.from_corners(self.corners)
        return None


@dataclass(frozen=True)
class Track:
    """Belief that one physical code has been observed across frames.

    Attributes:
        handle: Registry-generated identifier
        code: Decoded code value
        frame: Most recent observed rectangle
        hit_count: Number of sightings (>= 1)
        last_seen: Timestamp of the most recent sighting (ms)
    """

    handle: int
    code: str
    frame: Rect
    hit_count: int
    last_seen: float


@dataclass(frozen=True)
class ConfirmedDetection:
    """A code confirmed and persisted during this session (a marker).

    Created once per code. Only the frame is refreshed afterwards, and the
    region fields are recomputed whenever the confirmed set changes.
    """

    id: str
    code: str
    frame: Rect
    timestamp: float
    status: DetectionStatus = "confirmed"
    region_index: int | None = None
    index_in_region: int | None = None

    @classmethod
    def for_code(cls, code: str, frame: Rect, timestamp: float) -> ConfirmedDetection:
        return cls(id=f"marker-{code}", code=code, frame=frame, timestamp=timestamp)


@dataclass(frozen=True)
class DetectionConfig:
    """Tunables for validation, tracking and confirmation.

    Attributes:
        confirmation_threshold: Sightings required before a track is trusted.
        iou_threshold: Minimum IoU for a detection to continue a track.
        min_box_area_ratio: Minimum detection area / frame area.
        min_aspect_ratio: Minimum width / height.
        max_aspect_ratio: Maximum width / height.
        track_timeout_ms: Idle time after which a track is forgotten.
    """

    confirmation_threshold: int = CONFIRMATION_THRESHOLD
    iou_threshold: float = IOU_MATCH_THRESHOLD
    min_box_area_ratio: float = MIN_BOX_AREA_RATIO
    min_aspect_ratio: float = MIN_ASPECT_RATIO
    max_aspect_ratio: float = MAX_ASPECT_RATIO
    track_timeout_ms: float = TRACK_TIMEOUT_MS

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            ValueError: If any parameter is invalid.
        """
        if not isinstance(self.confirmation_threshold, int) or self.confirmation_threshold < 1:
            raise ValueError(
                f"confirmation_threshold must be an integer >= 1, got {self.confirmation_threshold}"
            )
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError(f"iou_threshold must be within [0, 1], got {self.iou_threshold}")
        if self.min_box_area_ratio < 0:
            raise ValueError(
                f"min_box_area_ratio must be non-negative, got {self.min_box_area_ratio}"
            )
        if not (0 < self.min_aspect_ratio <= self.max_aspect_ratio):
            raise ValueError(
                "aspect ratio range must satisfy 0 < min <= max, "
                f"got [{self.min_aspect_ratio}, {self.max_aspect_ratio}]"
            )
        if self.track_timeout_ms <= 0:
            raise ValueError(f"track_timeout_ms must be positive, got {self.track_timeout_ms}")

"""Shared geometry utilities for axis-aligned rectangles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

# Corner point as (x, y)
Point = tuple[float, float]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in screen coordinates.

    (x, y) is the top-left corner.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def aspect_ratio(self) -> float:
        """Width / height. Only meaningful for positive rectangles."""
        return self.width / self.height

    @property
    def is_positive(self) -> bool:
        return self.width > 0 and self.height > 0

    @classmethod
    def from_corners(cls, corners: Sequence[Point]) -> Rect:
        """Bounding rectangle of a quadrilateral given as corner points."""
        x_coords = [p[0] for p in corners]
        y_coords = [p[1] for p in corners]
        x1, y1 = min(x_coords), min(y_coords)
        return cls(x1, y1, max(x_coords) - x1, max(y_coords) - y1)


@dataclass(frozen=True)
class RegionOfInterest:
    """Viewing window that gates which detections are eligible."""

    left: float
    top: float
    width: float
    height: float


def overlap_ratio(rect_a: Rect, rect_b: Rect) -> float:
    """Compute intersection-over-union between two rectangles."""
    inter_x1 = max(rect_a.x, rect_b.x)
    inter_y1 = max(rect_a.y, rect_b.y)
    inter_x2 = min(rect_a.x + rect_a.width, rect_b.x + rect_b.width)
    inter_y2 = min(rect_a.y + rect_a.height, rect_b.y + rect_b.height)

    inter_w = max(0.0, inter_x2 - inter_x1)
    inter_h = max(0.0, inter_y2 - inter_y1)
    inter_area = inter_w * inter_h
    if inter_area <= 0:
        return 0.0

    denom = rect_a.area + rect_b.area - inter_area
    if denom <= 0:
        return 0.0
    return min(1.0, inter_area / denom)


def contains_point(x: float, y: float, roi: RegionOfInterest) -> bool:
    """Check if a point lies inside the ROI (edges included)."""
    return (
        roi.left <= x <= roi.left + roi.width
        and roi.top <= y <= roi.top + roi.height
    )


def viewfinder_roi(
    screen_width: float,
    screen_height: float,
    width_ratio: float,
    height_ratio: float,
    vertical_offset: float = 0.0,
) -> RegionOfInterest:
    """Derive the viewfinder ROI from display geometry.

    The window is centred horizontally and vertically, then shifted by
    ``vertical_offset`` pixels (negative moves it up).
    """
    width = screen_width * width_ratio
    height = screen_height * height_ratio
    left = (screen_width - width) / 2
    top = (screen_height - height) / 2 + vertical_offset
    return RegionOfInterest(left=left, top=top, width=width, height=height)

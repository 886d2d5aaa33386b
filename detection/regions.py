"""
Region assignment for confirmed detections.

Confirmed codes are laid out in reading order (top-to-bottom, then
left-to-right within a row) and bucketed into fixed-size regions. The
assignment is recomputed from scratch over the whole confirmed set each
time it changes, which is fine for the handful of codes a session holds.
"""

from __future__ import annotations

import math
from dataclasses import replace
from functools import cmp_to_key
from typing import Iterable

from config import REGION_GROUP_SIZE, REGION_ROW_TOLERANCE

from .types import ConfirmedDetection


def _reading_order(row_tolerance: float):
    def compare(a: ConfirmedDetection, b: ConfirmedDetection) -> float:
        a_x, a_y = a.frame.center
        b_x, b_y = b.frame.center
        if abs(a_y - b_y) > row_tolerance:
            return a_y - b_y
        return a_x - b_x

    return cmp_to_key(compare)


def assign_regions(
    detections: Iterable[ConfirmedDetection],
    group_size: int | None = None,
    row_tolerance: float | None = None,
) -> list[ConfirmedDetection]:
    """Assign region_index and index_in_region to confirmed detections.

    Args:
        detections: Confirmed detections in any order.
        group_size: Detections per region (defaults to REGION_GROUP_SIZE).
        row_tolerance: Vertical centre difference still considered the same
            row (defaults to REGION_ROW_TOLERANCE).

    Returns:
        New list sorted in reading order with region fields filled in.
    """
    if group_size is None:
        group_size = REGION_GROUP_SIZE
    if row_tolerance is None:
        row_tolerance = REGION_ROW_TOLERANCE
    if group_size < 1:
        raise ValueError(f"group_size must be >= 1, got {group_size}")

    ordered = sorted(detections, key=_reading_order(row_tolerance))
    return [
        replace(det, region_index=idx // group_size, index_in_region=idx % group_size)
        for idx, det in enumerate(ordered)
    ]


def region_count(detections: Iterable[ConfirmedDetection], group_size: int | None = None) -> int:
    """Number of regions needed for the given detections."""
    if group_size is None:
        group_size = REGION_GROUP_SIZE
    return math.ceil(len(list(detections)) / group_size)

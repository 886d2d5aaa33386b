"""
Track registry.

Reconstructs code identity across frames from (value, spatial overlap).
Tracks live in an insertion-ordered arena keyed by a generated handle, so
several instances of the same code at different places stay distinct.

Matching takes the FIRST sufficiently overlapping track, not the best one,
and an update replaces the frame outright (no smoothing).
"""

from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Iterator

from geometry import Rect, overlap_ratio

from .types import Track


class TrackRegistry:
    """In-memory collection of active tracks.

    Not thread-safe: a single owner (the scan coordinator on its event loop)
    performs every mutation.
    """

    def __init__(self) -> None:
        self._tracks: dict[int, Track] = {}
        self._handles = itertools.count(1)

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(list(self._tracks.values()))

    @property
    def tracks(self) -> list[Track]:
        """Snapshot of live tracks in insertion order."""
        return list(self._tracks.values())

    def get(self, handle: int) -> Track | None:
        return self._tracks.get(handle)

    def find_match(self, code: str, frame: Rect, iou_threshold: float) -> Track | None:
        """Return the first track with the same code overlapping ``frame`` enough."""
        for track in self._tracks.values():
            if track.code != code:
                continue
            if overlap_ratio(track.frame, frame) >= iou_threshold:
                return track
        return None

    def create(self, code: str, frame: Rect, now: float) -> Track:
        """Start a new track with a single sighting."""
        track = Track(
            handle=next(self._handles),
            code=code,
            frame=frame,
            hit_count=1,
            last_seen=now,
        )
        self._tracks[track.handle] = track
        return track

    def update(self, track: Track, frame: Rect, now: float) -> Track:
        """Record another sighting and return the new authoritative track.

        Raises:
            KeyError: If the track is no longer in the registry.
        """
        current = self._tracks[track.handle]
        updated = replace(
            current,
            frame=frame,
            hit_count=current.hit_count + 1,
            last_seen=now,
        )
        self._tracks[track.handle] = updated
        return updated

    def expire(self, now: float, timeout_ms: float) -> list[Track]:
        """Remove tracks idle for at least ``timeout_ms`` and return them."""
        expired = [t for t in self._tracks.values() if now - t.last_seen >= timeout_ms]
        for track in expired:
            del self._tracks[track.handle]
        return expired

    def clear(self) -> None:
        self._tracks.clear()

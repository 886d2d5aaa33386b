"""Confirmation policy: when a track has produced a trustworthy read."""

from .types import Track


def is_confirmed(track: Track, threshold: int) -> bool:
    """Check if a track has been seen at least ``threshold`` times.

    Confirmation is derived, never stored; callers re-check after every
    create and update.
    """
    return track.hit_count >= threshold

"""
Code detection stabilization module.

This module turns noisy per-frame code detections into stable tracks and
confirmed detections. Nothing here touches the event loop or storage;
the scan package drives it.

Key components:
- types: Core data structures (Detection, Track, ConfirmedDetection, DetectionConfig)
- validation: Per-detection acceptance checks (ROI, area, aspect ratio)
- tracking: TrackRegistry matching detections to tracks across frames
- confirmation: Hit-count confirmation policy
- regions: Reading-order region assignment for confirmed detections
"""

from .types import Detection, Track, ConfirmedDetection, DetectionConfig
from .validation import is_well_formed, is_acceptable, rejection_reason
from .tracking import TrackRegistry
from .confirmation import is_confirmed
from .regions import assign_regions, region_count

__all__ = [
    "Detection",
    "Track",
    "ConfirmedDetection",
    "DetectionConfig",
    "is_well_formed",
    "is_acceptable",
    "rejection_reason",
    "TrackRegistry",
    "is_confirmed",
    "assign_regions",
    "region_count",
]

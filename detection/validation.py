"""
Detection validation.

Functions for deciding whether a raw per-frame detection is worth tracking.
Rejections are expected and frequent; nothing here logs or raises.
"""

from geometry import RegionOfInterest, contains_point

from .types import Detection, DetectionConfig


def is_well_formed(detection: Detection) -> bool:
    """Check that a detection has a value and a positive-area location."""
    if not detection.value:
        return False
    rect = detection.rect
    return rect is not None and rect.is_positive


def rejection_reason(
    detection: Detection,
    roi: RegionOfInterest,
    frame_width: float,
    frame_height: float,
    config: DetectionConfig,
) -> str | None:
    """Explain why a detection is rejected, or return None if acceptable.

    Checks run cheapest-first: centre in ROI, then area ratio, then aspect.

    Args:
        detection: Well-formed detection to check.
        roi: Region of interest the centre must fall inside.
        frame_width: Width of the frame the detection was reported in.
        frame_height: Height of the frame the detection was reported in.
        config: Area and aspect ratio limits.

    Returns:
        Short rejection reason, or None if the detection passes.
    """
    rect = detection.rect
    if rect is None or not rect.is_positive:
        return "missing geometry"

    center_x, center_y = rect.center
    if not contains_point(center_x, center_y, roi):
        return f"center ({center_x:.0f}, {center_y:.0f}) outside region of interest"

    frame_area = frame_width * frame_height
    if frame_area <= 0:
        return "empty frame"
    area_ratio = rect.area / frame_area
    if area_ratio < config.min_box_area_ratio:
        return f"area_ratio {area_ratio:.5f} below {config.min_box_area_ratio}"

    aspect_ratio = rect.aspect_ratio
    if aspect_ratio < config.min_aspect_ratio or aspect_ratio > config.max_aspect_ratio:
        return (
            f"aspect_ratio {aspect_ratio:.2f} outside "
            f"[{config.min_aspect_ratio}, {config.max_aspect_ratio}]"
        )

    return None


def is_acceptable(
    detection: Detection,
    roi: RegionOfInterest,
    frame_width: float,
    frame_height: float,
    config: DetectionConfig,
) -> bool:
    """Check if a detection passes the ROI, area and aspect ratio checks."""
    return rejection_reason(detection, roi, frame_width, frame_height, config) is None

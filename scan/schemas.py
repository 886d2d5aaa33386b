"""Pydantic schemas for frame dumps and web API responses.

Domain classes (Detection, ScanRecord, etc.) live in detection/ and
scan/store.py. These schemas define the exact wire format read from JSON
Lines frame dumps and returned by the web viewer.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from detection import Detection
from geometry import Rect


# ---------------------------------------------------------------------------
# Frame dumps
# ---------------------------------------------------------------------------

class RectIn(BaseModel):
    x: float
    y: float
    width: float
    height: float

    def to_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


class PointIn(BaseModel):
    x: float
    y: float


class DetectionIn(BaseModel):
    """One code read as reported by the camera. Every field may be missing."""
    value: str | None = None
    frame: RectIn | None = None
    corners: list[PointIn] | None = None

    def to_detection(self) -> Detection:
        return Detection(
            value=self.value,
            frame=self.frame.to_rect() if self.frame is not None else None,
            corners=[(p.x, p.y) for p in self.corners] if self.corners else None,
        )


class FrameIn(BaseModel):
    """One camera frame worth of detections."""
    timestamp_ms: float | None = None
    detections: list[DetectionIn] = Field(default_factory=list)

    def to_detections(self) -> list[Detection]:
        return [d.to_detection() for d in self.detections]


# ---------------------------------------------------------------------------
# Web API
# ---------------------------------------------------------------------------

class ProductOut(BaseModel):
    id: str
    codes: list[str]
    count: int


class ProductsResponse(BaseModel):
    """Response for GET /api/products."""
    products: list[ProductOut]
    total_products: int
    total_scans: int


class ClearResponse(BaseModel):
    """Response for POST /api/clear."""
    cleared: bool

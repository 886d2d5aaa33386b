"""Shared pytest fixtures for the stabilization pipeline tests.

Geometry follows the reference scenario: a 200x200 region of interest at
(100, 100) inside a 400x800 frame, with 50x50 codes centred in it.
"""
import pytest

from detection import Detection, DetectionConfig
from geometry import Rect, RegionOfInterest
from scan import InMemoryScanStore, ScanCoordinator, ScanGeometry

ROI = RegionOfInterest(left=100, top=100, width=200, height=200)
GEOMETRY = ScanGeometry(roi=ROI, frame_width=400, frame_height=800)


def make_detection(value="ABC-001", x=150, y=150, width=50, height=50) -> Detection:
    return Detection(value=value, frame=Rect(x, y, width, height))


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def roi():
    return ROI


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryScanStore()


@pytest.fixture
def make_coordinator(store, clock):
    """Factory for coordinators wired to the in-memory store and fake clock."""

    def _make(threshold=1, retry_delay_ms=0, store_override=None, **config_kwargs):
        config = DetectionConfig(confirmation_threshold=threshold, **config_kwargs)
        return ScanCoordinator(
            store_override if store_override is not None else store,
            config,
            GEOMETRY,
            clock=clock,
            retry_delay_ms=retry_delay_ms,
        )

    return _make

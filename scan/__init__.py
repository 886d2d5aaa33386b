"""Scanning service package."""

from .coordinator import (
    ConfirmedScan,
    FrameResult,
    ScanContext,
    ScanCoordinator,
    ScanGeometry,
)
from .keys import product_group_key
from .service import load_frames, replay_frames, run_replay
from .session import ScanSession
from .store import (
    DuplicateScanError,
    InMemoryScanStore,
    Product,
    ScanRecord,
    ScanStore,
    ScanStoreError,
    SqliteScanStore,
    group_products,
)

__all__ = [
    "ConfirmedScan",
    "FrameResult",
    "ScanContext",
    "ScanCoordinator",
    "ScanGeometry",
    "ScanSession",
    "product_group_key",
    "load_frames",
    "replay_frames",
    "run_replay",
    "DuplicateScanError",
    "InMemoryScanStore",
    "Product",
    "ScanRecord",
    "ScanStore",
    "ScanStoreError",
    "SqliteScanStore",
    "group_products",
]

"""Frame replay service for reuse across CLI and tests.

Replays recorded camera frames (JSON Lines, one frame per line) through a
coordinator using the frames' own timestamps, so tracking, confirmation and
expiry behave exactly as they did live.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError
from tqdm import tqdm

from config import (
    DEFAULT_SCREEN_WIDTH,
    DEFAULT_SCREEN_HEIGHT,
    EXPIRY_SWEEP_INTERVAL_MS,
    FAILED_SCAN_RETRY_DELAY_MS,
)
from detection import DetectionConfig, region_count

from .coordinator import ScanCoordinator, ScanGeometry
from .schemas import FrameIn
from .store import ScanStore, SqliteScanStore

logger = logging.getLogger(__name__)

# Spacing assumed between frames that carry no timestamp (30 fps)
DEFAULT_FRAME_INTERVAL_MS = 1000 / 30


def load_frames(path: Path | str) -> list[FrameIn]:
    """Parse a JSON Lines frame dump, skipping blank and invalid lines."""
    path = Path(path)
    if not path.is_file():
        raise ValueError(f"Frame file not found: {path}")

    frames = []
    with path.open() as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                frames.append(FrameIn.model_validate_json(line))
            except ValidationError as exc:
                logger.warning("Skipping invalid frame on line %s: %s", line_no, exc.errors()[0]["msg"])
    return frames


def _empty_stats() -> dict:
    return {
        "frames": 0,
        "detections": 0,
        "malformed": 0,
        "rejected": 0,
        "duplicates": 0,
        "unsaved": 0,
        "tracks_created": 0,
        "tracks_expired": 0,
        "confirmed": 0,
        "persisted": 0,
        "failed": 0,
    }


async def replay_frames(
    frames: Iterable[FrameIn],
    coordinator: ScanCoordinator,
    sweep_interval_ms: float = EXPIRY_SWEEP_INTERVAL_MS,
    total: int | None = None,
    progress: bool = True,
) -> dict:
    """Feed recorded frames to a coordinator and return replay statistics.

    The expiry sweep runs in frame time: every ``sweep_interval_ms`` of
    elapsed timestamps, independent of which codes the frames contain.
    """
    stats = _empty_stats()
    persisted_before = coordinator.persisted
    failed_before = coordinator.failed

    frame_time = 0.0
    next_sweep: float | None = None

    for frame in tqdm(frames, total=total, desc="Replaying", unit="frame", disable=not progress):
        if frame.timestamp_ms is not None:
            frame_time = frame.timestamp_ms
        elif stats["frames"]:
            frame_time += DEFAULT_FRAME_INTERVAL_MS

        if next_sweep is None:
            next_sweep = frame_time + sweep_interval_ms
        while frame_time >= next_sweep:
            stats["tracks_expired"] += coordinator.expire_tracks(next_sweep)
            next_sweep += sweep_interval_ms

        result = coordinator.process_frame(frame.to_detections(), now=frame_time)
        stats["frames"] += 1
        stats["detections"] += result.detections
        stats["malformed"] += result.malformed
        stats["rejected"] += result.rejected
        stats["duplicates"] += result.duplicates
        stats["unsaved"] += result.unsaved
        stats["tracks_created"] += result.created
        stats["confirmed"] += len(result.confirmed)

        # Let store writes started by this frame make progress.
        await asyncio.sleep(0)

    await coordinator.drain()
    stats["persisted"] = coordinator.persisted - persisted_before
    stats["failed"] = coordinator.failed - failed_before
    return stats


def run_replay(
    source: Path | str,
    db_path: Path | str | None = None,
    config: DetectionConfig | None = None,
    screen_width: float = DEFAULT_SCREEN_WIDTH,
    screen_height: float = DEFAULT_SCREEN_HEIGHT,
    sweep_interval_ms: float = EXPIRY_SWEEP_INTERVAL_MS,
    retry_delay_ms: float = FAILED_SCAN_RETRY_DELAY_MS,
    store: ScanStore | None = None,
    progress: bool = True,
) -> dict:
    """Replay a frame dump into a store and return statistics.

    Raises:
        ValueError: If the file is missing or the configuration is invalid.
    """
    if config is None:
        config = DetectionConfig()
    config.validate()
    if screen_width <= 0 or screen_height <= 0:
        raise ValueError(f"screen size must be positive, got {screen_width}x{screen_height}")

    frames = load_frames(source)
    logger.info("Loaded %s frames from %s", len(frames), source)

    if store is None:
        store = SqliteScanStore(db_path)

    async def _run() -> dict:
        coordinator = ScanCoordinator(
            store,
            config,
            ScanGeometry.for_screen(screen_width, screen_height),
            retry_delay_ms=retry_delay_ms,
        )
        await coordinator.load()
        stats = await replay_frames(
            frames,
            coordinator,
            sweep_interval_ms=sweep_interval_ms,
            total=len(frames),
            progress=progress,
        )
        stats["regions"] = region_count(coordinator.markers, coordinator.group_size)
        stats["markers"] = [
            {
                "code": m.code,
                "region": m.region_index,
                "index_in_region": m.index_in_region,
            }
            for m in coordinator.markers
        ]
        return stats

    return asyncio.run(_run())

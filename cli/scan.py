"""Replay command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import logging

from config import (
    CONFIRMATION_THRESHOLD,
    DEFAULT_SCREEN_WIDTH,
    DEFAULT_SCREEN_HEIGHT,
    EXPIRY_SWEEP_INTERVAL_MS,
    FAILED_SCAN_RETRY_DELAY_MS,
    IOU_MATCH_THRESHOLD,
    TRACK_TIMEOUT_MS,
)
from detection import DetectionConfig
from scan import ScanStoreError, run_replay

logger = logging.getLogger(__name__)


def parse_screen_size(value: str) -> tuple[int, int]:
    """Parse a WIDTHxHEIGHT screen size."""
    try:
        width, height = (int(part) for part in value.lower().split("x", 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got '{value}'")
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError(f"screen size must be positive, got '{value}'")
    return width, height


def add_replay_subparser(subparsers: argparse._SubParsersAction) -> None:
    replay_parser = subparsers.add_parser(
        "replay",
        help="Replay recorded camera frames (JSON Lines) and store confirmed scans",
    )
    replay_parser.add_argument(
        "source",
        help="JSON Lines file with one frame of detections per line",
    )
    replay_parser.add_argument(
        "--db",
        help="SQLite database for confirmed scans (default: scans.db)",
    )
    replay_parser.add_argument(
        "--threshold", "-t",
        type=int,
        default=CONFIRMATION_THRESHOLD,
        help=f"Sightings required to confirm a code (default: {CONFIRMATION_THRESHOLD})",
    )
    replay_parser.add_argument(
        "--iou",
        type=float,
        default=IOU_MATCH_THRESHOLD,
        help=f"IoU needed to continue a track (default: {IOU_MATCH_THRESHOLD})",
    )
    replay_parser.add_argument(
        "--track-timeout",
        type=float,
        default=TRACK_TIMEOUT_MS,
        metavar="MS",
        help=f"Forget tracks idle this long (default: {TRACK_TIMEOUT_MS})",
    )
    replay_parser.add_argument(
        "--sweep-interval",
        type=float,
        default=EXPIRY_SWEEP_INTERVAL_MS,
        metavar="MS",
        help=f"Expiry sweep interval in frame time (default: {EXPIRY_SWEEP_INTERVAL_MS})",
    )
    replay_parser.add_argument(
        "--retry-delay",
        type=float,
        default=FAILED_SCAN_RETRY_DELAY_MS,
        metavar="MS",
        help=f"Wait before a failed scan may be retried (default: {FAILED_SCAN_RETRY_DELAY_MS})",
    )
    replay_parser.add_argument(
        "--screen",
        type=parse_screen_size,
        default=(DEFAULT_SCREEN_WIDTH, DEFAULT_SCREEN_HEIGHT),
        metavar="WxH",
        help=f"Screen size the frames were recorded at (default: {DEFAULT_SCREEN_WIDTH}x{DEFAULT_SCREEN_HEIGHT})",
    )
    replay_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the progress bar",
    )
    replay_parser.set_defaults(_cmd=cmd_replay)


def cmd_replay(args: argparse.Namespace) -> int:
    config = DetectionConfig(
        confirmation_threshold=args.threshold,
        iou_threshold=args.iou,
        track_timeout_ms=args.track_timeout,
    )
    screen_width, screen_height = args.screen

    try:
        stats = run_replay(
            args.source,
            db_path=args.db,
            config=config,
            screen_width=screen_width,
            screen_height=screen_height,
            sweep_interval_ms=args.sweep_interval,
            retry_delay_ms=args.retry_delay,
            progress=not args.no_progress,
        )
    except (ValueError, ScanStoreError) as exc:
        logger.error("%s", exc)
        return 1

    logger.info("%s", "=" * 50)
    logger.info("Replay Complete!")
    logger.info("%s", "=" * 50)
    logger.info("Frames:          %s", stats["frames"])
    logger.info("Detections:      %s", stats["detections"])
    logger.info("Malformed:       %s", stats["malformed"])
    logger.info("Rejected:        %s", stats["rejected"])
    logger.info("Duplicates:      %s", stats["duplicates"])
    logger.info("Unsaved:         %s", stats["unsaved"])
    logger.info("Tracks created:  %s", stats["tracks_created"])
    logger.info("Tracks expired:  %s", stats["tracks_expired"])
    logger.info("Confirmed:       %s", stats["confirmed"])
    logger.info("Persisted:       %s", stats["persisted"])
    logger.info("Failed:          %s", stats["failed"])
    logger.info("Regions:         %s", stats["regions"])
    for marker in stats["markers"]:
        logger.info(
            "  Region %s #%s  %s",
            marker["region"] + 1,
            marker["index_in_region"] + 1,
            marker["code"],
        )
    return 0

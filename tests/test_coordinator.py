"""Tests for the scan coordinator: confirmation, two-phase commit and markers."""

import asyncio
import logging

import pytest

from conftest import GEOMETRY, make_detection
from detection import Detection, DetectionConfig
from geometry import Rect, RegionOfInterest
from scan import ConfirmedScan, InMemoryScanStore, ScanCoordinator, ScanGeometry


def run(coro):
    return asyncio.run(coro)


class TestConfirmation:
    """Tests for frame processing up to confirmation."""

    def test_first_sighting_confirms_at_threshold_one(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)
        events = []
        coordinator.add_listener(events.append)

        async def scenario():
            result = coordinator.process_frame([make_detection()])
            assert result.confirmed == ["ABC-001"]
            assert coordinator.is_scanned("ABC-001")
            await coordinator.drain()

        run(scenario())

        assert store.calls == [("ABC-001", "ABC")]
        assert events == [ConfirmedScan(code="ABC-001", product_group_key="ABC")]
        [marker] = coordinator.markers
        assert marker.id == "marker-ABC-001"
        assert marker.status == "confirmed"
        assert marker.frame == Rect(150, 150, 50, 50)
        assert (marker.region_index, marker.index_in_region) == (0, 0)

    def test_confirms_on_third_frame(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=3)

        async def scenario():
            confirmed = []
            for t in (0, 33, 66):
                confirmed.append(coordinator.process_frame([make_detection()], now=t).confirmed)
            await coordinator.drain()
            return confirmed

        assert run(scenario()) == [[], [], ["ABC-001"]]
        assert store.calls == [("ABC-001", "ABC")]

    def test_same_code_twice_in_one_frame_counts_twice(self, make_coordinator):
        coordinator = make_coordinator(threshold=3)

        async def scenario():
            return coordinator.process_frame([make_detection(), make_detection(x=152)])

        result = run(scenario())
        assert (result.created, result.matched) == (1, 1)
        [track] = coordinator.registry.tracks
        assert track.hit_count == 2
        assert track.frame == Rect(152, 150, 50, 50)

    def test_duplicate_in_batch_skipped_once_confirmed(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)

        async def scenario():
            result = coordinator.process_frame([make_detection(), make_detection(x=152)])
            await coordinator.drain()
            return result

        result = run(scenario())
        assert result.confirmed == ["ABC-001"]
        assert result.duplicates == 1
        assert len(store.calls) == 1

    def test_corners_only_detection_confirms(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)
        detection = Detection("ABC-001", corners=[(150, 150), (200, 150), (200, 200), (150, 200)])

        async def scenario():
            coordinator.process_frame([detection])
            await coordinator.drain()

        run(scenario())
        assert coordinator.markers[0].frame == Rect(150, 150, 50, 50)

    def test_malformed_and_rejected_are_dropped(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)
        detections = [
            Detection(None, Rect(150, 150, 50, 50)),
            Detection("", Rect(150, 150, 50, 50)),
            Detection("ABC-001"),
            make_detection(x=10, y=10),
            make_detection(width=150, height=20),
        ]

        async def scenario():
            return coordinator.process_frame(detections)

        result = run(scenario())
        assert (result.detections, result.malformed, result.rejected) == (5, 3, 2)
        assert len(coordinator.registry) == 0
        assert store.calls == []

    def test_geometry_update_changes_roi(self, make_coordinator):
        coordinator = make_coordinator(threshold=1)
        coordinator.update_geometry(
            ScanGeometry(RegionOfInterest(0, 500, 400, 200), frame_width=400, frame_height=800)
        )

        async def scenario():
            result = coordinator.process_frame([make_detection()])
            await coordinator.drain()
            return result

        assert run(scenario()).rejected == 1

    def test_track_expiry_resets_hit_count(self, make_coordinator, clock):
        coordinator = make_coordinator(threshold=3)

        async def scenario():
            coordinator.process_frame([make_detection()])
            coordinator.process_frame([make_detection()])
            clock.advance(3000)
            assert coordinator.expire_tracks() == 1
            return coordinator.process_frame([make_detection()])

        result = run(scenario())
        assert result.created == 1
        assert result.confirmed == []
        assert coordinator.registry.tracks[0].hit_count == 1

    def test_invalid_config_rejected(self, store):
        with pytest.raises(ValueError, match="confirmation_threshold"):
            ScanCoordinator(store, DetectionConfig(confirmation_threshold=0), GEOMETRY)


class TestTwoPhaseCommit:
    """Tests for reservation, persistence and rollback."""

    def test_at_most_one_write_while_pending(self, make_coordinator):
        slow_store = InMemoryScanStore(delay=0.05)
        coordinator = make_coordinator(threshold=1, store_override=slow_store)

        async def scenario():
            results = [coordinator.process_frame([make_detection()], now=t) for t in range(10)]
            await asyncio.sleep(0)
            results.append(coordinator.process_frame([make_detection()], now=10))
            await coordinator.drain()
            return results

        results = run(scenario())
        assert slow_store.calls == [("ABC-001", "ABC")]
        assert sum(r.duplicates for r in results) == 10
        assert coordinator.persisted == 1

    def test_failed_write_releases_code_for_retry(self, make_coordinator):
        failing = InMemoryScanStore(fail_codes=["ABC-001"])
        coordinator = make_coordinator(threshold=1, store_override=failing)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()
            assert coordinator.failed == 1
            assert not coordinator.is_scanned("ABC-001")
            assert coordinator.markers == []

            failing.fail_codes.clear()
            coordinator.process_frame([make_detection()])
            await coordinator.drain()

        run(scenario())
        assert len(failing.calls) == 2
        assert coordinator.persisted == 1
        assert [m.code for m in coordinator.markers] == ["ABC-001"]

    def test_release_waits_for_retry_delay(self, make_coordinator):
        failing = InMemoryScanStore(fail_codes=["ABC-001"])
        coordinator = make_coordinator(threshold=1, retry_delay_ms=500, store_override=failing)

        async def scenario():
            coordinator.process_frame([make_detection()], now=0)
            await coordinator.drain()
            blocked = coordinator.process_frame([make_detection()], now=499)
            still_reserved = coordinator.is_scanned("ABC-001")
            failing.fail_codes.clear()
            retried = coordinator.process_frame([make_detection()], now=500)
            await coordinator.drain()
            return blocked, still_reserved, retried

        blocked, still_reserved, retried = run(scenario())
        assert blocked.duplicates == 1
        assert still_reserved
        assert retried.confirmed == ["ABC-001"]
        assert len(failing.calls) == 2
        assert [m.code for m in coordinator.markers] == ["ABC-001"]

    def test_release_happens_on_expiry_sweep(self, make_coordinator, clock):
        failing = InMemoryScanStore(fail_codes=["ABC-001"])
        coordinator = make_coordinator(threshold=1, retry_delay_ms=500, store_override=failing)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()
            clock.advance(500)
            coordinator.expire_tracks()

        run(scenario())
        assert not coordinator.is_scanned("ABC-001")

    def test_failing_key_extractor_drops_only_that_detection(self, store, caplog):
        def picky_key(code):
            if code.startswith("ABC"):
                raise ValueError("no separator")
            return code.split("-", 1)[0]

        coordinator = ScanCoordinator(
            store,
            DetectionConfig(confirmation_threshold=1),
            GEOMETRY,
            key_extractor=picky_key,
        )

        async def scenario():
            result = coordinator.process_frame(
                [make_detection("ABC-001"), make_detection("XYZ-009", x=230, y=230)]
            )
            await coordinator.drain()
            return result

        with caplog.at_level(logging.ERROR, logger="scan.coordinator"):
            result = run(scenario())
        assert result.unsaved == 1
        assert result.confirmed == ["XYZ-009"]
        assert not coordinator.is_scanned("ABC-001")
        assert sorted(t.code for t in coordinator.registry) == ["ABC-001", "XYZ-009"]
        assert store.calls == [("XYZ-009", "XYZ")]
        assert "Could not derive product key for ABC-001" in caplog.text

    def test_no_running_loop_leaves_code_unreserved(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)

        result = coordinator.process_frame([make_detection()])

        assert result.confirmed == []
        assert result.unsaved == 1
        assert not coordinator.is_scanned("ABC-001")

        async def scenario():
            retried = coordinator.process_frame([make_detection()])
            await coordinator.drain()
            return retried

        assert run(scenario()).confirmed == ["ABC-001"]
        assert store.calls == [("ABC-001", "ABC")]

    def test_failed_write_logs_error(self, make_coordinator, caplog):
        coordinator = make_coordinator(
            threshold=1, store_override=InMemoryScanStore(fail_codes=["ABC-001"])
        )

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()

        with caplog.at_level(logging.ERROR, logger="scan.coordinator"):
            run(scenario())
        assert "Scan failed for ABC-001" in caplog.text

    def test_code_stored_by_earlier_session_stays_scanned(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)

        async def scenario():
            await store.add_scan("ABC-001", "ABC")
            coordinator.process_frame([make_detection()])
            await coordinator.drain()

        run(scenario())
        assert coordinator.is_scanned("ABC-001")
        assert coordinator.markers == []
        assert (coordinator.persisted, coordinator.failed) == (0, 0)

    def test_load_seeds_scanned_codes(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)

        async def scenario():
            await store.add_scan("ABC-001", "ABC")
            records = await coordinator.load()
            result = coordinator.process_frame([make_detection()])
            await coordinator.drain()
            return records, result

        records, result = run(scenario())
        assert [r.code for r in records] == ["ABC-001"]
        assert result.duplicates == 1
        assert len(store.calls) == 1

    def test_listener_errors_do_not_stop_others(self, make_coordinator, caplog):
        coordinator = make_coordinator(threshold=1)
        events = []

        def broken(event):
            raise RuntimeError("boom")

        coordinator.add_listener(broken)
        coordinator.add_listener(events.append)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()

        with caplog.at_level(logging.ERROR, logger="scan.coordinator"):
            run(scenario())
        assert [e.code for e in events] == ["ABC-001"]
        assert "Scan listener failed" in caplog.text


class TestMarkers:
    """Tests for marker refresh and region assignment."""

    def test_marker_follows_code_while_visible(self, make_coordinator):
        coordinator = make_coordinator(threshold=1)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()
            return coordinator.process_frame([make_detection(x=160, y=170)])

        result = run(scenario())
        assert result.duplicates == 1
        [marker] = coordinator.markers
        assert marker.frame == Rect(160, 170, 50, 50)

    def test_regions_follow_reading_order(self, make_coordinator):
        coordinator = make_coordinator(threshold=1)
        # Second row first, then the top row right to left.
        detections = [
            make_detection(f"ROW2-{i}", x=100 + 40 * i, y=220, width=30, height=30)
            for i in range(2)
        ]
        detections += [
            make_detection(f"ROW1-{i}", x=100 + 40 * i, y=120, width=30, height=30)
            for i in reversed(range(4))
        ]

        async def scenario():
            coordinator.process_frame(detections)
            await coordinator.drain()

        run(scenario())
        assert [(m.code, m.region_index, m.index_in_region) for m in coordinator.markers] == [
            ("ROW1-0", 0, 0),
            ("ROW1-1", 0, 1),
            ("ROW1-2", 0, 2),
            ("ROW1-3", 0, 3),
            ("ROW2-0", 1, 0),
            ("ROW2-1", 1, 1),
        ]

    def test_marker_timestamp_uses_clock(self, make_coordinator, clock):
        coordinator = make_coordinator(threshold=1)
        clock.advance(1234)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()

        run(scenario())
        assert coordinator.markers[0].timestamp == 1234

    def test_custom_key_extractor(self, store):
        coordinator = ScanCoordinator(
            store,
            DetectionConfig(confirmation_threshold=1),
            GEOMETRY,
            key_extractor=lambda code: code.rsplit("-", 1)[-1],
        )

        async def scenario():
            coordinator.process_frame([make_detection("ABC-001")])
            await coordinator.drain()

        run(scenario())
        assert store.calls == [("ABC-001", "001")]


class TestSessionLifecycle:
    """Tests for clearing the session and the store."""

    def test_clear_session_forgets_everything(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()
            coordinator.clear_session()

        run(scenario())
        assert coordinator.markers == []
        assert not coordinator.is_scanned("ABC-001")
        assert len(coordinator.registry) == 0
        assert len(store.products["ABC"]) == 1

    def test_write_finishing_after_clear_creates_no_marker(self, make_coordinator):
        slow_store = InMemoryScanStore(delay=0.05)
        coordinator = make_coordinator(threshold=1, store_override=slow_store)
        events = []
        coordinator.add_listener(events.append)

        async def scenario():
            coordinator.process_frame([make_detection()])
            coordinator.clear_session()
            await coordinator.drain()

        run(scenario())
        assert coordinator.persisted == 1
        assert coordinator.markers == []
        assert events == []
        assert not coordinator.is_scanned("ABC-001")

    def test_stale_release_does_not_unreserve_new_session(self, make_coordinator):
        failing = InMemoryScanStore(fail_codes=["ABC-001"])
        coordinator = make_coordinator(threshold=1, retry_delay_ms=500, store_override=failing)

        async def scenario():
            coordinator.process_frame([make_detection()], now=0)
            await coordinator.drain()
            coordinator.clear_session()

            failing.fail_codes.clear()
            coordinator.process_frame([make_detection()], now=10)
            await coordinator.drain()
            # Past the first session's release time.
            coordinator.process_frame([make_detection()], now=1000)

        run(scenario())
        assert coordinator.is_scanned("ABC-001")
        assert [m.code for m in coordinator.markers] == ["ABC-001"]

    def test_clear_all_empties_store(self, make_coordinator, store):
        coordinator = make_coordinator(threshold=1)

        async def scenario():
            coordinator.process_frame([make_detection()])
            await coordinator.drain()
            await coordinator.clear_all()
            return await store.load_all()

        assert run(scenario()) == []
        assert coordinator.markers == []
        assert not coordinator.is_scanned("ABC-001")

"""Unit tests for the ChangeTracker watermark logic."""

import threading

from bao.tracker import ChangeTracker


class TestShouldProcess:
    def test_unknown_path_is_processed(self):
        tracker = ChangeTracker()
        assert tracker.should_process("/out/a.js", 1.0)

    def test_strictly_newer_mtime_required(self):
        tracker = ChangeTracker()
        tracker.record_processed("/out/a.js", when=100.0)

        assert not tracker.should_process("/out/a.js", 99.0)
        assert not tracker.should_process("/out/a.js", 100.0)
        assert tracker.should_process("/out/a.js", 100.5)

    def test_record_uses_wall_clock(self):
        tracker = ChangeTracker(clock=lambda: 500.0)
        stamp = tracker.record_processed("/out/a.js")

        assert stamp == 500.0
        assert tracker.watermark("/out/a.js") == 500.0

    def test_watermark_overwritten_on_success(self):
        tracker = ChangeTracker()
        tracker.record_processed("/out/a.js", when=10.0)
        tracker.record_processed("/out/a.js", when=20.0)
        assert tracker.watermark("/out/a.js") == 20.0


class TestLifetime:
    def test_snapshot_round_trip(self):
        tracker = ChangeTracker()
        tracker.record_processed("/out/a.js", when=10.0)

        restored = ChangeTracker(initial=tracker.snapshot())

        assert not restored.should_process("/out/a.js", 5.0)
        assert "/out/a.js" in restored
        assert len(restored) == 1

    def test_entries_never_removed(self):
        tracker = ChangeTracker()
        for i in range(5):
            tracker.record_processed(f"/out/{i}.js", when=float(i))
        assert len(tracker) == 5

    def test_concurrent_writers(self):
        tracker = ChangeTracker()

        def worker(n):
            for i in range(200):
                tracker.record_processed(f"/out/{n}/{i}.js")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(tracker) == 8 * 200

"""Tests for the per-podcast sync guard."""

import threading

import pytest

from src.podcast.errors import SyncInProgressError
from src.podcast.sync_guard import SyncGuard


class TestSyncGuard:
    def test_try_acquire_is_exclusive_per_id(self):
        guard = SyncGuard()

        assert guard.try_acquire("a") is True
        assert guard.try_acquire("a") is False
        assert guard.try_acquire("b") is True
        assert guard.running == {"a", "b"}

    def test_release_allows_reacquire(self):
        guard = SyncGuard()
        guard.try_acquire("a")
        guard.release("a")

        assert guard.is_running("a") is False
        assert guard.try_acquire("a") is True

    def test_hold_rejects_second_holder(self):
        guard = SyncGuard()

        with guard.hold("a"):
            assert guard.is_running("a")
            with pytest.raises(SyncInProgressError) as exc_info:
                with guard.hold("a"):
                    pass

        assert exc_info.value.podcast_id == "a"
        assert "sync already in progress for podcast: a" in str(exc_info.value)
        assert guard.is_running("a") is False

    def test_hold_releases_on_error(self):
        guard = SyncGuard()

        with pytest.raises(RuntimeError):
            with guard.hold("a"):
                raise RuntimeError("boom")

        assert guard.is_running("a") is False

    def test_concurrent_acquire_has_single_winner(self):
        guard = SyncGuard()
        barrier = threading.Barrier(8)
        wins = []

        def contend():
            barrier.wait()
            if guard.try_acquire("same"):
                wins.append(1)

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1

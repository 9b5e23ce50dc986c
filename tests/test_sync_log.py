"""Tests for the sync log recorder."""

import pytest
from unittest.mock import Mock

from src.podcast.errors import FetchError
from src.podcast.sync_log import STATUS_FAILURE, STATUS_SUCCESS, SyncLogRecorder


@pytest.fixture
def recorder(repository):
    return SyncLogRecorder(repository)


@pytest.fixture
def podcast(repository):
    return repository.create_podcast(title="Test Podcast")


class TestSyncLogRecorder:
    def test_record_success(self, recorder, podcast):
        entry = recorder.record_success(podcast.id, added=3, updated=1)

        assert entry.status == STATUS_SUCCESS
        assert entry.episodes_added == 3
        assert entry.episodes_updated == 1
        assert entry.error_message is None

    def test_record_failure(self, recorder, podcast):
        entry = recorder.record_failure(
            podcast.id, FetchError("feed request failed with status: 404 Not Found")
        )

        assert entry.status == STATUS_FAILURE
        assert entry.error_message == "feed request failed with status: 404 Not Found"
        assert entry.episodes_added == 0

    def test_latest(self, recorder, podcast):
        recorder.record_success(podcast.id, 1, 0)
        recorder.record_failure(podcast.id, RuntimeError("boom"))

        assert recorder.latest(podcast.id).status == STATUS_FAILURE

    def test_history(self, recorder, podcast):
        for _ in range(3):
            recorder.record_success(podcast.id, 0, 0)

        entries, total = recorder.history(podcast.id, page=1, page_size=2)

        assert total == 3
        assert len(entries) == 2

    @pytest.mark.parametrize("page,page_size", [(0, 20), (1, 0), (-1, 5)])
    def test_history_validates_paging(self, page, page_size):
        repository = Mock()
        recorder = SyncLogRecorder(repository)

        with pytest.raises(ValueError):
            recorder.history("pod-1", page=page, page_size=page_size)

        repository.get_sync_logs.assert_not_called()

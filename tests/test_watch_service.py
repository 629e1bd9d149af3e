"""
Watch Service Unit Tests

Tests for watch session recording.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestApplyWatchSession:
    """Tests for the pure watch session update."""

    def test_first_session_creates_record(self, empty_progress):
        from pathway.services.watch_service import apply_watch_session

        record = apply_watch_session(empty_progress, 11, 0, 300, 600, NOW, threshold=90)

        assert record.total_watch_time == 300
        assert record.last_watched_position == 300
        assert record.completion_percentage == 50
        assert record.is_completed is False
        assert len(record.watch_sessions) == 1
        assert empty_progress.video_watch_times[11] is record
        assert empty_progress.total_time_spent == 300
        assert empty_progress.last_activity_at == NOW

    def test_overlapping_sessions_accumulate(self, empty_progress):
        """Verify sessions are appended, never merged."""
        from pathway.services.watch_service import apply_watch_session

        apply_watch_session(empty_progress, 11, 0, 100, 600, NOW, threshold=90)
        record = apply_watch_session(empty_progress, 11, 50, 100, 600, NOW, threshold=90)

        assert len(record.watch_sessions) == 2
        assert record.total_watch_time == 150
        assert record.last_watched_position == 100

    def test_last_position_never_moves_back(self, empty_progress):
        from pathway.services.watch_service import apply_watch_session

        apply_watch_session(empty_progress, 11, 0, 500, 600, NOW, threshold=90)
        record = apply_watch_session(empty_progress, 11, 0, 60, 600, NOW, threshold=90)

        assert record.last_watched_position == 500
        assert record.completion_percentage == 83

    def test_negative_interval_counts_as_zero(self, empty_progress):
        from pathway.services.watch_service import apply_watch_session

        record = apply_watch_session(empty_progress, 11, 200, 100, 600, NOW, threshold=90)

        assert record.watch_sessions[0].session_duration == 0
        assert record.total_watch_time == 0
        assert record.last_watched_position == 100

    def test_completion_threshold_and_cap(self, empty_progress):
        from pathway.services.watch_service import apply_watch_session

        record = apply_watch_session(empty_progress, 11, 0, 540, 600, NOW, threshold=90)
        assert record.completion_percentage == 90
        assert record.is_completed is True

        record = apply_watch_session(empty_progress, 11, 540, 700, 600, NOW, threshold=90)
        assert record.completion_percentage == 100

    def test_unknown_duration_leaves_percentage(self, empty_progress):
        from pathway.services.watch_service import apply_watch_session

        record = apply_watch_session(empty_progress, 11, 0, 300, 0, NOW, threshold=90)

        assert record.completion_percentage == 0
        assert record.total_watch_time == 300

    def test_watching_never_completes_the_video(self, empty_progress):
        """Verify a fully watched video is not added to completed videos."""
        from pathway.services.watch_service import apply_watch_session

        apply_watch_session(empty_progress, 11, 0, 600, 600, NOW, threshold=90)

        assert empty_progress.completed_videos == []
        assert empty_progress.current_position == 1


class TestRecordWatchSession:
    """Tests for record_watch_session."""

    @staticmethod
    def _run_on(document):
        async def run_mutation(user_id, mutation, db):
            await mutation(document)
            return document
        return run_mutation

    @pytest.mark.asyncio
    async def test_locked_video_is_denied(
        self, mock_async_session, student_id, published_videos, empty_progress
    ):
        from pathway.core.errors import AccessDenied
        from pathway.models.enums import UserRole

        context = (UserRole.STUDENT, published_videos[2], published_videos)

        with patch("pathway.services.access_service.load_access_context", AsyncMock(return_value=context)), \
                patch(
                    "pathway.services.progress_service.mutate_progress",
                    AsyncMock(side_effect=self._run_on(empty_progress)),
                ):
            from pathway.services.watch_service import record_watch_session

            with pytest.raises(AccessDenied):
                await record_watch_session(student_id, 13, 0, 60, mock_async_session)

        assert empty_progress.video_watch_times == {}
        assert empty_progress.total_time_spent == 0

    @pytest.mark.asyncio
    async def test_access_is_decided_on_the_locked_record(
        self, mock_async_session, student_id, published_videos, empty_progress
    ):
        """Verify a reset that lands before the write revokes access to the session."""
        from pathway.core.errors import AccessDenied
        from pathway.models.enums import UserRole

        context = (UserRole.STUDENT, published_videos[1], published_videos)
        empty_progress.completed_videos = [11]

        async def reset_then_mutate(user_id, mutation, db):
            empty_progress.completed_videos = []
            await mutation(empty_progress)
            return empty_progress

        with patch("pathway.services.access_service.load_access_context", AsyncMock(return_value=context)), \
                patch(
                    "pathway.services.progress_service.mutate_progress",
                    AsyncMock(side_effect=reset_then_mutate),
                ):
            from pathway.services.watch_service import record_watch_session

            with pytest.raises(AccessDenied):
                await record_watch_session(student_id, 12, 0, 60, mock_async_session)

        assert empty_progress.video_watch_times == {}

    @pytest.mark.asyncio
    async def test_duration_defaults_to_catalog(
        self, mock_async_session, student_id, published_videos, empty_progress
    ):
        """Verify the catalog duration is used when none is supplied."""
        from pathway.models.enums import UserRole

        context = (UserRole.STUDENT, published_videos[0], published_videos)

        with patch("pathway.services.access_service.load_access_context", AsyncMock(return_value=context)), \
                patch(
                    "pathway.services.progress_service.mutate_progress",
                    AsyncMock(side_effect=self._run_on(empty_progress)),
                ):
            from pathway.services.watch_service import record_watch_session

            record = await record_watch_session(student_id, 11, 0, 300, mock_async_session)

        assert record.completion_percentage == 50
        assert empty_progress.total_time_spent == 300

"""
Progress Service Unit Tests

Tests for the completion transaction, self-healing reads and the
optimistic write loop.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.orm.exc import StaleDataError


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# ==================== Pure Rules ====================

class TestCleanCompletedVideos:
    """Tests for stale-reference cleanup."""

    def test_drops_missing_and_duplicate_ids(self):
        from pathway.services.progress_service import clean_completed_videos

        cleaned, dropped = clean_completed_videos([11, 12, 11, 99, 13], {11, 12, 13})

        assert cleaned == [11, 12, 13]
        assert dropped == [11, 99]

    def test_keeps_first_occurrence_order(self):
        from pathway.services.progress_service import clean_completed_videos

        cleaned, dropped = clean_completed_videos([13, 11, 13], {11, 13})

        assert cleaned == [13, 11]
        assert dropped == [13]


class TestAttemptNumbering:
    """Tests for per-quiz attempt numbers."""

    def _attempt(self, quiz_id, number=1):
        from pathway.schemas.progress import QuizAttempt

        return QuizAttempt(
            quiz_id=quiz_id, attempt_number=number, started_at=NOW, completed_at=NOW,
        )

    def test_counts_only_same_quiz(self):
        from pathway.services.progress_service import next_attempt_number

        attempts = [self._attempt(101), self._attempt(102), self._attempt(101, 2)]

        assert next_attempt_number(attempts, 101) == 3
        assert next_attempt_number(attempts, 102) == 2
        assert next_attempt_number(attempts, 103) == 1

    def test_attempts_without_quiz_are_discarded(self):
        from pathway.services.progress_service import drop_invalid_attempts, next_attempt_number

        attempts = drop_invalid_attempts([self._attempt(None), self._attempt(101), self._attempt(0)])

        assert [attempt.quiz_id for attempt in attempts] == [101]
        assert next_attempt_number(attempts, 101) == 2

    def test_unparseable_quiz_id_loads_as_missing(self, student_id):
        """Verify a stored attempt with a garbage quiz id can still be loaded."""
        from pathway.schemas.progress import ProgressDocument

        document = ProgressDocument.model_validate({
            "user_id": student_id,
            "quiz_attempts": [{
                "quiz_id": "not-a-quiz",
                "attempt_number": 1,
                "started_at": NOW,
                "completed_at": NOW,
            }],
        })

        assert document.quiz_attempts[0].quiz_id is None
        assert document.quiz_attempts[0].has_valid_quiz is False


class TestCourseCompletion:
    """Tests for the all-of completion rule."""

    def test_requires_every_published_id(self):
        from pathway.services.progress_service import is_course_complete

        assert is_course_complete([11, 12, 13], [11, 12, 13]) is True
        assert is_course_complete([11, 12, 13, 99], [11, 12, 13]) is True
        assert is_course_complete([11, 12], [11, 12, 13]) is False

    def test_count_alone_is_not_enough(self):
        """Verify three completed ids do not finish a path of three different videos."""
        from pathway.services.progress_service import is_course_complete

        assert is_course_complete([11, 12, 99], [11, 12, 13]) is False

    def test_empty_catalog_is_never_complete(self):
        from pathway.services.progress_service import is_course_complete

        assert is_course_complete([11], []) is False

    def test_resolve_keeps_existing_timestamp(self):
        from pathway.services.progress_service import resolve_completed_at

        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert resolve_completed_at(earlier, [11], [11], NOW) == earlier
        assert resolve_completed_at(None, [11], [11], NOW) == NOW
        assert resolve_completed_at(earlier, [11], [11, 12], NOW) is None


class TestApplyCompletion:
    """Tests for the completion transaction applied to a document."""

    def test_marks_complete_and_advances(self, empty_progress, published_videos, make_quiz_result):
        from pathway.services.progress_service import apply_completion

        apply_completion(
            empty_progress, published_videos[0], make_quiz_result(quiz_id=101),
            [11, 12, 13], {11, 12, 13}, NOW,
        )

        assert empty_progress.completed_videos == [11]
        assert empty_progress.total_videos_watched == 1
        assert empty_progress.current_position == 2
        assert empty_progress.total_quizzes_passed == 1
        assert empty_progress.total_time_spent == 30
        assert empty_progress.quiz_attempts[0].attempt_number == 1
        assert empty_progress.quiz_attempts[0].passed is True
        assert empty_progress.completed_at is None
        assert empty_progress.last_activity_at == NOW

    def test_completion_is_idempotent(self, empty_progress, published_videos, make_quiz_result):
        """Verify a second identical completion does not duplicate the video."""
        from pathway.services.progress_service import apply_completion

        for _ in range(2):
            apply_completion(
                empty_progress, published_videos[0], make_quiz_result(quiz_id=101),
                [11, 12, 13], {11, 12, 13}, NOW,
            )

        assert empty_progress.completed_videos == [11]
        assert empty_progress.total_videos_watched == 1
        assert [attempt.attempt_number for attempt in empty_progress.quiz_attempts] == [1, 2]

    def test_position_never_decreases(self, empty_progress, published_videos, make_quiz_result):
        from pathway.services.progress_service import apply_completion

        empty_progress.current_position = 3
        apply_completion(
            empty_progress, published_videos[0], make_quiz_result(quiz_id=101),
            [11, 12, 13], {11, 12, 13}, NOW,
        )

        assert empty_progress.current_position == 3

    def test_all_or_nothing_course_completion(self, empty_progress, published_videos, make_quiz_result):
        from pathway.services.progress_service import apply_completion

        published_ids = [11, 12, 13]
        for video in published_videos:
            assert empty_progress.completed_at is None
            apply_completion(
                empty_progress, video, make_quiz_result(quiz_id=video.quiz_id),
                published_ids, set(published_ids), NOW,
            )

        assert empty_progress.completed_at == NOW
        assert empty_progress.current_position == 4

    def test_stale_ids_are_dropped_first(self, empty_progress, published_videos, make_quiz_result):
        from pathway.services.progress_service import apply_completion

        empty_progress.completed_videos = [11, 99, 11]
        empty_progress.total_videos_watched = 3

        apply_completion(
            empty_progress, published_videos[1], make_quiz_result(quiz_id=102),
            [11, 12, 13], {11, 12, 13}, NOW,
        )

        assert empty_progress.completed_videos == [11, 12]
        assert empty_progress.total_videos_watched == 2

    def test_invalid_attempts_are_purged(self, empty_progress, published_videos, make_quiz_result):
        from pathway.schemas.progress import QuizAttempt
        from pathway.services.progress_service import apply_completion

        empty_progress.quiz_attempts = [
            QuizAttempt(quiz_id=None, attempt_number=1, started_at=NOW, completed_at=NOW),
            QuizAttempt(quiz_id=101, attempt_number=1, started_at=NOW, completed_at=NOW),
        ]

        apply_completion(
            empty_progress, published_videos[0], make_quiz_result(quiz_id=101),
            [11, 12, 13], {11, 12, 13}, NOW,
        )

        assert [attempt.quiz_id for attempt in empty_progress.quiz_attempts] == [101, 101]
        assert empty_progress.quiz_attempts[-1].attempt_number == 2


# ==================== Row Mapping ====================

class TestDocumentMapping:
    """Tests for loading and storing the progress row."""

    def test_watch_times_keys_roundtrip_as_strings(self, make_progress_row):
        from pathway.schemas.progress import WatchRecord
        from pathway.services.progress_service import to_document, write_document

        row = make_progress_row()
        document = to_document(row)
        document.video_watch_times[11] = WatchRecord(video_id=11, total_watch_time=5)

        write_document(document, row)

        assert list(row.video_watch_times) == ["11"]
        assert to_document(row).video_watch_times[11].total_watch_time == 5


# ==================== Write Loop ====================

class TestMutateProgress:
    """Tests for mutate_progress."""

    @pytest.mark.asyncio
    async def test_unchanged_document_is_not_written(self, mock_async_session, make_progress_row, student_id):
        row = make_progress_row(completed_videos=[11])

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ), patch("pathway.services.progress_service.write_document") as mock_write:
            from pathway.services.progress_service import mutate_progress

            async def noop(document):
                pass

            document = await mutate_progress(student_id, noop, mock_async_session)

        assert document.completed_videos == [11]
        mock_write.assert_not_called()
        mock_async_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_new_record_is_persisted(self, mock_async_session, make_progress_row, student_id):
        row = make_progress_row()

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, True)),
        ), patch("pathway.services.progress_service.write_document") as mock_write:
            from pathway.services.progress_service import mutate_progress

            async def noop(document):
                pass

            await mutate_progress(student_id, noop, mock_async_session)

        mock_write.assert_called_once()

    @pytest.mark.asyncio
    async def test_version_clash_is_retried(self, mock_async_session, make_progress_row, student_id):
        """Verify a StaleDataError rolls back and reruns the whole cycle."""
        row = make_progress_row()
        mock_async_session.commit.side_effect = [StaleDataError("version mismatch"), None]
        calls = []

        async def add_video(document):
            calls.append(1)
            document.completed_videos.append(11)

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            from pathway.services.progress_service import mutate_progress

            await mutate_progress(student_id, add_video, mock_async_session)

        assert len(calls) == 2
        mock_async_session.rollback.assert_awaited_once()
        assert mock_async_session.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, mock_async_session, make_progress_row, student_id):
        from pathway.core.config import settings
        from pathway.core.errors import Conflict

        row = make_progress_row()
        mock_async_session.commit.side_effect = StaleDataError("version mismatch")

        async def add_video(document):
            document.completed_videos.append(11)

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            from pathway.services.progress_service import mutate_progress

            with pytest.raises(Conflict):
                await mutate_progress(student_id, add_video, mock_async_session)

        assert mock_async_session.commit.await_count == settings.PROGRESS_MAX_RETRIES

    @pytest.mark.asyncio
    async def test_mutation_error_rolls_back(self, mock_async_session, make_progress_row, student_id):
        from pathway.core.errors import NotFound

        row = make_progress_row()

        async def fail(document):
            document.completed_videos.append(11)
            raise NotFound("Video with ID 11 not found")

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            from pathway.services.progress_service import mutate_progress

            with pytest.raises(NotFound):
                await mutate_progress(student_id, fail, mock_async_session)

        assert row.completed_videos == []
        mock_async_session.commit.assert_not_awaited()
        mock_async_session.rollback.assert_awaited_once()


class TestLoadOrCreateRow:
    """Tests for first-access creation."""

    @pytest.mark.asyncio
    async def test_insert_race_rereads(self, mock_async_session, make_progress_row, student_id):
        from sqlalchemy.exc import IntegrityError

        existing = make_progress_row()
        mock_async_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with patch(
            "pathway.services.progress_service._select_row",
            AsyncMock(side_effect=[None, existing]),
        ):
            from pathway.services.progress_service import _load_or_create_row

            row, created = await _load_or_create_row(student_id, mock_async_session)

        assert row is existing
        assert created is False
        mock_async_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_user_is_not_found(self, mock_async_session, student_id):
        from sqlalchemy.exc import IntegrityError
        from pathway.core.errors import NotFound

        mock_async_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("fk violation"))

        with patch(
            "pathway.services.progress_service._select_row",
            AsyncMock(return_value=None),
        ):
            from pathway.services.progress_service import _load_or_create_row

            with pytest.raises(NotFound):
                await _load_or_create_row(student_id, mock_async_session)


# ==================== Operations ====================

def _patch_catalog(published_videos, existing_ids):
    mock_catalog = MagicMock()
    by_id = {video.id: video for video in published_videos}
    mock_catalog.get_video = AsyncMock(side_effect=lambda video_id, db: by_id[video_id])
    mock_catalog.list_published_videos_ordered = AsyncMock(return_value=list(published_videos))
    mock_catalog.existing_video_ids = AsyncMock(
        side_effect=lambda ids, db: {video_id for video_id in ids if video_id in existing_ids}
    )
    return patch("pathway.services.progress_service.catalog_service", mock_catalog)


class TestCompleteVideoWithQuiz:
    """Tests for complete_video_with_quiz."""

    @pytest.mark.asyncio
    async def test_failed_quiz_changes_nothing(self, mock_async_session, student_id, make_quiz_result):
        from pathway.core.errors import QuizNotPassed

        with patch("pathway.services.progress_service.mutate_progress", AsyncMock()) as mock_mutate:
            from pathway.services.progress_service import complete_video_with_quiz

            with pytest.raises(QuizNotPassed):
                await complete_video_with_quiz(
                    student_id, 11, make_quiz_result(passed=False, percentage=40), mock_async_session,
                )

            mock_mutate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_completion_is_idempotent(
        self, mock_async_session, make_progress_row, student_id, published_videos, make_quiz_result
    ):
        row = make_progress_row()

        with _patch_catalog(published_videos, {11, 12, 13}), patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            from pathway.services.progress_service import complete_video_with_quiz

            first = await complete_video_with_quiz(student_id, 11, make_quiz_result(), mock_async_session)
            second = await complete_video_with_quiz(student_id, 11, make_quiz_result(), mock_async_session)

        assert first.completed_videos == second.completed_videos == [11]
        assert second.total_videos_watched == 1
        assert row.completed_videos == [11]
        assert row.current_position == 2

    @pytest.mark.asyncio
    async def test_publishing_a_new_video_clears_completion(
        self, mock_async_session, make_progress_row, student_id, published_videos, make_quiz_result
    ):
        """Verify completed_at is cleared on the next read once a 4th video is published."""
        from pathway.schemas.catalog import VideoView

        row = make_progress_row()

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            with _patch_catalog(published_videos, {11, 12, 13}):
                from pathway.services.progress_service import complete_video_with_quiz, get_progress

                for video in published_videos:
                    document = await complete_video_with_quiz(
                        student_id, video.id, make_quiz_result(quiz_id=video.quiz_id), mock_async_session,
                    )
                assert document.completed_at is not None

            extended = [*published_videos, VideoView(id=14, order=4, quiz_id=104)]
            with _patch_catalog(extended, {11, 12, 13, 14}):
                document = await get_progress(student_id, mock_async_session)

        assert document.completed_at is None
        assert row.completed_at is None

    @pytest.mark.asyncio
    async def test_read_removes_deleted_video(
        self, mock_async_session, make_progress_row, student_id, published_videos
    ):
        """Verify a deleted video disappears from progress on the next read."""
        row = make_progress_row(completed_videos=[11, 12], total_videos_watched=2, current_position=3)

        with _patch_catalog(published_videos[::2], {11, 13}), patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            from pathway.services.progress_service import get_progress

            document = await get_progress(student_id, mock_async_session)

        assert document.completed_videos == [11]
        assert document.total_videos_watched == 1
        assert document.current_position == 3
        assert row.total_videos_watched == 1

    @pytest.mark.asyncio
    async def test_concurrent_completions_do_not_lose_updates(
        self, mock_async_session, make_progress_row, student_id, published_videos, make_quiz_result
    ):
        """Verify two simultaneous completions for one user are applied one after the other."""
        from pathway.core.locks import progress_locks

        row = make_progress_row()

        async def slow_existing_ids(ids, db):
            await asyncio.sleep(0.01)
            return {video_id for video_id in ids if video_id in {11, 12, 13}}

        with _patch_catalog(published_videos, {11, 12, 13}) as mock_catalog, patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            mock_catalog.existing_video_ids = AsyncMock(side_effect=slow_existing_ids)

            from pathway.services.progress_service import complete_video_with_quiz

            await asyncio.gather(
                complete_video_with_quiz(student_id, 11, make_quiz_result(quiz_id=101), mock_async_session),
                complete_video_with_quiz(student_id, 12, make_quiz_result(quiz_id=101), mock_async_session),
            )

        assert sorted(row.completed_videos) == [11, 12]
        assert [attempt["attempt_number"] for attempt in row.quiz_attempts] == [1, 2]
        assert row.total_quizzes_passed == 2
        assert row.total_videos_watched == 2
        assert row.current_position == 3
        assert len(progress_locks) == 0


class TestResetProgress:
    """Tests for reset_progress."""

    @pytest.mark.asyncio
    async def test_reset_clears_everything(
        self, mock_async_session, make_progress_row, student_user
    ):
        row = make_progress_row(
            completed_videos=[11, 12],
            current_position=3,
            total_videos_watched=2,
            total_quizzes_passed=2,
            total_time_spent=500.0,
            completed_at=NOW,
        )
        mock_async_session.get.return_value = student_user

        with patch(
            "pathway.services.progress_service._load_or_create_row",
            AsyncMock(return_value=(row, False)),
        ):
            from pathway.services.progress_service import reset_progress

            document = await reset_progress(student_user.id, mock_async_session)

        assert document.completed_videos == []
        assert document.current_position == 1
        assert document.total_time_spent == 0
        assert document.completed_at is None
        assert row.current_position == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, mock_async_session, student_id):
        from pathway.core.errors import NotFound
        from pathway.services.progress_service import reset_progress

        with pytest.raises(NotFound):
            await reset_progress(student_id, mock_async_session)


class TestRemoveVideoFromAllProgress:
    """Tests for cascade cleanup after a video is deleted."""

    @pytest.mark.asyncio
    async def test_only_referencing_records_are_mutated(self, mock_async_session, published_videos):
        import uuid

        holder, watcher, bystander = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        mock_async_session.execute.return_value.all.return_value = [
            (holder, [11, 12], {}),
            (watcher, [11], {"12": {"video_id": 12}}),
            (bystander, [11], {}),
        ]

        with _patch_catalog(published_videos, {11, 13}), patch(
            "pathway.services.progress_service.mutate_progress", AsyncMock(),
        ) as mock_mutate:
            from pathway.services.progress_service import remove_video_from_all_progress

            cleaned = await remove_video_from_all_progress(12, mock_async_session)

        assert cleaned == 2
        assert [call.args[0] for call in mock_mutate.await_args_list] == [holder, watcher]

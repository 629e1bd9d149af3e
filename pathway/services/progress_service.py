"""
Progress Service

The only writer of user progress records. Every read-modify-write goes
through mutate_progress, which serializes work per user, locks the row and
retries when another process bumped the record's version in between.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from pathway.core.config import settings
from pathway.core.errors import Conflict, NotFound, QuizNotPassed, StaleReference
from pathway.core.locks import progress_locks
from pathway.models.user import User
from pathway.models.user_progress import UserProgress
from pathway.schemas.analytics import UserProgressRow
from pathway.schemas.catalog import VideoView
from pathway.schemas.progress import AnswerRecord, ProgressDocument, QuizAttempt
from pathway.schemas.quiz import QuizResult
from pathway.services import catalog_service


logger = logging.getLogger(__name__)

Mutation = Callable[[ProgressDocument], Awaitable[None]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============== Row <-> Document ==============

def to_document(row: UserProgress) -> ProgressDocument:
    """Load a progress row into a validated document."""
    return ProgressDocument.model_validate({
        "user_id": row.user_id,
        "completed_videos": list(row.completed_videos or []),
        "current_position": row.current_position or 1,
        "video_watch_times": dict(row.video_watch_times or {}),
        "quiz_attempts": list(row.quiz_attempts or []),
        "total_videos_watched": row.total_videos_watched or 0,
        "total_quizzes_passed": row.total_quizzes_passed or 0,
        "total_time_spent": row.total_time_spent or 0,
        "started_at": row.started_at,
        "last_activity_at": row.last_activity_at,
        "completed_at": row.completed_at,
    })


def write_document(document: ProgressDocument, row: UserProgress) -> None:
    """Copy a document back onto its row. JSON columns get fresh objects."""
    data = document.model_dump(mode="json")

    row.completed_videos = data["completed_videos"]
    row.video_watch_times = {str(key): value for key, value in data["video_watch_times"].items()}
    row.quiz_attempts = data["quiz_attempts"]
    row.current_position = document.current_position
    row.total_videos_watched = document.total_videos_watched
    row.total_quizzes_passed = document.total_quizzes_passed
    row.total_time_spent = document.total_time_spent
    if document.started_at is not None:
        row.started_at = document.started_at
    if document.last_activity_at is not None:
        row.last_activity_at = document.last_activity_at
    row.completed_at = document.completed_at


# ============== Progression Rules ==============

def clean_completed_videos(
    completed: Sequence[int],
    existing_ids: Set[int],
) -> Tuple[List[int], List[int]]:
    """
    Drop ids of vanished videos and duplicates, keeping first occurrences.

    Returns:
        Tuple of (cleaned ids, dropped ids).
    """
    cleaned: List[int] = []
    dropped: List[int] = []
    seen: Set[int] = set()

    for video_id in completed:
        if video_id not in existing_ids or video_id in seen:
            dropped.append(video_id)
            continue
        seen.add(video_id)
        cleaned.append(video_id)

    return cleaned, dropped


def drop_invalid_attempts(attempts: Iterable[QuizAttempt]) -> List[QuizAttempt]:
    """Discard attempts without a usable quiz id."""
    return [attempt for attempt in attempts if attempt.has_valid_quiz]


def next_attempt_number(attempts: Iterable[QuizAttempt], quiz_id: int) -> int:
    return 1 + sum(1 for attempt in attempts if attempt.quiz_id == quiz_id)


def is_course_complete(
    completed_ids: Iterable[int],
    published_ids: Iterable[int],
) -> bool:
    """
    Check whether every published video is completed.

    An empty catalog never counts as finished.
    """
    published = set(published_ids)
    return bool(published) and published.issubset(set(completed_ids))


def resolve_completed_at(
    current: Optional[datetime],
    completed_ids: Iterable[int],
    published_ids: Iterable[int],
    now: datetime,
) -> Optional[datetime]:
    """Keep a still-valid completion timestamp, set it when newly valid, clear it otherwise."""
    if not is_course_complete(completed_ids, published_ids):
        return None
    return current or now


def _heal_completed_videos(
    document: ProgressDocument,
    existing_ids: Set[int],
) -> List[int]:
    cleaned, dropped = clean_completed_videos(document.completed_videos, existing_ids)
    if dropped:
        stale = StaleReference(
            f"Progress of user {document.user_id} referenced missing or duplicate videos {dropped}"
        )
        logger.warning(f"Healing progress record: {stale}")
        document.completed_videos = cleaned
        document.total_videos_watched = len(cleaned)
    return dropped


def apply_completion(
    document: ProgressDocument,
    video: VideoView,
    quiz_result: QuizResult,
    published_ids: Sequence[int],
    existing_ids: Set[int],
    now: datetime,
) -> None:
    """
    Apply the completion transaction to a progress document in place.

    Steps: heal completed ids, record the attempt, mark the video complete,
    advance the position and recompute course completion.
    """
    _heal_completed_videos(document, existing_ids)

    attempts = drop_invalid_attempts(document.quiz_attempts)
    if len(attempts) != len(document.quiz_attempts):
        logger.warning(
            f"Discarded {len(document.quiz_attempts) - len(attempts)} quiz attempts "
            f"without a quiz id for user {document.user_id}"
        )

    time_spent = quiz_result.time_spent or 0
    attempt_quiz_id = quiz_result.quiz_id if quiz_result.quiz_id else video.quiz_id
    if attempt_quiz_id:
        attempts.append(QuizAttempt(
            quiz_id=attempt_quiz_id,
            attempt_number=next_attempt_number(attempts, attempt_quiz_id),
            answers=[
                AnswerRecord(
                    question_id=result.question_id,
                    user_answer=result.user_answer,
                    is_correct=result.is_correct,
                    points=result.points,
                )
                for result in quiz_result.results
            ],
            score=quiz_result.total_score,
            total_points=quiz_result.total_points,
            percentage=quiz_result.percentage,
            passed=True,
            time_spent=time_spent,
            started_at=quiz_result.completed_at - timedelta(seconds=time_spent),
            completed_at=quiz_result.completed_at,
        ))
    else:
        logger.warning(f"Passing result for video {video.id} has no quiz id; attempt not logged")

    document.quiz_attempts = attempts
    document.total_quizzes_passed += 1
    document.total_time_spent += time_spent

    if video.id not in document.completed_videos:
        document.completed_videos.append(video.id)
    document.total_videos_watched = len(document.completed_videos)

    document.current_position = max(document.current_position, video.order + 1)

    if is_course_complete(document.completed_videos, published_ids):
        document.completed_at = now
    else:
        document.completed_at = None

    document.last_activity_at = now


# ============== Persistence ==============

async def _select_row(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> Optional[UserProgress]:
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _load_or_create_row(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> Tuple[UserProgress, bool]:
    """
    Lock a user's progress row, creating it on first access.

    Returns:
        Tuple of (row, created).

    Raises:
        NotFound: If the user does not exist.
    """
    row = await _select_row(user_id, db)
    if row is not None:
        return row, False

    now = _now()
    row = UserProgress(
        user_id=user_id,
        completed_videos=[],
        current_position=1,
        video_watch_times={},
        quiz_attempts=[],
        total_videos_watched=0,
        total_quizzes_passed=0,
        total_time_spent=0,
        started_at=now,
        last_activity_at=now,
    )
    db.add(row)

    try:
        await db.flush()
    except IntegrityError:
        # lost the insert race, or the user is gone
        await db.rollback()
        row = await _select_row(user_id, db)
        if row is None:
            raise NotFound(f"User with ID {user_id} not found")
        return row, False

    logger.info(f"Created progress record for user {user_id}")
    return row, True


async def mutate_progress(
    user_id: uuid.UUID,
    mutation: Mutation,
    db: AsyncSession,
) -> ProgressDocument:
    """
    Run a read-modify-write cycle on one user's progress record.

    The mutation receives the current document and edits it in place. The
    row is written back only when the document changed (or was just
    created). A version clash with another writer is rolled back and the
    whole cycle retried, up to PROGRESS_MAX_RETRIES times.

    Args:
        user_id: Owner of the progress record.
        mutation: Async callable editing the document in place.
        db: Database session.

    Returns:
        The document as committed.

    Raises:
        Conflict: If retries are exhausted.
        EngineError: Whatever the mutation raises; nothing is written.
    """
    max_attempts = max(1, settings.PROGRESS_MAX_RETRIES)

    async with progress_locks.hold(str(user_id)):
        for attempt in range(1, max_attempts + 1):
            try:
                row, created = await _load_or_create_row(user_id, db)
                document = to_document(row)
                before = document.model_copy(deep=True)

                await mutation(document)

                if created or document != before:
                    write_document(document, row)

                # also releases the row lock when nothing changed
                await db.commit()
                return document

            except StaleDataError:
                await db.rollback()
                logger.warning(
                    f"Progress of user {user_id} changed concurrently "
                    f"(attempt {attempt}/{max_attempts}), retrying"
                )
            except Exception:
                await db.rollback()
                raise

    raise Conflict(f"Progress of user {user_id} is being modified concurrently, try again")


# ============== Operations ==============

async def complete_video_with_quiz(
    user_id: uuid.UUID,
    video_id: int,
    quiz_result: QuizResult,
    db: AsyncSession,
) -> ProgressDocument:
    """
    Record a passed quiz and mark its video as completed.

    Args:
        user_id: Learner.
        video_id: Video gated by the quiz.
        quiz_result: Passing evaluation of the video's quiz.
        db: Database session.

    Returns:
        Updated progress document.

    Raises:
        QuizNotPassed: If the result did not pass; nothing is written.
        NotFound: If the video or user does not exist.
        Conflict: If concurrent writers exhausted the retries.
    """
    if not quiz_result.passed:
        raise QuizNotPassed(
            f"Quiz score {quiz_result.percentage}% is below the passing score "
            f"of {quiz_result.passing_score}%"
        )

    video = await catalog_service.get_video(video_id, db)

    async def complete(document: ProgressDocument) -> None:
        published = await catalog_service.list_published_videos_ordered(db)
        existing = await catalog_service.existing_video_ids(
            [*document.completed_videos, video.id], db
        )
        apply_completion(
            document,
            video,
            quiz_result,
            [published_video.id for published_video in published],
            existing,
            _now(),
        )

    document = await mutate_progress(user_id, complete, db)

    logger.info(
        f"User {user_id} completed video {video_id} "
        f"({len(document.completed_videos)} completed, position {document.current_position})"
    )
    if document.completed_at is not None:
        logger.info(f"User {user_id} completed the learning path")

    return document


async def get_progress(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> ProgressDocument:
    """
    Get a user's progress, creating and healing it as needed.

    Stale video ids are dropped and the completion timestamp is re-derived
    against the current catalog. Nothing is written when nothing changed.
    """
    async def heal(document: ProgressDocument) -> None:
        existing = await catalog_service.existing_video_ids(document.completed_videos, db)
        _heal_completed_videos(document, existing)

        published = await catalog_service.list_published_videos_ordered(db)
        document.completed_at = resolve_completed_at(
            document.completed_at,
            document.completed_videos,
            [video.id for video in published],
            _now(),
        )

    return await mutate_progress(user_id, heal, db)


async def _ensure_user(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound(f"User with ID {user_id} not found")
    return user


async def reset_progress(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> ProgressDocument:
    """
    Wipe a user's progress back to the start of the path.

    Raises:
        NotFound: If the user does not exist.
    """
    await _ensure_user(user_id, db)

    async def reset(document: ProgressDocument) -> None:
        now = _now()
        document.completed_videos = []
        document.current_position = 1
        document.video_watch_times = {}
        document.quiz_attempts = []
        document.total_videos_watched = 0
        document.total_quizzes_passed = 0
        document.total_time_spent = 0
        document.started_at = now
        document.last_activity_at = now
        document.completed_at = None

    document = await mutate_progress(user_id, reset, db)
    logger.info(f"Progress of user {user_id} reset")
    return document


async def list_all_progress(
    db: AsyncSession,
    is_completed: Optional[bool] = None,
) -> List[UserProgressRow]:
    """
    List progress records of existing users, most recently active first.

    Args:
        db: Database session.
        is_completed: Only finished (True) or unfinished (False) learners.
    """
    query = (
        select(UserProgress, User)
        .join(User, User.id == UserProgress.user_id)
        .order_by(UserProgress.last_activity_at.desc())
    )
    if is_completed is True:
        query = query.where(UserProgress.completed_at.is_not(None))
    elif is_completed is False:
        query = query.where(UserProgress.completed_at.is_(None))

    result = await db.execute(query)

    rows = []
    for progress, user in result.all():
        rows.append(UserProgressRow(
            user_id=user.id,
            full_name=user.full_name,
            email=user.email,
            completed_videos=len(set(progress.completed_videos or [])),
            current_position=progress.current_position,
            total_time_spent=progress.total_time_spent or 0,
            is_completed=progress.completed_at is not None,
            last_activity_at=progress.last_activity_at,
        ))
    return rows


async def remove_video_from_all_progress(
    video_id: int,
    db: AsyncSession,
) -> int:
    """
    Scrub a deleted video from every progress record.

    Each affected record goes through mutate_progress, so the removal never
    races a learner's own updates.

    Returns:
        Number of progress records that referenced the video.
    """
    result = await db.execute(
        select(UserProgress.user_id, UserProgress.completed_videos, UserProgress.video_watch_times)
    )
    affected = [
        user_id
        for user_id, completed, watch_times in result.all()
        if video_id in (completed or []) or str(video_id) in (watch_times or {})
    ]
    await db.commit()

    published_ids: List[int] = [
        video.id for video in await catalog_service.list_published_videos_ordered(db)
    ]

    async def scrub(document: ProgressDocument) -> None:
        document.completed_videos = [
            completed_id for completed_id in document.completed_videos if completed_id != video_id
        ]
        document.video_watch_times.pop(video_id, None)
        document.total_videos_watched = len(set(document.completed_videos))
        document.completed_at = resolve_completed_at(
            document.completed_at,
            document.completed_videos,
            published_ids,
            _now(),
        )

    for user_id in affected:
        await mutate_progress(user_id, scrub, db)

    logger.info(f"Removed video {video_id} from {len(affected)} progress records")
    return len(affected)

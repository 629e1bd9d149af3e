"""
Analytics Service

Per-user and platform-wide progress statistics.
"""

import uuid
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pathway.core.rounding import percent, round_half_up
from pathway.models.quiz import Quiz
from pathway.models.user import User
from pathway.models.user_progress import UserProgress
from pathway.models.video import Video
from pathway.schemas.analytics import GlobalStats, ProgressStats
from pathway.schemas.progress import ProgressDocument, is_valid_quiz_id
from pathway.services import progress_service


def compute_stats(
    document: ProgressDocument,
    total_videos: int,
) -> ProgressStats:
    """
    Derive statistics from one progress document.

    Args:
        document: The user's (healed) progress document.
        total_videos: Number of published videos.

    Returns:
        ProgressStats built on the deduplicated completed set.
    """
    completed_count = len(set(document.completed_videos))
    attempts = [attempt for attempt in document.quiz_attempts if attempt.has_valid_quiz]
    passed_count = sum(1 for attempt in attempts if attempt.passed)

    avg_time_per_video = 0
    if completed_count > 0:
        avg_time_per_video = round_half_up(document.total_time_spent / completed_count)

    return ProgressStats(
        total_videos=total_videos,
        completed_videos=completed_count,
        completion_percentage=min(100, percent(completed_count, total_videos)),
        current_position=document.current_position,
        total_time_spent=document.total_time_spent,
        avg_time_per_video=avg_time_per_video,
        total_quiz_attempts=len(attempts),
        passed_quizzes=passed_count,
        quiz_success_rate=percent(passed_count, len(attempts)),
        is_completed=document.completed_at is not None,
        started_at=document.started_at,
        last_activity_at=document.last_activity_at,
        completed_at=document.completed_at,
    )


def compute_global_stats(
    progress_rows: Sequence[UserProgress],
    total_users: int,
    total_videos: int,
    total_quizzes: int,
) -> GlobalStats:
    """
    Aggregate progress rows of existing users.

    Args:
        progress_rows: Progress rows whose user still exists.
        total_users: Number of user accounts.
        total_videos: Number of published videos.
        total_quizzes: Number of active quizzes.
    """
    tracked = len(progress_rows)

    completed_users = 0
    completed_videos = 0
    total_quiz_attempts = 0
    total_quizzes_passed = 0
    total_time_spent = 0.0

    for row in progress_rows:
        if row.completed_at is not None:
            completed_users += 1
        completed_videos += min(len(set(row.completed_videos or [])), total_videos)
        total_quiz_attempts += sum(
            1 for attempt in row.quiz_attempts or [] if is_valid_quiz_id(attempt.get("quiz_id"))
        )
        total_quizzes_passed += row.total_quizzes_passed or 0
        total_time_spent += row.total_time_spent or 0

    average_progress = 0
    if tracked > 0 and total_videos > 0:
        average_progress = min(100, percent(completed_videos, tracked * total_videos))

    avg_quizzes_passed = 0.0
    avg_time_spent = 0
    if tracked > 0:
        avg_quizzes_passed = round_half_up(total_quizzes_passed / tracked * 10) / 10
        avg_time_spent = round_half_up(total_time_spent / tracked)

    return GlobalStats(
        total_users=total_users,
        completed_users=completed_users,
        total_videos=total_videos,
        total_quizzes=total_quizzes,
        average_progress=average_progress,
        completion_rate=percent(completed_users, tracked),
        total_quiz_attempts=total_quiz_attempts,
        total_quizzes_passed=total_quizzes_passed,
        avg_quizzes_passed=avg_quizzes_passed,
        avg_time_spent=avg_time_spent,
        total_time_spent=total_time_spent,
    )


async def _count_published_videos(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(Video.id)).where(Video.is_published.is_(True))
    )
    return result.scalar() or 0


async def get_stats(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> ProgressStats:
    """
    Get progress statistics for a user.

    The record is read through progress_service.get_progress, so stale ids
    are healed before counting.

    Args:
        user_id: User ID.
        db: Database session.

    Returns:
        ProgressStats for the user.
    """
    document = await progress_service.get_progress(user_id, db)
    total_videos = await _count_published_videos(db)
    return compute_stats(document, total_videos)


async def get_global_stats(
    db: AsyncSession,
) -> GlobalStats:
    """
    Get platform-wide statistics.

    Progress rows left behind by deleted users are ignored.
    """
    total_users = (await db.execute(select(func.count(User.id)))).scalar() or 0
    total_videos = await _count_published_videos(db)
    total_quizzes = (
        await db.execute(select(func.count(Quiz.id)).where(Quiz.is_active.is_(True)))
    ).scalar() or 0

    result = await db.execute(
        select(UserProgress).join(User, User.id == UserProgress.user_id)
    )
    progress_rows = list(result.scalars().all())

    return compute_global_stats(progress_rows, total_users, total_videos, total_quizzes)

"""
Catalog Service

Read-only catalog view for the progression engine, plus the catalog-side
consistency steps it depends on (Video <-> Quiz pointers, video removal).
"""

import logging
import uuid
from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pathway.core.errors import Conflict, NotFound
from pathway.models.quiz import Quiz
from pathway.models.video import Video
from pathway.schemas.catalog import VideoView
from pathway.schemas.quiz import QuizCreate, QuizUpdate, QuizView, parse_question


logger = logging.getLogger(__name__)


# ============== Videos ==============

async def get_video_model(
    video_id: int,
    db: AsyncSession,
) -> Video:
    """
    Get a video row by ID.

    Raises:
        NotFound: If the video does not exist.
    """
    result = await db.execute(
        select(Video).where(Video.id == video_id)
    )
    video = result.scalar_one_or_none()

    if not video:
        raise NotFound(f"Video with ID {video_id} not found")

    return video


async def get_video(
    video_id: int,
    db: AsyncSession,
) -> VideoView:
    """
    Get a video snapshot by ID.

    Args:
        video_id: Video ID.
        db: Database session.

    Returns:
        VideoView with id, order, publication flag and duration.

    Raises:
        NotFound: If the video does not exist.
    """
    video = await get_video_model(video_id, db)
    return VideoView.model_validate(video)


async def list_published_videos_ordered(
    db: AsyncSession,
) -> List[VideoView]:
    """
    List every published video sorted by its rank on the path.

    Args:
        db: Database session.

    Returns:
        Published videos, lowest order first.
    """
    result = await db.execute(
        select(Video)
        .where(Video.is_published.is_(True))
        .order_by(Video.order.asc())
    )
    return [VideoView.model_validate(video) for video in result.scalars().all()]


async def existing_video_ids(
    video_ids: Iterable[int],
    db: AsyncSession,
) -> Set[int]:
    """
    Return the subset of the given ids that still exist in the catalog.

    Args:
        video_ids: Candidate video ids.
        db: Database session.
    """
    wanted = set(video_ids)
    if not wanted:
        return set()

    result = await db.execute(
        select(Video.id).where(Video.id.in_(wanted))
    )
    return set(result.scalars().all())


async def delete_video(
    video_id: int,
    db: AsyncSession,
) -> int:
    """
    Remove a video and scrub it from every progress record.

    Quizzes of the video are removed by the foreign key cascade.

    Args:
        video_id: Video to delete.
        db: Database session.

    Returns:
        Number of progress records that referenced the video.

    Raises:
        NotFound: If the video does not exist.
    """
    from pathway.services import progress_service

    await get_video_model(video_id, db)
    await db.execute(delete(Video).where(Video.id == video_id))
    await db.commit()
    logger.info(f"Video {video_id} deleted")

    return await progress_service.remove_video_from_all_progress(video_id, db)


# ============== Quizzes ==============

def quiz_view_from_model(quiz: Quiz) -> QuizView:
    """
    Build the evaluator's view of a stored quiz.

    Raises:
        UnsupportedQuestionType: If a stored question has an unknown type.
    """
    questions = [parse_question(raw) for raw in (quiz.questions or [])]
    return QuizView(
        id=quiz.id,
        video_id=quiz.video_id,
        title=quiz.title,
        description=quiz.description,
        questions=questions,
        passing_score=quiz.passing_score,
        is_active=quiz.is_active,
    )


async def get_quiz_model(
    quiz_id: int,
    db: AsyncSession,
) -> Quiz:
    """
    Get a quiz row by ID.

    Raises:
        NotFound: If the quiz does not exist.
    """
    result = await db.execute(
        select(Quiz).where(Quiz.id == quiz_id)
    )
    quiz = result.scalar_one_or_none()

    if not quiz:
        raise NotFound(f"Quiz with ID {quiz_id} not found")

    return quiz


async def get_quiz(
    quiz_id: int,
    db: AsyncSession,
) -> QuizView:
    """Get a quiz definition by ID."""
    quiz = await get_quiz_model(quiz_id, db)
    return quiz_view_from_model(quiz)


async def _find_active_quiz(
    video_id: int,
    db: AsyncSession,
    exclude_quiz_id: Optional[int] = None,
) -> Optional[Quiz]:
    query = select(Quiz).where(
        Quiz.video_id == video_id,
        Quiz.is_active.is_(True),
    )
    if exclude_quiz_id is not None:
        query = query.where(Quiz.id != exclude_quiz_id)

    result = await db.execute(query)
    return result.scalars().first()


async def get_quiz_for_video(
    video_id: int,
    db: AsyncSession,
) -> QuizView:
    """
    Get the active quiz gating a video.

    Raises:
        NotFound: If the video has no active quiz.
    """
    quiz = await _find_active_quiz(video_id, db)
    if not quiz:
        raise NotFound(f"No active quiz found for video {video_id}")

    return quiz_view_from_model(quiz)


async def create_quiz(
    data: QuizCreate,
    created_by: Optional[uuid.UUID],
    db: AsyncSession,
) -> Quiz:
    """
    Create a quiz and point its video at it.

    A leftover inactive quiz for the same video is removed first.

    Args:
        data: Quiz definition.
        created_by: Admin creating the quiz.
        db: Database session.

    Returns:
        The new Quiz row.

    Raises:
        NotFound: If the video does not exist.
        Conflict: If the video already has an active quiz.
    """
    video = await get_video_model(data.video_id, db)

    if await _find_active_quiz(data.video_id, db):
        raise Conflict(f"An active quiz already exists for video {data.video_id}")

    result = await db.execute(
        select(Quiz).where(
            Quiz.video_id == data.video_id,
            Quiz.is_active.is_(False),
        )
    )
    for leftover in result.scalars().all():
        logger.warning(f"Removing inactive quiz {leftover.id} left on video {data.video_id}")
        if video.quiz_id == leftover.id:
            video.quiz_id = None
        await db.delete(leftover)

    quiz = Quiz(
        video_id=data.video_id,
        title=data.title,
        description=data.description,
        questions=[question.model_dump(mode="json") for question in data.questions],
        passing_score=data.passing_score,
        is_active=data.is_active,
        created_by=created_by,
    )
    db.add(quiz)
    await db.flush()

    video.quiz_id = quiz.id

    await db.commit()
    await db.refresh(quiz)

    logger.info(f"Quiz {quiz.id} created for video {data.video_id}")
    return quiz


async def update_quiz(
    quiz_id: int,
    data: QuizUpdate,
    db: AsyncSession,
) -> Quiz:
    """
    Update a quiz, moving the video pointer when it changes video.

    Raises:
        NotFound: If the quiz or the new video does not exist.
        Conflict: If the new video already has another active quiz.
    """
    quiz = await get_quiz_model(quiz_id, db)
    fields = data.model_dump(exclude_unset=True)

    new_video_id = fields.get("video_id")
    if new_video_id is not None and new_video_id != quiz.video_id:
        new_video = await get_video_model(new_video_id, db)
        if quiz.is_active and await _find_active_quiz(new_video_id, db, exclude_quiz_id=quiz.id):
            raise Conflict(f"An active quiz already exists for video {new_video_id}")

        old_video = await db.get(Video, quiz.video_id)
        if old_video is not None and old_video.quiz_id == quiz.id:
            old_video.quiz_id = None

        new_video.quiz_id = quiz.id
        quiz.video_id = new_video_id
        logger.info(f"Quiz {quiz.id} moved from video {old_video.id if old_video else None} to {new_video_id}")

    if data.questions is not None:
        quiz.questions = [question.model_dump(mode="json") for question in data.questions]

    for name in ("title", "description", "passing_score"):
        if name in fields:
            setattr(quiz, name, fields[name])

    await db.commit()
    await db.refresh(quiz)

    return quiz


async def delete_quiz(
    quiz_id: int,
    db: AsyncSession,
) -> None:
    """
    Delete a quiz and clear its video's pointer.

    Raises:
        NotFound: If the quiz does not exist.
    """
    quiz = await get_quiz_model(quiz_id, db)

    video = await db.get(Video, quiz.video_id)
    if video is not None and video.quiz_id == quiz.id:
        video.quiz_id = None

    await db.delete(quiz)
    await db.commit()

    logger.info(f"Quiz {quiz_id} deleted")


async def toggle_quiz_status(
    quiz_id: int,
    db: AsyncSession,
) -> Quiz:
    """
    Activate or deactivate a quiz.

    Raises:
        NotFound: If the quiz does not exist.
        Conflict: If activating while another quiz is active for the video.
    """
    quiz = await get_quiz_model(quiz_id, db)

    if not quiz.is_active and await _find_active_quiz(quiz.video_id, db, exclude_quiz_id=quiz.id):
        raise Conflict(f"Another active quiz already exists for video {quiz.video_id}")

    quiz.is_active = not quiz.is_active

    video = await db.get(Video, quiz.video_id)
    if video is not None:
        if quiz.is_active:
            video.quiz_id = quiz.id
        elif video.quiz_id == quiz.id:
            video.quiz_id = None

    await db.commit()
    await db.refresh(quiz)

    logger.info(f"Quiz {quiz_id} {'activated' if quiz.is_active else 'deactivated'}")
    return quiz

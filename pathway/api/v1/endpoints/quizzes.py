"""
Quiz Routes

Endpoints for taking quizzes, plus quiz management for administrators.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pathway.api.deps import get_current_active_user, require_admin
from pathway.core.database import get_db
from pathway.core.errors import AccessDenied
from pathway.models.user import User
from pathway.schemas.quiz import (
    QuizCreate,
    QuizResponse,
    QuizSubmission,
    QuizSubmissionResponse,
    QuizUpdate,
    QuizView,
)
from pathway.services import access_service, catalog_service, progress_service, quiz_service


router = APIRouter(prefix="/quizzes", tags=["Quizzes"])


def _quiz_response(quiz: QuizView, include_answers: bool) -> QuizResponse:
    if include_answers:
        questions = [question.model_dump(mode="json") for question in quiz.questions]
    else:
        questions = quiz_service.public_questions(quiz)

    return QuizResponse(
        id=quiz.id,
        video_id=quiz.video_id,
        title=quiz.title,
        description=quiz.description,
        passing_score=quiz.passing_score,
        is_active=quiz.is_active,
        total_points=quiz.total_points,
        questions=questions,
    )


@router.get(
    "/video/{video_id}",
    response_model=QuizResponse,
    summary="Get the quiz of a video",
)
async def get_quiz_for_video(
    video_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuizResponse:
    """
    Get the active quiz gating a video.

    Learners only see questions and options; answers and explanations are
    returned to administrators alone.

    Raises:
        AccessDenied: If the video is still locked for the learner.
        NotFound: If the video has no active quiz.
    """
    if not await access_service.check_access(current_user.id, video_id, db):
        raise AccessDenied(f"Complete the previous video to unlock video {video_id}")

    quiz = await catalog_service.get_quiz_for_video(video_id, db)
    return _quiz_response(quiz, include_answers=current_user.is_admin)


@router.post(
    "/{quiz_id}/submit",
    response_model=QuizSubmissionResponse,
    summary="Submit quiz answers",
)
async def submit_quiz(
    quiz_id: int,
    submission: QuizSubmission,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuizSubmissionResponse:
    """
    Submit answers for a quiz.

    **Flow:**
    1. Check the quiz's video is unlocked for the user
    2. Score the answers
    3. If passed, record the attempt and complete the video

    A failed quiz is returned with ``unlocked = false`` and leaves progress
    untouched. Errors while completing the video are not swallowed.

    Args:
        quiz_id: Quiz being answered.
        submission: Answers keyed by question id, time spent.
        current_user: Authenticated user.
        db: Database session.

    Returns:
        The evaluation plus whether the video was completed.
    """
    quiz = await catalog_service.get_quiz(quiz_id, db)

    if not await access_service.check_access(current_user.id, quiz.video_id, db):
        raise AccessDenied(f"Complete the previous video to unlock video {quiz.video_id}")

    result = await quiz_service.evaluate_quiz_submission(
        quiz_id=quiz_id,
        user_id=current_user.id,
        answers=submission.answers,
        db=db,
        time_spent=submission.time_spent,
    )

    if not result.passed:
        return QuizSubmissionResponse(
            result=result,
            video_id=quiz.video_id,
            unlocked=False,
        )

    progress = await progress_service.complete_video_with_quiz(
        user_id=current_user.id,
        video_id=quiz.video_id,
        quiz_result=result,
        db=db,
    )

    return QuizSubmissionResponse(
        result=result,
        video_id=quiz.video_id,
        unlocked=True,
        current_position=progress.current_position,
    )


# ============== Administration ==============

@router.post(
    "",
    response_model=QuizResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a quiz",
)
async def create_quiz(
    data: QuizCreate,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuizResponse:
    """
    Create the quiz gating a video.

    **Requirements:**
    - User must have ADMIN role
    - The video must not already have an active quiz
    """
    quiz = await catalog_service.create_quiz(data, current_user.id, db)
    return _quiz_response(catalog_service.quiz_view_from_model(quiz), include_answers=True)


@router.put(
    "/{quiz_id}",
    response_model=QuizResponse,
    summary="Update a quiz",
)
async def update_quiz(
    quiz_id: int,
    data: QuizUpdate,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuizResponse:
    """Update a quiz. Moving it to another video moves the video pointer too."""
    quiz = await catalog_service.update_quiz(quiz_id, data, db)
    return _quiz_response(catalog_service.quiz_view_from_model(quiz), include_answers=True)


@router.delete(
    "/{quiz_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a quiz",
)
async def delete_quiz(
    quiz_id: int,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Delete a quiz and clear its video's pointer."""
    await catalog_service.delete_quiz(quiz_id, db)


@router.patch(
    "/{quiz_id}/toggle",
    response_model=QuizResponse,
    summary="Activate or deactivate a quiz",
)
async def toggle_quiz_status(
    quiz_id: int,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QuizResponse:
    """Flip a quiz's active flag."""
    quiz = await catalog_service.toggle_quiz_status(quiz_id, db)
    return _quiz_response(catalog_service.quiz_view_from_model(quiz), include_answers=True)

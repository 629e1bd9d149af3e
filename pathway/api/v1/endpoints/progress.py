"""
Progress Routes

Endpoints for a learner's own progress: the gated learning path, access
checks and watch telemetry.
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pathway.api.deps import get_current_active_user
from pathway.core.database import get_db
from pathway.models.user import User
from pathway.schemas.analytics import ProgressStats
from pathway.schemas.catalog import VideoView
from pathway.schemas.progress import (
    AccessResponse,
    LearningPathEntry,
    ProgressDocument,
    WatchRecord,
    WatchSessionCreate,
)
from pathway.services import access_service, analytics_service, progress_service, watch_service


router = APIRouter(prefix="/progress", tags=["Progress"])


@router.get(
    "",
    response_model=ProgressDocument,
    summary="Get my progress",
)
async def get_my_progress(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProgressDocument:
    """
    Get the current user's progress record.

    The record is created on first access. References to deleted videos are
    removed before it is returned.
    """
    return await progress_service.get_progress(current_user.id, db)


@router.get(
    "/stats",
    response_model=ProgressStats,
    summary="Get my progress statistics",
)
async def get_my_stats(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProgressStats:
    """Get completion, timing and quiz statistics for the current user."""
    return await analytics_service.get_stats(current_user.id, db)


@router.get(
    "/path",
    response_model=List[LearningPathEntry],
    summary="Get my learning path",
)
async def get_learning_path(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> List[LearningPathEntry]:
    """
    List every published video in order.

    Each entry carries whether the video is open, completed or locked for
    the current user, plus watch progress when there is any.
    """
    return await access_service.list_learning_path(current_user.id, db)


@router.get(
    "/next",
    response_model=Optional[VideoView],
    summary="Get my next video",
)
async def get_next_video(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Optional[VideoView]:
    """
    Get the first published video not yet completed.

    Returns null once the whole path is completed.
    """
    return await access_service.get_next_video(current_user.id, db)


@router.get(
    "/videos/{video_id}/access",
    response_model=AccessResponse,
    summary="Check access to a video",
)
async def check_video_access(
    video_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AccessResponse:
    """
    Check whether the current user may watch a video.

    Args:
        video_id: Video to check.
        current_user: Authenticated user.
        db: Database session.

    Returns:
        Video ID and access flag.
    """
    has_access = await access_service.check_access(current_user.id, video_id, db)
    return AccessResponse(video_id=video_id, has_access=has_access)


@router.post(
    "/watch-session",
    response_model=WatchRecord,
    summary="Record a watch session",
)
async def record_watch_session(
    data: WatchSessionCreate,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WatchRecord:
    """
    Record a viewing interval.

    **Requirements:**
    - The video must be unlocked for the user

    Watching a video to the end does not unlock the next one; only a
    passed quiz does.

    Args:
        data: Video ID, start and end offsets, optional duration.
        current_user: Authenticated user.
        db: Database session.

    Returns:
        The updated watch record for the video.
    """
    return await watch_service.record_watch_session(
        user_id=current_user.id,
        video_id=data.video_id,
        start_time=data.start_time,
        end_time=data.end_time,
        db=db,
        video_duration=data.duration,
    )

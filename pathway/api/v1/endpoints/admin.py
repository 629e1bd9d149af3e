"""
Admin Routes

Administrative views over every learner's progress, plus the operations
that must keep progress records consistent with the catalog.
"""

import uuid
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pathway.api.deps import require_admin
from pathway.core.database import get_db
from pathway.models.user import User
from pathway.schemas.analytics import GlobalStats, UserProgressRow
from pathway.schemas.catalog import VideoDeleteResponse
from pathway.schemas.progress import ProgressDocument
from pathway.services import analytics_service, catalog_service, progress_service


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/progress",
    response_model=List[UserProgressRow],
    summary="List all learners' progress",
)
async def list_all_progress(
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    is_completed: Annotated[Optional[bool], Query(description="Filter on path completion")] = None,
) -> List[UserProgressRow]:
    """
    List progress of every existing user, most recently active first.

    **Requirements:**
    - User must have ADMIN role
    """
    return await progress_service.list_all_progress(db, is_completed=is_completed)


@router.get(
    "/stats",
    response_model=GlobalStats,
    summary="Get platform statistics",
)
async def get_global_stats(
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> GlobalStats:
    """Aggregate progress over every existing user."""
    return await analytics_service.get_global_stats(db)


@router.post(
    "/users/{user_id}/progress/reset",
    response_model=ProgressDocument,
    summary="Reset a learner's progress",
)
async def reset_user_progress(
    user_id: uuid.UUID,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProgressDocument:
    """
    Put a learner back at the start of the path.

    Completed videos, watch records and quiz attempts are all cleared.
    """
    return await progress_service.reset_progress(user_id, db)


@router.delete(
    "/videos/{video_id}",
    response_model=VideoDeleteResponse,
    summary="Delete a video",
)
async def delete_video(
    video_id: int,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> VideoDeleteResponse:
    """
    Delete a video, its quizzes, and every progress reference to it.
    """
    cleaned = await catalog_service.delete_video(video_id, db)
    return VideoDeleteResponse(video_id=video_id, progress_records_cleaned=cleaned)

"""
Access Service

Sequential gating: a learner may open a video only once the published video
right before it has been completed. Administrators are never gated.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from pathway.core.errors import NotFound
from pathway.models.enums import PathStatus, UserRole
from pathway.models.user import User
from pathway.schemas.catalog import VideoView
from pathway.schemas.progress import LearningPathEntry, ProgressDocument, WatchProgress
from pathway.services import catalog_service, progress_service


logger = logging.getLogger(__name__)


def previous_published_video(
    video: VideoView,
    published_videos: Sequence[VideoView],
) -> Optional[VideoView]:
    """Return the published video ranked immediately before ``video``, if any."""
    previous = None
    for candidate in published_videos:
        if candidate.order < video.order and (previous is None or candidate.order > previous.order):
            previous = candidate
    return previous


def evaluate_access(
    role: UserRole,
    video: VideoView,
    published_videos: Sequence[VideoView],
    completed_ids: Iterable[int],
) -> bool:
    """
    Decide whether a user may open a video.

    Args:
        role: Role of the user.
        video: Target video.
        published_videos: Every published video (any order).
        completed_ids: Ids the user has completed.

    Returns:
        True for admins, for the first published video, and for any video
        whose published predecessor is completed. Gating only looks at
        published predecessors. When no predecessor exists the video is open.
    """
    if role == UserRole.ADMIN:
        return True

    previous = previous_published_video(video, published_videos)
    if previous is None:
        return True

    return previous.id in set(completed_ids)


async def _get_user(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound(f"User with ID {user_id} not found")
    return user


async def load_access_context(
    user_id: uuid.UUID,
    video_id: int,
    db: AsyncSession,
) -> Tuple[UserRole, VideoView, List[VideoView]]:
    """
    Load the catalog side of an access decision.

    Returns:
        Tuple of (role, video, published videos). The published list is
        empty for admins, who are never gated.

    Raises:
        NotFound: If the user or video does not exist.
    """
    user = await _get_user(user_id, db)
    video = await catalog_service.get_video(video_id, db)

    if user.role == UserRole.ADMIN:
        return user.role, video, []

    published = await catalog_service.list_published_videos_ordered(db)
    return user.role, video, published


async def check_access(
    user_id: uuid.UUID,
    video_id: int,
    db: AsyncSession,
) -> bool:
    """
    Check whether a user may open a video.

    Args:
        user_id: User ID.
        video_id: Video ID.
        db: Database session.

    Returns:
        True if access is granted.

    Raises:
        NotFound: If the user or video does not exist.
    """
    role, video, published = await load_access_context(user_id, video_id, db)

    if role == UserRole.ADMIN:
        return True

    progress = await progress_service.get_progress(user_id, db)

    has_access = evaluate_access(role, video, published, progress.completed_videos)
    if not has_access:
        logger.debug(f"User {user_id} denied access to video {video_id}")
    return has_access


def _watch_progress(progress: ProgressDocument, video_id: int) -> Optional[WatchProgress]:
    record = progress.video_watch_times.get(video_id)
    if record is None:
        return None
    return WatchProgress(
        completion_percentage=record.completion_percentage,
        total_watch_time=record.total_watch_time,
        last_watched_position=record.last_watched_position,
    )


def build_learning_path(
    role: UserRole,
    published_videos: Sequence[VideoView],
    progress: ProgressDocument,
) -> List[LearningPathEntry]:
    """Annotate every published video with the user's status."""
    completed = set(progress.completed_videos)
    entries = []

    for video in sorted(published_videos, key=lambda v: v.order):
        is_completed = video.id in completed
        has_access = evaluate_access(role, video, published_videos, completed)

        if is_completed:
            status = PathStatus.COMPLETED
        elif has_access:
            status = PathStatus.UNLOCKED
        else:
            status = PathStatus.LOCKED

        entries.append(LearningPathEntry(
            video=video,
            has_access=has_access,
            is_completed=is_completed,
            status=status,
            watch_progress=_watch_progress(progress, video.id),
        ))

    return entries


async def list_learning_path(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> List[LearningPathEntry]:
    """
    List the published path with access and completion for a user.

    Raises:
        NotFound: If the user does not exist.
    """
    user = await _get_user(user_id, db)
    published = await catalog_service.list_published_videos_ordered(db)
    progress = await progress_service.get_progress(user_id, db)

    return build_learning_path(user.role, published, progress)


async def get_next_video(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> Optional[VideoView]:
    """
    Get the first published video the user has not completed.

    Returns:
        The video, or None when the whole path is completed.
    """
    await _get_user(user_id, db)
    published = await catalog_service.list_published_videos_ordered(db)
    progress = await progress_service.get_progress(user_id, db)

    completed = set(progress.completed_videos)
    for video in published:
        if video.id not in completed:
            return video
    return None

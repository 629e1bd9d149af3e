"""
Watch Service

Records viewing intervals. Watch telemetry is informational: reaching the
completion threshold never unlocks the next video, only a passed quiz does.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pathway.core.config import settings
from pathway.core.errors import AccessDenied
from pathway.core.rounding import round_half_up
from pathway.schemas.progress import ProgressDocument, WatchRecord, WatchSession
from pathway.services import access_service, progress_service


logger = logging.getLogger(__name__)


def apply_watch_session(
    document: ProgressDocument,
    video_id: int,
    start_time: float,
    end_time: float,
    video_duration: float,
    now: datetime,
    threshold: Optional[int] = None,
) -> WatchRecord:
    """
    Append a session to a video's watch record and refresh derived fields.

    Sessions are never merged; overlapping intervals simply accumulate.

    Args:
        document: Progress document, edited in place.
        video_id: Watched video.
        start_time: Start offset in seconds.
        end_time: End offset in seconds.
        video_duration: Duration in seconds; 0 leaves the percentage as is.
        now: Session timestamp.
        threshold: Percentage at which the video counts as watched.

    Returns:
        The updated watch record.
    """
    if threshold is None:
        threshold = settings.WATCH_COMPLETION_THRESHOLD

    record = document.video_watch_times.get(video_id)
    if record is None:
        record = WatchRecord(video_id=video_id)
        document.video_watch_times[video_id] = record

    session_duration = max(0.0, end_time - start_time)

    record.watch_sessions.append(WatchSession(
        start_time=start_time,
        end_time=end_time,
        session_duration=session_duration,
        timestamp=now,
    ))
    record.total_watch_time += session_duration
    record.last_watched_position = max(record.last_watched_position, end_time)

    if video_duration and video_duration > 0:
        record.completion_percentage = min(
            100, round_half_up(record.last_watched_position / video_duration * 100)
        )
        record.is_completed = record.completion_percentage >= threshold

    document.total_time_spent += session_duration
    document.last_activity_at = now

    return record


async def record_watch_session(
    user_id: uuid.UUID,
    video_id: int,
    start_time: float,
    end_time: float,
    db: AsyncSession,
    video_duration: Optional[float] = None,
) -> WatchRecord:
    """
    Record a viewing interval for a video the user may open.

    Args:
        user_id: Viewer.
        video_id: Watched video.
        start_time: Start offset in seconds.
        end_time: End offset in seconds.
        db: Database session.
        video_duration: Duration override; defaults to the catalog value.

    Returns:
        The updated watch record.

    Raises:
        NotFound: If the user or video does not exist.
        AccessDenied: If the video is still locked for the user.
    """
    role, video, published = await access_service.load_access_context(user_id, video_id, db)

    if video_duration is None:
        video_duration = video.duration

    async def record(document: ProgressDocument) -> None:
        # gated on the locked record, so a concurrent reset is honoured
        if not access_service.evaluate_access(role, video, published, document.completed_videos):
            raise AccessDenied(f"Complete the previous video to unlock video {video_id}")

        apply_watch_session(
            document,
            video_id,
            start_time,
            end_time,
            video_duration,
            datetime.now(timezone.utc),
        )

    document = await progress_service.mutate_progress(user_id, record, db)
    watch_record = document.video_watch_times[video_id]

    logger.debug(
        f"User {user_id} watched video {video_id} "
        f"{start_time:.0f}s-{end_time:.0f}s ({watch_record.completion_percentage}%)"
    )
    return watch_record

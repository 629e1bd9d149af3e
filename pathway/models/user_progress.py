"""
User Progress Model

One progress document per user. Collections are stored as JSON columns and
validated through pathway.schemas.progress.ProgressDocument; every write
goes through pathway.services.progress_service.mutate_progress.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pathway.core.database import Base, JSONDocument

if TYPE_CHECKING:
    from pathway.models.user import User


class UserProgress(Base):
    """
    User progress model.

    Attributes:
        user_id: Owning user (primary key, cascades on user delete).
        completed_videos: Ids of videos completed with a passed quiz.
        current_position: Next rank on the path; never decreases.
        video_watch_times: Watch records keyed by video id.
        quiz_attempts: Ordered log of quiz attempts.
        total_videos_watched: Cached size of completed_videos.
        total_quizzes_passed: Cached count of passed attempts.
        total_time_spent: Seconds spent watching and answering quizzes.
        completed_at: Set while every published video is completed.
        version: Optimistic concurrency counter.
    """

    __tablename__ = "user_progress"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    completed_videos: Mapped[List[int]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    current_position: Mapped[int] = mapped_column(
        Integer,
        default=1,
        index=True,
        nullable=False,
    )
    video_watch_times: Mapped[Dict[str, Any]] = mapped_column(
        JSONDocument,
        default=dict,
        nullable=False,
    )
    quiz_attempts: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    total_videos_watched: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    total_quizzes_passed: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    total_time_spent: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="progress",
    )

    def __repr__(self) -> str:
        return (
            f"<UserProgress(user_id={self.user_id}, "
            f"completed={len(self.completed_videos or [])}, position={self.current_position})>"
        )

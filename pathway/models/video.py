"""
Video Model

An entry of the ordered learning path. Owned by the catalog; read-only to
the progression engine.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pathway.core.database import Base

if TYPE_CHECKING:
    from pathway.models.quiz import Quiz


class Video(Base):
    """
    Video model representing one step of the learning path.

    Attributes:
        id: Integer primary key.
        title: Video title.
        description: Optional description.
        order: Unique rank on the path (gaps allowed).
        is_published: Whether the video is part of the live path.
        duration: Video duration in seconds.
        quiz_id: Id of the quiz gating this video. Kept in step with
            Quiz.video_id by the catalog service.
    """

    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    order: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        index=True,
        nullable=False,
    )
    is_published: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    duration: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False,
    )
    quiz_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    quizzes: Mapped[list["Quiz"]] = relationship(
        "Quiz",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, order={self.order}, published={self.is_published})>"

"""
Quiz Model

Quiz gating one video. Questions are stored as a JSON document of tagged
variants and parsed by pathway.schemas.quiz.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pathway.core.database import Base, JSONDocument

if TYPE_CHECKING:
    from pathway.models.video import Video


class Quiz(Base):
    """
    Quiz model.

    Attributes:
        id: Integer primary key.
        video_id: Foreign key to the gated video.
        title: Quiz title.
        questions: JSON list of question documents (tag in "type").
        passing_score: Percentage required to pass (1-100).
        is_active: Only active quizzes can be taken.
        created_by: Admin who authored the quiz.
    """

    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    video_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("videos.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    questions: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    passing_score: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        index=True,
        nullable=False,
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    video: Mapped["Video"] = relationship(
        "Video",
        back_populates="quizzes",
    )

    def __repr__(self) -> str:
        return f"<Quiz(id={self.id}, video_id={self.video_id}, active={self.is_active})>"

"""
Pathway Backend - Models Module

This module exports all SQLAlchemy models for the application.
Import Base for Alembic migrations.
"""

from pathway.core.database import Base

# Enums
from pathway.models.enums import (
    UserRole,
    QuestionType,
    PathStatus,
)

# Models
from pathway.models.user import User
from pathway.models.video import Video
from pathway.models.quiz import Quiz
from pathway.models.user_progress import UserProgress

__all__ = [
    # Base
    "Base",
    # Enums
    "UserRole",
    "QuestionType",
    "PathStatus",
    # Models
    "User",
    "Video",
    "Quiz",
    "UserProgress",
]

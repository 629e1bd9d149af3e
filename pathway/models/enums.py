"""
Database Enums

Python Enums that map to PostgreSQL ENUM types or tag JSON documents.
"""

import enum


class UserRole(str, enum.Enum):
    """User role enumeration."""
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class QuestionType(str, enum.Enum):
    """Quiz question variant tag."""
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    TEXT_INPUT = "text-input"


class PathStatus(str, enum.Enum):
    """Status of a video on a user's learning path."""
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"

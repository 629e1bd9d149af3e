"""
Progress Schemas

Pydantic models for the per-user progress document, watch sessions and the
learning path.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from pathway.models.enums import PathStatus
from pathway.schemas.catalog import VideoView


def is_valid_quiz_id(quiz_id: Any) -> bool:
    return isinstance(quiz_id, int) and quiz_id > 0


# ============== Progress Document ==============

class WatchSession(BaseModel):
    """One viewing interval, in video offsets (seconds)."""

    start_time: float = Field(..., ge=0)
    end_time: float = Field(..., ge=0)
    session_duration: float = Field(..., ge=0)
    timestamp: datetime


class WatchRecord(BaseModel):
    """Watch telemetry for one video. Informational only, never gates access."""

    video_id: int
    total_watch_time: float = 0
    watch_sessions: List[WatchSession] = Field(default_factory=list)
    completion_percentage: int = Field(default=0, ge=0, le=100)
    is_completed: bool = False
    last_watched_position: float = 0


class AnswerRecord(BaseModel):
    """Per-question outcome stored with a quiz attempt."""

    question_id: str
    user_answer: Any = None
    is_correct: bool
    points: int = Field(..., ge=0)
    time_spent: float = 0


class QuizAttempt(BaseModel):
    """One entry of the quiz attempt log."""

    quiz_id: Optional[int] = None
    attempt_number: int = Field(..., ge=1)
    answers: List[AnswerRecord] = Field(default_factory=list)
    score: int = 0
    total_points: int = 0
    percentage: int = Field(default=0, ge=0, le=100)
    passed: bool = False
    time_spent: float = 0
    started_at: datetime
    completed_at: datetime

    @property
    def has_valid_quiz(self) -> bool:
        return is_valid_quiz_id(self.quiz_id)


class ProgressDocument(BaseModel):
    """
    A user's progress record as a plain document.

    Loaded from and written back to the user_progress row by the progress
    service; every rule of the engine operates on this type.
    """

    user_id: uuid.UUID
    completed_videos: List[int] = Field(default_factory=list)
    current_position: int = Field(default=1, ge=1)
    video_watch_times: Dict[int, WatchRecord] = Field(default_factory=dict)
    quiz_attempts: List[QuizAttempt] = Field(default_factory=list)
    total_videos_watched: int = 0
    total_quizzes_passed: int = 0
    total_time_spent: float = 0
    started_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def drop_unparseable_attempts(cls, data: Any) -> Any:
        # attempts with a null or non-numeric quiz id are discarded at
        # insertion time; keep them loadable until then
        if isinstance(data, dict):
            attempts = data.get("quiz_attempts") or []
            cleaned = []
            for attempt in attempts:
                if isinstance(attempt, dict) and not isinstance(attempt.get("quiz_id"), (int, type(None))):
                    attempt = {**attempt, "quiz_id": None}
                cleaned.append(attempt)
            data = {**data, "quiz_attempts": cleaned}
        return data


# ============== Requests ==============

class WatchSessionCreate(BaseModel):
    """Schema for recording a watch session."""

    video_id: int = Field(..., description="Video being watched")
    start_time: float = Field(..., ge=0, description="Start offset in seconds")
    end_time: float = Field(..., ge=0, description="End offset in seconds")
    duration: Optional[float] = Field(
        default=None,
        ge=0,
        description="Video duration in seconds; defaults to the catalog value",
    )


# ============== Responses ==============

class AccessResponse(BaseModel):
    """Schema for an access check."""

    video_id: int
    has_access: bool


class WatchProgress(BaseModel):
    """Condensed watch telemetry shown on the learning path."""

    completion_percentage: int
    total_watch_time: float
    last_watched_position: float


class LearningPathEntry(BaseModel):
    """One video of the learning path with the user's status."""

    video: VideoView
    has_access: bool
    is_completed: bool
    status: PathStatus
    watch_progress: Optional[WatchProgress] = None

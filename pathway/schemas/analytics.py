"""
Analytics Schemas

Pydantic models for per-user and platform-wide progress statistics.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProgressStats(BaseModel):
    """Statistics derived from one user's progress record."""

    total_videos: int = Field(..., description="Published videos on the path")
    completed_videos: int = Field(..., description="Distinct completed videos")
    completion_percentage: int = Field(..., ge=0, le=100)
    current_position: int
    total_time_spent: float
    avg_time_per_video: int
    total_quiz_attempts: int
    passed_quizzes: int
    quiz_success_rate: int = Field(..., ge=0, le=100)
    is_completed: bool
    started_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class GlobalStats(BaseModel):
    """Platform-wide statistics over progress records of existing users."""

    total_users: int
    completed_users: int
    total_videos: int
    total_quizzes: int
    average_progress: int = Field(..., description="Mean share of the path completed, in percent")
    completion_rate: int = Field(..., description="Percent of tracked users who finished the path")
    total_quiz_attempts: int
    total_quizzes_passed: int
    avg_quizzes_passed: float
    avg_time_spent: int
    total_time_spent: float


class UserProgressRow(BaseModel):
    """Schema for a single row of the administrative progress listing."""

    user_id: uuid.UUID
    full_name: str
    email: str
    completed_videos: int
    current_position: int
    total_time_spent: float
    is_completed: bool
    last_activity_at: Optional[datetime] = None

"""
Pathway - Schemas Module

Pydantic models for request/response validation and for the progress
document handled by the services.
"""

from pathway.schemas.catalog import VideoView, VideoDeleteResponse
from pathway.schemas.quiz import (
    Question,
    MultipleChoiceQuestion,
    TrueFalseQuestion,
    TextInputQuestion,
    QuizView,
    QuizCreate,
    QuizUpdate,
    QuizResponse,
    QuizSubmission,
    QuizEvaluation,
    QuizResult,
    QuizSubmissionResponse,
)
from pathway.schemas.progress import (
    WatchSession,
    WatchRecord,
    QuizAttempt,
    ProgressDocument,
    WatchSessionCreate,
    AccessResponse,
    LearningPathEntry,
)
from pathway.schemas.analytics import ProgressStats, GlobalStats, UserProgressRow

__all__ = [
    # Catalog
    "VideoView",
    "VideoDeleteResponse",
    # Quiz
    "Question",
    "MultipleChoiceQuestion",
    "TrueFalseQuestion",
    "TextInputQuestion",
    "QuizView",
    "QuizCreate",
    "QuizUpdate",
    "QuizResponse",
    "QuizSubmission",
    "QuizEvaluation",
    "QuizResult",
    "QuizSubmissionResponse",
    # Progress
    "WatchSession",
    "WatchRecord",
    "QuizAttempt",
    "ProgressDocument",
    "WatchSessionCreate",
    "AccessResponse",
    "LearningPathEntry",
    # Analytics
    "ProgressStats",
    "GlobalStats",
    "UserProgressRow",
]

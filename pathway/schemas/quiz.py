"""
Quiz Schemas

Tagged question variants, quiz definitions and evaluation results.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from pathway.core.errors import UnsupportedQuestionType
from pathway.models.enums import QuestionType


def _new_id() -> str:
    return uuid.uuid4().hex


# ============== Question Variants ==============

class QuestionBase(BaseModel):
    """Fields shared by every question variant."""

    id: str = Field(default_factory=_new_id, description="Question identifier (answer key)")
    question: str = Field(..., min_length=1, max_length=500, description="Question text")
    points: int = Field(default=1, ge=1, le=10, description="Points awarded when correct")
    explanation: Optional[str] = Field(default=None, max_length=300)


class ChoiceOption(BaseModel):
    """One option of a multiple-choice question."""

    id: str = Field(default_factory=_new_id)
    text: str = Field(..., min_length=1, max_length=200)
    is_correct: bool = False


class MultipleChoiceQuestion(QuestionBase):
    """Question answered by picking one or several options."""

    type: Literal["multiple-choice"] = "multiple-choice"
    options: List[ChoiceOption] = Field(..., description="At least two options, one or more correct")

    @field_validator("options")
    @classmethod
    def check_options(cls, options: List[ChoiceOption]) -> List[ChoiceOption]:
        if len(options) < 2:
            raise ValueError("multiple-choice questions need at least 2 options")
        if not any(option.is_correct for option in options):
            raise ValueError("at least one option must be marked correct")
        return options

    @property
    def correct_option_ids(self) -> List[str]:
        return [option.id for option in self.options if option.is_correct]


class TrueFalseQuestion(QuestionBase):
    """Question answered with a boolean."""

    type: Literal["true-false"] = "true-false"
    correct_answer: bool


class TextInputQuestion(QuestionBase):
    """Question answered with free text, compared case-insensitively."""

    type: Literal["text-input"] = "text-input"
    correct_answer: str = Field(..., min_length=1, max_length=200)


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, TextInputQuestion],
    Field(discriminator="type"),
]

QUESTION_MODELS: Dict[str, Type[QuestionBase]] = {
    QuestionType.MULTIPLE_CHOICE.value: MultipleChoiceQuestion,
    QuestionType.TRUE_FALSE.value: TrueFalseQuestion,
    QuestionType.TEXT_INPUT.value: TextInputQuestion,
}


def parse_question(raw: Dict[str, Any]) -> QuestionBase:
    """
    Parse a stored question document into its variant.

    Raises:
        UnsupportedQuestionType: If the "type" tag is unknown.
    """
    question_type = raw.get("type")
    model = QUESTION_MODELS.get(question_type)
    if model is None:
        raise UnsupportedQuestionType(
            f"Unsupported question type: {question_type!r} (question {raw.get('id')})"
        )
    return model.model_validate(raw)


# ============== Quiz Definitions ==============

class QuizView(BaseModel):
    """Read-only quiz definition as seen by the evaluator."""

    id: int
    video_id: int
    title: str
    description: Optional[str] = None
    questions: List[Question]
    passing_score: int = Field(..., ge=1, le=100)
    is_active: bool = True

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)


class QuizCreate(BaseModel):
    """Schema for creating a quiz."""

    video_id: int = Field(..., description="Video gated by this quiz")
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    questions: List[Question] = Field(..., min_length=1)
    passing_score: int = Field(..., ge=1, le=100, description="Percentage required to pass")
    is_active: bool = True

    @model_validator(mode="after")
    def check_unique_question_ids(self) -> "QuizCreate":
        ids = [question.id for question in self.questions]
        if len(ids) != len(set(ids)):
            raise ValueError("question ids must be unique within a quiz")
        return self


class QuizUpdate(BaseModel):
    """Schema for updating a quiz. Only provided fields change."""

    video_id: Optional[int] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    questions: Optional[List[Question]] = Field(default=None, min_length=1)
    passing_score: Optional[int] = Field(default=None, ge=1, le=100)


class OptionPublic(BaseModel):
    """Option without its correctness flag."""

    id: str
    text: str


class QuestionPublic(BaseModel):
    """Question as shown to a learner (no answers)."""

    id: str
    type: str
    question: str
    points: int
    options: Optional[List[OptionPublic]] = None


class QuizResponse(BaseModel):
    """Schema for quiz response."""

    id: int
    video_id: int
    title: str
    description: Optional[str] = None
    passing_score: int
    is_active: bool
    total_points: int
    questions: List[Dict[str, Any]] = Field(
        ..., description="Full questions for admins, QuestionPublic shape for learners"
    )


# ============== Submission & Results ==============

class QuizSubmission(BaseModel):
    """Schema for quiz answer submission."""

    answers: Dict[str, Any] = Field(
        ...,
        description="Question id to answer: option id, list of option ids, boolean or text",
    )
    time_spent: float = Field(default=0, ge=0, description="Seconds spent on the quiz")


class QuestionResult(BaseModel):
    """Outcome for one question."""

    question_id: str
    question: str
    is_correct: bool
    points: int
    user_answer: Any = None
    correct_answer: Any = None
    explanation: Optional[str] = None
    skipped: bool = False


class QuizEvaluation(BaseModel):
    """Pure scoring outcome."""

    results: List[QuestionResult]
    total_score: int
    total_points: int
    percentage: int
    passed: bool


class QuizResult(QuizEvaluation):
    """Scoring outcome bound to a quiz and user, handed to the progression engine."""

    quiz_id: Optional[int]
    user_id: Optional[uuid.UUID] = None
    passing_score: int
    time_spent: float = 0
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class QuizSubmissionResponse(BaseModel):
    """Response of the submit endpoint."""

    result: QuizResult
    video_id: int
    unlocked: bool = Field(..., description="Whether the video was recorded as completed")
    current_position: Optional[int] = None

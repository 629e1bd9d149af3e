"""
Quiz Service

Scoring of quiz submissions. The evaluator itself is a pure function of the
quiz definition and the submitted answers; it never reads or writes
progress state.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pathway.core.errors import NotFound, UnsupportedQuestionType
from pathway.core.rounding import percent
from pathway.schemas.quiz import (
    MultipleChoiceQuestion,
    OptionPublic,
    QuestionBase,
    QuestionPublic,
    QuestionResult,
    QuizEvaluation,
    QuizResult,
    QuizView,
    TextInputQuestion,
    TrueFalseQuestion,
)
from pathway.services import catalog_service


logger = logging.getLogger(__name__)


# ============== Per-variant Scoring ==============

def _score_multiple_choice(question: MultipleChoiceQuestion, answer: Any) -> bool:
    """
    List answers must match the correct option ids exactly (size and
    membership). A scalar answer can only be correct when the question has
    a single correct option.
    """
    correct_ids = question.correct_option_ids

    if isinstance(answer, (list, tuple, set)):
        submitted = [str(option_id) for option_id in answer]
        return len(submitted) == len(correct_ids) and set(submitted) == set(correct_ids)

    if answer is None or len(correct_ids) != 1:
        return False
    return str(answer) == correct_ids[0]


def _coerce_bool(answer: Any) -> Optional[bool]:
    if isinstance(answer, bool):
        return answer
    if isinstance(answer, str) and answer.strip().lower() in ("true", "false"):
        return answer.strip().lower() == "true"
    return None


def _score_true_false(question: TrueFalseQuestion, answer: Any) -> bool:
    submitted = _coerce_bool(answer)
    return submitted is not None and submitted == question.correct_answer


def normalize_text(value: Any) -> str:
    """Lower-case and trim a text answer."""
    return str(value).strip().lower()


def _score_text_input(question: TextInputQuestion, answer: Any) -> bool:
    if answer is None:
        return False
    return normalize_text(answer) == normalize_text(question.correct_answer)


_SCORERS: Dict[str, Callable[[Any, Any], bool]] = {
    "multiple-choice": _score_multiple_choice,
    "true-false": _score_true_false,
    "text-input": _score_text_input,
}


def _correct_answer_of(question: QuestionBase) -> Any:
    if isinstance(question, MultipleChoiceQuestion):
        return question.correct_option_ids
    return getattr(question, "correct_answer", None)


# ============== Evaluator ==============

def evaluate_quiz(
    quiz: QuizView,
    answers: Mapping[str, Any],
) -> QuizEvaluation:
    """
    Score a submitted answer set against a quiz definition.

    Unanswered questions score zero and are flagged as skipped. Total points
    count every question whether or not it was answered.

    Args:
        quiz: Quiz definition.
        answers: Mapping of question id to submitted value.

    Returns:
        QuizEvaluation with per-question results, score and verdict.

    Raises:
        UnsupportedQuestionType: If a question has an unknown variant.
    """
    results: List[QuestionResult] = []
    total_score = 0
    total_points = 0

    for question in quiz.questions:
        total_points += question.points

        if question.id not in answers:
            results.append(QuestionResult(
                question_id=question.id,
                question=question.question,
                is_correct=False,
                points=0,
                user_answer=None,
                correct_answer=_correct_answer_of(question),
                explanation=question.explanation,
                skipped=True,
            ))
            continue

        scorer = _SCORERS.get(question.type)
        if scorer is None:
            raise UnsupportedQuestionType(
                f"Unsupported question type: {question.type!r} (question {question.id})"
            )

        user_answer = answers[question.id]
        is_correct = scorer(question, user_answer)
        earned = question.points if is_correct else 0
        total_score += earned

        results.append(QuestionResult(
            question_id=question.id,
            question=question.question,
            is_correct=is_correct,
            points=earned,
            user_answer=user_answer,
            correct_answer=_correct_answer_of(question),
            explanation=question.explanation,
            skipped=False,
        ))

    percentage = percent(total_score, total_points)

    return QuizEvaluation(
        results=results,
        total_score=total_score,
        total_points=total_points,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
    )


async def evaluate_quiz_submission(
    quiz_id: int,
    user_id: uuid.UUID,
    answers: Mapping[str, Any],
    db: AsyncSession,
    time_spent: float = 0,
) -> QuizResult:
    """
    Load a quiz and score a user's submission.

    Progress is untouched; when the result is passed the caller is expected
    to hand it to progress_service.complete_video_with_quiz.

    Args:
        quiz_id: Quiz to evaluate.
        user_id: Submitting user.
        answers: Mapping of question id to submitted value.
        db: Database session.
        time_spent: Seconds the user spent on the quiz.

    Returns:
        QuizResult bound to the quiz and user.

    Raises:
        NotFound: If the quiz does not exist or is inactive.
        UnsupportedQuestionType: If the quiz definition is malformed.
    """
    quiz = await catalog_service.get_quiz(quiz_id, db)

    if not quiz.is_active:
        raise NotFound(f"Quiz {quiz_id} is no longer active")

    evaluation = evaluate_quiz(quiz, answers)

    logger.info(
        f"Quiz {quiz_id} evaluated for user {user_id}: "
        f"{evaluation.total_score}/{evaluation.total_points} ({evaluation.percentage}%), "
        f"passing score {quiz.passing_score}%, passed={evaluation.passed}"
    )

    return QuizResult(
        **evaluation.model_dump(),
        quiz_id=quiz.id,
        user_id=user_id,
        passing_score=quiz.passing_score,
        time_spent=time_spent,
    )


def public_questions(quiz: QuizView) -> List[Dict[str, Any]]:
    """Questions of a quiz with every answer and explanation removed."""
    public = []
    for question in quiz.questions:
        options = None
        if isinstance(question, MultipleChoiceQuestion):
            options = [OptionPublic(id=option.id, text=option.text) for option in question.options]
        public.append(QuestionPublic(
            id=question.id,
            type=question.type,
            question=question.question,
            points=question.points,
            options=options,
        ).model_dump(exclude_none=True))
    return public

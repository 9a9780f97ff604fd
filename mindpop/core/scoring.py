"""Answer evaluation, scoring and progress arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable, Mapping

from mindpop.constants.quiz_constants import DEFAULT_PASSING_SCORE, UNANSWERED
from mindpop.core.models import AnswerRecord, AnswerValue, Question


@dataclass(slots=True)
class ScoredAttempt:
    """Result of one linear pass over the quiz questions."""

    answers: list[AnswerRecord]
    score: int
    max_score: int

    @property
    def correct_count(self) -> int:
        return sum(1 for answer in self.answers if answer.is_correct)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _comparable(value: AnswerValue) -> str | tuple[str, ...]:
    if isinstance(value, list):
        return tuple(value)
    return value


def is_answer_correct(question: Question, answer: AnswerValue) -> bool:
    """Exact comparison of a recorded answer against the correct answer.

    A list-valued correct answer also accepts its comma-joined string form.
    """
    correct = question.correct_answer
    if isinstance(correct, list) and isinstance(answer, str):
        return answer == ",".join(correct)
    return _comparable(answer) == _comparable(correct)


def score_answers(questions: list[Question], responses: Mapping[str, AnswerValue]) -> ScoredAttempt:
    """Score responses in question order; unanswered questions count as empty strings."""
    answers: list[AnswerRecord] = []
    score = 0
    for question in questions:
        response = responses.get(question.id, UNANSWERED)
        correct = is_answer_correct(question, response)
        if correct:
            score += question.points
        answers.append(
            AnswerRecord(question_id=question.id, answer=response, is_correct=correct)
        )
    return ScoredAttempt(
        answers=answers,
        score=score,
        max_score=sum(question.points for question in questions),
    )


def percentage(score: int, max_score: int) -> int:
    if max_score <= 0:
        return 0
    return round_half_up(100 * score / max_score)


def has_passed(score: int, max_score: int, passing_score: int | None) -> bool:
    threshold = passing_score if passing_score is not None else DEFAULT_PASSING_SCORE
    return percentage(score, max_score) >= threshold


def compute_progress(completed_quiz_ids: Iterable[str], course_quiz_ids: Iterable[str]) -> int:
    """Progress percentage of an enrollment; a course without quizzes is complete."""
    total = len(set(course_quiz_ids))
    if total == 0:
        return 100
    completed = len(set(completed_quiz_ids))
    return min(100, round_half_up(100 * completed / total))


def is_course_complete(completed_quiz_ids: Iterable[str], course_quiz_ids: Iterable[str]) -> bool:
    required = set(course_quiz_ids)
    if not required:
        return True
    return required.issubset(set(completed_quiz_ids))

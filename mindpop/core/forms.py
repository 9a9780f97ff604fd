"""Form schemas for administrator input.

Stores validate every create and update against these models before anything
is written; partial updates are validated by merging the changes into the
current record first.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, Field, PositiveInt, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from mindpop.constants.quiz_constants import DEFAULT_QUESTION_POINTS
from mindpop.core.errors import ValidationError
from mindpop.core.models import QuestionType

_TRUE_FALSE_VALUES = ("true", "false")

FormT = TypeVar("FormT", bound=BaseModel)


class CourseForm(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    image_url: str | None = None

    @field_validator("title", "description")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("image_url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        cleaned = value.strip()
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("Please enter a valid URL.")
        return cleaned


class QuizForm(BaseModel):
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    time_limit: PositiveInt | None = None
    passing_score: int | None = Field(None, gt=0, le=100)
    review_enabled: bool = False


class QuestionForm(BaseModel):
    quiz_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=3)
    type: QuestionType
    options: list[str] = Field(default_factory=list)
    correct_answer: str | list[str]
    points: PositiveInt = DEFAULT_QUESTION_POINTS

    @model_validator(mode="after")
    def _check_answer_shape(self) -> "QuestionForm":
        if self.type is QuestionType.MULTIPLE_CHOICE:
            self.options = [option.strip() for option in self.options]
            if len(self.options) < 2 or any(not option for option in self.options):
                raise ValueError("Multiple choice questions need at least two non-empty options.")
            if not isinstance(self.correct_answer, str) or self.correct_answer not in self.options:
                raise ValueError("The correct answer must be one of the options.")
        elif self.type is QuestionType.TRUE_FALSE:
            if self.correct_answer not in _TRUE_FALSE_VALUES:
                raise ValueError("True/false questions must have 'true' or 'false' as the answer.")
            self.options = []
        else:
            answer = self.correct_answer
            if (isinstance(answer, str) and not answer.strip()) or (isinstance(answer, list) and not answer):
                raise ValueError("Short answer questions need a correct answer.")
            self.options = []
        return self


def validate_form(form: type[FormT], data: Mapping[str, Any]) -> FormT:
    """Validate raw input, translating pydantic errors into ValidationError."""
    try:
        return form.model_validate(dict(data))
    except PydanticValidationError as exc:
        field_errors: dict[str, str] = {}
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "__root__"
            field_errors[location] = error["msg"]
        summary = "; ".join(f"{name}: {message}" for name, message in field_errors.items())
        raise ValidationError(f"Invalid {form.__name__}: {summary}", field_errors) from exc

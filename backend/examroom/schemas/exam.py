from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field, RootModel, field_validator

from examroom.schemas.common import AuditedSchema, BaseSchema, PaginationMeta


OptionKey = Literal['A', 'B', 'C', 'D']


def strip_required(value: str | None, label: str) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError(f'{label} is required')
    return value


class ExamCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    duration_minutes: int = Field(ge=1, le=300)
    passing_marks: int = Field(ge=1)

    @field_validator('title')
    @classmethod
    def strip_title(cls, value: str) -> str:
        return strip_required(value, 'Title')


class ExamUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    duration_minutes: int | None = Field(default=None, ge=1, le=300)
    passing_marks: int | None = Field(default=None, ge=1)

    @field_validator('title')
    @classmethod
    def strip_title(cls, value: str | None) -> str | None:
        return strip_required(value, 'Title')


class ExamActivationUpdate(BaseModel):
    is_active: bool


class ExamOut(AuditedSchema):
    title: str
    description: str | None
    duration_minutes: int
    total_marks: int
    passing_marks: int
    is_active: bool


class ExamListResponse(BaseModel):
    items: list[ExamOut]
    meta: PaginationMeta


class SingleChoiceQuestionCreate(BaseModel):
    question_type: Literal['single_choice']
    prompt: str = Field(min_length=1, max_length=1000)
    marks: int = Field(ge=1, le=100)
    order_index: int = Field(default=0, ge=0)
    options: list[Annotated[str, Field(min_length=1, max_length=500)]] = Field(min_length=4, max_length=4)
    correct_option: OptionKey

    @field_validator('prompt')
    @classmethod
    def strip_prompt(cls, value: str) -> str:
        return strip_required(value, 'Prompt')


class FreeTextQuestionCreate(BaseModel):
    question_type: Literal['free_text']
    prompt: str = Field(min_length=1, max_length=1000)
    marks: int = Field(ge=1, le=100)
    order_index: int = Field(default=0, ge=0)

    @field_validator('prompt')
    @classmethod
    def strip_prompt(cls, value: str) -> str:
        return strip_required(value, 'Prompt')


QuestionCreate = Annotated[
    SingleChoiceQuestionCreate | FreeTextQuestionCreate,
    Field(discriminator='question_type'),
]


class QuestionUpdate(BaseModel):
    prompt: str | None = Field(default=None, min_length=1, max_length=1000)
    marks: int | None = Field(default=None, ge=1, le=100)
    order_index: int | None = Field(default=None, ge=0)
    options: list[Annotated[str, Field(min_length=1, max_length=500)]] | None = Field(
        default=None, min_length=4, max_length=4
    )
    correct_option: OptionKey | None = None

    @field_validator('prompt')
    @classmethod
    def strip_prompt(cls, value: str | None) -> str | None:
        return strip_required(value, 'Prompt')


class QuestionAuthoringOut(BaseSchema):
    """Instructor view of a question, answer key included."""

    id: UUID
    exam_id: UUID
    question_type: str
    prompt: str
    marks: int
    order_index: int
    options: list[str] | None = None
    correct_option: str | None = None
    created_at: datetime
    updated_at: datetime


class ExamDetailOut(ExamOut):
    questions: list[QuestionAuthoringOut] = Field(default_factory=list)


class QuestionCreateRequest(RootModel[QuestionCreate]):
    pass

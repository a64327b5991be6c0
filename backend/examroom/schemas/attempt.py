from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from examroom.schemas.common import BaseSchema


class OptionView(BaseModel):
    key: str
    text: str


class SingleChoiceQuestionView(BaseModel):
    id: UUID
    question_type: Literal['single_choice'] = 'single_choice'
    prompt: str
    marks: int
    order_index: int
    options: list[OptionView]


class FreeTextQuestionView(BaseModel):
    id: UUID
    question_type: Literal['free_text'] = 'free_text'
    prompt: str
    marks: int
    order_index: int


QuestionView = Annotated[
    SingleChoiceQuestionView | FreeTextQuestionView,
    Field(discriminator='question_type'),
]


class AttemptOut(BaseSchema):
    id: UUID
    exam_id: UUID
    student_id: UUID
    status: str
    started_at: datetime
    deadline_at: datetime
    submitted_at: datetime | None
    submission_trigger: str | None
    tab_switch_count: int
    score: int | None
    total_marks: int | None
    percentage: float | None
    passed: bool | None
    requires_manual_grading: bool
    manual_grading_completed: bool


class AttemptStartOut(BaseModel):
    attempt: AttemptOut
    deadline_at: datetime


class ExamPaperOut(BaseModel):
    exam_id: UUID
    title: str
    duration_minutes: int
    attempt_id: UUID
    deadline_at: datetime
    questions: list[QuestionView]


class AnswerIn(BaseModel):
    question_id: UUID
    selected_option: str | None = None
    response_text: str | None = Field(default=None, max_length=20_000)


class DraftAnswersIn(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)


class AttemptSubmitIn(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)
    trigger: Literal['manual', 'timer', 'proctoring'] = 'manual'


class FocusLossOut(BaseModel):
    attempt_id: UUID
    tab_switch_count: int
    accepted: bool


class AnswerOut(BaseSchema):
    question_id: UUID
    selected_option: str | None
    is_correct: bool | None
    response_text: str | None
    is_graded: bool
    awarded_marks: int | None


class AttemptDetailOut(AttemptOut):
    answers: list[AnswerOut] = Field(default_factory=list)


class AttemptListResponse(BaseModel):
    items: list[AttemptOut]

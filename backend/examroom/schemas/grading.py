from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from examroom.schemas.attempt import AttemptOut
from examroom.schemas.common import BaseSchema


class GradeIn(BaseModel):
    awarded_marks: int = Field(ge=0)


class GradingAnswerOut(BaseSchema):
    answer_id: UUID
    question_id: UUID
    prompt: str
    max_marks: int
    response_text: str | None
    awarded_marks: int | None
    is_graded: bool
    graded_by: UUID | None
    graded_at: datetime | None


class AttemptGradingOut(BaseModel):
    attempt: AttemptOut
    exam_title: str
    answers: list[GradingAnswerOut]


class RegradeMismatch(BaseModel):
    answer_id: UUID
    question_id: UUID
    stored_is_correct: bool | None
    recomputed_is_correct: bool
    stored_marks: int | None
    recomputed_marks: int


class RegradeAuditOut(BaseModel):
    attempt_id: UUID
    checked: int
    mismatches: list[RegradeMismatch] = Field(default_factory=list)


class AttemptResultOut(AttemptOut):
    student_name: str | None = None
    student_email: str | None = None


class ExamResultSummary(BaseModel):
    exam_id: UUID
    attempt_count: int
    graded_count: int
    pass_count: int
    average_percentage: float | None


class ExamResultListResponse(BaseModel):
    items: list[AttemptResultOut]
    summary: ExamResultSummary


class SweepOut(BaseModel):
    finalized: int

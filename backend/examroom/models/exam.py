import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from examroom.db.base_class import Base
from examroom.models.constants import (
    ATTEMPT_STATUS_VALUES,
    CHOICE_OPTION_KEYS,
    EXAM_DURATION_RANGE,
    QUESTION_MARKS_RANGE,
    QUESTION_TYPE_VALUES,
    SUBMISSION_TRIGGER_VALUES,
    sql_in,
)
from examroom.models.mixins import AuditUserMixin, TimestampMixin, UUIDPrimaryKeyMixin


class Exam(UUIDPrimaryKeyMixin, TimestampMixin, AuditUserMixin, Base):
    __tablename__ = 'exams'
    __table_args__ = (
        CheckConstraint(
            f'duration_minutes between {EXAM_DURATION_RANGE[0]} and {EXAM_DURATION_RANGE[1]}', name='exam_duration_range'
        ),
        CheckConstraint('passing_marks >= 1', name='exam_passing_marks_positive'),
        CheckConstraint('total_marks >= 0', name='exam_total_marks_non_negative'),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    # Sum of question marks, maintained by exam_service; never taken from a client.
    total_marks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passing_marks: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    questions: Mapped[list['Question']] = relationship(
        back_populates='exam',
        cascade='all, delete-orphan',
        order_by='Question.order_index',
    )


class Question(UUIDPrimaryKeyMixin, TimestampMixin, AuditUserMixin, Base):
    __tablename__ = 'questions'
    __table_args__ = (
        CheckConstraint(sql_in('question_type', QUESTION_TYPE_VALUES), name='question_type_values'),
        CheckConstraint(
            f'marks between {QUESTION_MARKS_RANGE[0]} and {QUESTION_MARKS_RANGE[1]}', name='question_marks_range'
        ),
        CheckConstraint(
            'correct_option is null or ' + sql_in('correct_option', CHOICE_OPTION_KEYS),
            name='question_correct_option_values',
        ),
    )

    exam_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('exams.id', ondelete='CASCADE'), nullable=False)
    question_type: Mapped[str] = mapped_column(String(30), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    marks: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    exam: Mapped['Exam'] = relationship(back_populates='questions')

    __mapper_args__ = {
        'polymorphic_on': 'question_type',
        'polymorphic_abstract': True,
    }


class ChoiceQuestion(Question):
    options: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    # Answer key. Stays on the server: delivery views never read this attribute.
    correct_option: Mapped[str | None] = mapped_column(String(1), nullable=True)

    __mapper_args__ = {'polymorphic_identity': 'single_choice'}


class FreeTextQuestion(Question):
    __mapper_args__ = {'polymorphic_identity': 'free_text'}


class Attempt(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'attempts'
    __table_args__ = (
        UniqueConstraint('exam_id', 'student_id', name='uq_attempts_exam_student'),
        CheckConstraint(sql_in('status', ATTEMPT_STATUS_VALUES), name='attempt_status_values'),
        CheckConstraint(
            'submission_trigger is null or ' + sql_in('submission_trigger', SUBMISSION_TRIGGER_VALUES),
            name='attempt_submission_trigger_values',
        ),
        CheckConstraint('tab_switch_count >= 0', name='attempt_tab_switch_count_non_negative'),
    )

    exam_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('exams.id', ondelete='RESTRICT'), nullable=False)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default='in_progress', index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deadline_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submission_trigger: Mapped[str | None] = mapped_column(String(30), nullable=True)
    tab_switch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    draft_answers: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_marks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    requires_manual_grading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    manual_grading_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    exam: Mapped['Exam'] = relationship()
    answers: Mapped[list['Answer']] = relationship(back_populates='attempt', cascade='all, delete-orphan')


class Answer(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = 'answers'
    __table_args__ = (
        UniqueConstraint('attempt_id', 'question_id', name='uq_answers_attempt_question'),
        CheckConstraint('awarded_marks is null or awarded_marks >= 0', name='answer_awarded_marks_non_negative'),
    )

    attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('attempts.id', ondelete='CASCADE'), nullable=False
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('questions.id', ondelete='RESTRICT'), nullable=False
    )
    selected_option: Mapped[str | None] = mapped_column(String(1), nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_graded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    awarded_marks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    graded_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey('users.id', ondelete='SET NULL'), nullable=True
    )
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    attempt: Mapped['Attempt'] = relationship(back_populates='answers')
    question: Mapped['Question'] = relationship()


Index('ix_questions_exam_id', Question.exam_id)
Index('ix_attempts_exam_id', Attempt.exam_id)
Index('ix_attempts_student_id', Attempt.student_id)
Index('ix_answers_attempt_id', Answer.attempt_id)

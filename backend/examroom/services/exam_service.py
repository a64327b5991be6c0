from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from examroom.core.exceptions import InvalidState, NotFound, Unauthorized, ValidationError
from examroom.models.exam import Attempt, ChoiceQuestion, Exam, FreeTextQuestion, Question
from examroom.models.rbac import User
from examroom.services import audit_service


def is_admin(user: User) -> bool:
    return 'admin' in user.role_names


def is_instructor_for(exam: Exam, user: User) -> bool:
    if is_admin(user):
        return True
    return 'instructor' in user.role_names and exam.created_by == user.id


def ensure_can_manage(exam: Exam, user: User) -> None:
    if not is_instructor_for(exam, user):
        raise Unauthorized('Not an instructor for this exam')


def get_exam(db: Session, exam_id: UUID, *, with_questions: bool = False) -> Exam:
    query = select(Exam).where(Exam.id == exam_id)
    if with_questions:
        query = query.options(selectinload(Exam.questions))
    exam = db.scalar(query)
    if not exam:
        raise NotFound('Exam not found')
    return exam


def get_question(db: Session, question_id: UUID) -> Question:
    question = db.scalar(select(Question).where(Question.id == question_id))
    if not question:
        raise NotFound('Question not found')
    return question


def list_exam_questions(db: Session, exam_id: UUID) -> list[Question]:
    return list(
        db.scalars(
            select(Question)
            .where(Question.exam_id == exam_id)
            .order_by(Question.order_index.asc(), Question.created_at.asc(), Question.id.asc())
        ).all()
    )


def has_attempts(db: Session, exam_id: UUID) -> bool:
    count = db.scalar(select(func.count()).select_from(Attempt).where(Attempt.exam_id == exam_id))
    return bool(count)


def recompute_total_marks(db: Session, exam: Exam) -> int:
    db.flush()
    total = db.scalar(select(func.coalesce(func.sum(Question.marks), 0)).where(Question.exam_id == exam.id))
    exam.total_marks = int(total or 0)
    return exam.total_marks


def list_exams(db: Session, *, user: User, page: int, page_size: int) -> tuple[list[Exam], int]:
    base = select(Exam)
    if not is_admin(user):
        if 'instructor' in user.role_names:
            base = base.where(Exam.created_by == user.id)
        else:
            base = base.where(Exam.is_active.is_(True))

    total = db.scalar(select(func.count()).select_from(base.subquery()))
    items = db.scalars(
        base.order_by(Exam.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    ).all()
    return list(items), int(total or 0)


def create_exam(db: Session, *, payload: dict, actor_user_id: UUID) -> Exam:
    exam = Exam(
        title=payload['title'],
        description=payload.get('description'),
        duration_minutes=payload['duration_minutes'],
        passing_marks=payload['passing_marks'],
        total_marks=0,
        is_active=False,
        created_by=actor_user_id,
        updated_by=actor_user_id,
    )
    db.add(exam)
    db.flush()
    return exam


def update_exam(db: Session, *, exam_id: UUID, payload: dict, actor_user_id: UUID) -> Exam:
    exam = get_exam(db, exam_id)
    for field in ['title', 'description', 'duration_minutes', 'passing_marks']:
        if field in payload and payload[field] is not None:
            setattr(exam, field, payload[field])
    if exam.is_active and exam.passing_marks > exam.total_marks:
        raise ValidationError('Passing marks cannot exceed total marks')
    exam.updated_by = actor_user_id
    db.flush()
    return exam


def set_exam_active(db: Session, *, exam_id: UUID, is_active: bool, actor_user_id: UUID) -> Exam:
    exam = get_exam(db, exam_id)
    if is_active:
        questions = list_exam_questions(db, exam.id)
        if not questions:
            raise ValidationError('An exam needs at least one question before it can be activated')
        total = recompute_total_marks(db, exam)
        if exam.passing_marks > total:
            raise ValidationError('Passing marks cannot exceed total marks')
    exam.is_active = is_active
    exam.updated_by = actor_user_id
    db.flush()

    audit_service.log_action(
        db,
        actor_user_id=actor_user_id,
        action='exam_activated' if is_active else 'exam_deactivated',
        entity_type='exam',
        entity_id=exam.id,
        details={'total_marks': exam.total_marks, 'passing_marks': exam.passing_marks},
    )
    return exam


def _ensure_questions_editable(db: Session, exam: Exam) -> None:
    # Submitted attempts snapshot scores against this question set.
    if has_attempts(db, exam.id):
        raise InvalidState('Questions cannot change once attempts exist for this exam')


def add_question(db: Session, *, exam_id: UUID, payload: dict, actor_user_id: UUID) -> Question:
    exam = get_exam(db, exam_id)
    _ensure_questions_editable(db, exam)

    common = {
        'exam_id': exam.id,
        'prompt': payload['prompt'],
        'marks': payload['marks'],
        'order_index': payload.get('order_index', 0),
        'created_by': actor_user_id,
        'updated_by': actor_user_id,
    }
    if payload['question_type'] == 'single_choice':
        options = [str(option).strip() for option in payload['options']]
        if len(options) != 4 or not all(options):
            raise ValidationError('Single-choice questions need exactly four non-empty options')
        question: Question = ChoiceQuestion(
            **common,
            options=options,
            correct_option=payload['correct_option'],
        )
    elif payload['question_type'] == 'free_text':
        question = FreeTextQuestion(**common)
    else:
        raise ValidationError('Unknown question type')

    db.add(question)
    recompute_total_marks(db, exam)
    exam.updated_by = actor_user_id
    db.flush()
    return question


def update_question(db: Session, *, question_id: UUID, payload: dict, actor_user_id: UUID) -> Question:
    question = get_question(db, question_id)
    exam = get_exam(db, question.exam_id)
    _ensure_questions_editable(db, exam)

    for field in ['prompt', 'marks', 'order_index']:
        if field in payload and payload[field] is not None:
            setattr(question, field, payload[field])

    choice_fields = [field for field in ('options', 'correct_option') if payload.get(field) is not None]
    if choice_fields:
        if not isinstance(question, ChoiceQuestion):
            raise ValidationError('Free-text questions have no options or answer key')
        if payload.get('options') is not None:
            options = [str(option).strip() for option in payload['options']]
            if len(options) != 4 or not all(options):
                raise ValidationError('Single-choice questions need exactly four non-empty options')
            question.options = options
        if payload.get('correct_option') is not None:
            question.correct_option = payload['correct_option']

    question.updated_by = actor_user_id
    total = recompute_total_marks(db, exam)
    if exam.is_active and exam.passing_marks > total:
        raise ValidationError('Passing marks cannot exceed total marks')
    db.flush()
    return question


def delete_question(db: Session, *, question_id: UUID, actor_user_id: UUID) -> Exam:
    question = get_question(db, question_id)
    exam = get_exam(db, question.exam_id)
    _ensure_questions_editable(db, exam)

    db.delete(question)
    db.flush()
    total = recompute_total_marks(db, exam)
    if exam.is_active and (total == 0 or exam.passing_marks > total):
        raise ValidationError('An active exam must keep enough questions to reach its passing marks')
    exam.updated_by = actor_user_id
    db.flush()
    return exam

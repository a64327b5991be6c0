import os
import tempfile
from collections.abc import Generator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

TEST_DATABASE_URL = os.getenv('TEST_DATABASE_URL') or (
    f"sqlite:///{os.path.join(tempfile.mkdtemp(prefix='examroom-tests-'), 'examroom.db')}"
)

os.environ.setdefault('DATABASE_URL', TEST_DATABASE_URL)
os.environ.setdefault('JWT_SECRET_KEY', 'test-access-secret-32-chars-min-0001')
os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('CORS_ORIGINS', 'http://localhost:3001')
os.environ.setdefault('FIRST_ADMIN_EMAIL', 'seed-admin@example.com')
os.environ.setdefault('SUBMISSION_GRACE_SECONDS', '30')

from examroom.core.security import create_access_token
from examroom.db.base import Base
from examroom.db.session import SessionLocal, engine, get_db
from examroom.main import app
from examroom.models.rbac import Role, User, UserRole


TestingSessionLocal = SessionLocal

SEED_USERS = [
    ('seed-admin@example.com', 'Admin User', ['admin']),
    ('seed-instructor@example.com', 'Instructor One', ['instructor']),
    ('seed-instructor-2@example.com', 'Instructor Two', ['instructor']),
    ('seed-student-1@example.com', 'Student One', ['student']),
    ('seed-student-2@example.com', 'Student Two', ['student']),
]


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        _seed_roles(db)
        _seed_users(db)
        db.commit()
    finally:
        db.close()

    yield

    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    # A session per request; one shared session would hold the SQLite write lock between calls.
    def _override_db() -> Generator[Session, None, None]:
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_db

    with TestClient(app) as api_client:
        yield api_client

    app.dependency_overrides.clear()


def _seed_roles(db: Session) -> None:
    roles = [
        ('admin', 'Admin access'),
        ('instructor', 'Instructor access'),
        ('student', 'Student access'),
    ]
    for role_name, description in roles:
        db.add(Role(name=role_name, description=description))
    db.flush()


def _seed_users(db: Session) -> None:
    role_map = {role.name: role for role in db.scalars(select(Role)).all()}

    for email, full_name, role_names in SEED_USERS:
        user = User(email=email, full_name=full_name, is_active=True)
        db.add(user)
        db.flush()

        for role_name in role_names:
            db.add(UserRole(user_id=user.id, role_id=role_map[role_name].id))

    db.flush()


def user_id(email: str) -> UUID:
    db = TestingSessionLocal()
    try:
        return db.scalar(select(User.id).where(User.email == email))
    finally:
        db.close()


def load_user(db: Session, email: str) -> User:
    return db.scalar(select(User).where(User.email == email))


def auth_header(email: str) -> dict[str, str]:
    return {'Authorization': f'Bearer {create_access_token(str(user_id(email)))}'}


ADMIN = 'seed-admin@example.com'
INSTRUCTOR = 'seed-instructor@example.com'
OTHER_INSTRUCTOR = 'seed-instructor-2@example.com'
STUDENT = 'seed-student-1@example.com'
OTHER_STUDENT = 'seed-student-2@example.com'


def create_exam(
    client: TestClient,
    *,
    questions: list[dict],
    passing_marks: int = 1,
    duration_minutes: int = 30,
    activate: bool = True,
    instructor: str = INSTRUCTOR,
) -> dict:
    """Author an exam over the API and return ``{'exam': ..., 'questions': [...]}``."""
    headers = auth_header(instructor)
    response = client.post(
        '/api/v1/exams',
        headers=headers,
        json={
            'title': 'Midterm',
            'description': 'Chapters 1-4',
            'duration_minutes': duration_minutes,
            'passing_marks': passing_marks,
        },
    )
    assert response.status_code == 201, response.text
    exam = response.json()

    created = []
    for index, question in enumerate(questions):
        response = client.post(
            f"/api/v1/exams/{exam['id']}/questions",
            headers=headers,
            json={'order_index': index, **question},
        )
        assert response.status_code == 201, response.text
        created.append(response.json())

    if activate:
        response = client.post(
            f"/api/v1/exams/{exam['id']}/activation", headers=headers, json={'is_active': True}
        )
        assert response.status_code == 200, response.text
        exam = response.json()

    return {'exam': exam, 'questions': created}


def choice_question(correct_option: str = 'A', marks: int = 10) -> dict:
    return {
        'question_type': 'single_choice',
        'prompt': 'Pick the right answer',
        'marks': marks,
        'options': ['first', 'second', 'third', 'fourth'],
        'correct_option': correct_option,
    }


def free_text_question(marks: int = 10) -> dict:
    return {'question_type': 'free_text', 'prompt': 'Explain your reasoning', 'marks': marks}


def start_attempt(client: TestClient, exam_id: str, student: str = STUDENT) -> dict:
    response = client.post(f'/api/v1/exams/{exam_id}/attempts', headers=auth_header(student))
    assert response.status_code == 201, response.text
    return response.json()['attempt']

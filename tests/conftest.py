# tests/conftest.py
import os
import tempfile
import uuid
from datetime import timedelta
from types import SimpleNamespace

os.environ.setdefault("JWT_SECRET", "test-secret-change-me-123")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="academy-uploads-"))

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from academy.main import app
from academy.core.db import (
    engine as global_engine,
    clear_db_session_override,
    engine_options,
    reset_session_factory,
    set_db_session_override,
    set_session_factory,
)
from academy.core.settings import settings
from academy.core.timeutils import utcnow
from academy.models.base import Base
from academy.models.roles import RolesEnum
from academy.models.submissions import SubmissionStatus
from academy.repositories.CohortsRepository import CohortsRepository
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.repositories.LearningPathRepository import LearningPathRepository
from academy.repositories.ProgramsRepository import ProgramsRepository
from academy.repositories.SubmissionsRepository import SubmissionsRepository
from academy.repositories.UsersRepository import UsersRepository
from academy.scripts.init_db import seed_roles
from academy.services.rate_limiter import reset_memory_limiters
from academy.services.security import (
    generate_csrf_token,
    hash_password,
    session_payload,
    sign_session,
)


app.config.update({"TESTING": True})

DEFAULT_PASSWORD = "Secret123!"
_password_hash = None


def unique_email(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def _default_hash() -> str:
    # bcrypt is slow; hash the shared test password once
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(DEFAULT_PASSWORD)
    return _password_hash


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(settings.url, **engine_options(settings.url))
    Base.metadata.create_all(bind=eng)
    Base.metadata.create_all(bind=global_engine)
    with Session(eng) as session:
        seed_roles(session)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def db_connection(engine):
    conn = engine.connect()
    trans = conn.begin()
    try:
        yield conn
    finally:
        trans.rollback()
        conn.close()


@pytest.fixture(scope="function")
def db_session(db_connection):
    SessionLocal = sessionmaker(
        bind=db_connection,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    nested = db_connection.begin_nested()

    def restart_savepoint(sess, trans_):
        nonlocal nested
        if trans_.nested and not trans_.connection.closed:
            nested = db_connection.begin_nested()

    event.listen(session, "after_transaction_end", restart_savepoint)

    set_session_factory(SessionLocal)
    set_db_session_override(session)

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        clear_db_session_override()
        reset_session_factory()
        session.close()


@pytest.fixture(autouse=True)
def _reset_rate_limiters():
    reset_memory_limiters()
    yield
    reset_memory_limiters()


@pytest.fixture(scope="function")
def client():
    with app.test_client() as client:
        yield client


@pytest.fixture
def default_password():
    return DEFAULT_PASSWORD


@pytest.fixture
def make_user(db_session):
    def _make(role=RolesEnum.TRAINEE, *, name=None, email=None):
        return UsersRepository(db_session).CreateUser(
            email=email or unique_email(role.value.lower()),
            password_hash=_default_hash(),
            name=name or f"{role.value.title()} User",
            role=role,
        )

    return _make


@pytest.fixture
def login_as(client):
    """Install session and CSRF cookies for ``user``; returns the CSRF header."""

    def _login(user):
        csrf_token = generate_csrf_token(str(user.user_id))
        client.set_cookie(settings.COOKIE_NAME, sign_session(session_payload(user)))
        client.set_cookie(settings.CSRF_COOKIE_NAME, csrf_token)
        return {"X-CSRF-Token": csrf_token}

    return _login


@pytest.fixture
def admin(make_user):
    return make_user(RolesEnum.ADMIN, name="Ada Admin")


@pytest.fixture
def mentor(make_user):
    return make_user(RolesEnum.MENTOR, name="Max Mentor")


@pytest.fixture
def trainee(make_user):
    return make_user(RolesEnum.TRAINEE, name="Tina Trainee")


@pytest.fixture
def build_program(db_session, admin, mentor):
    """Program -> course -> modules (lessons + one mandatory assignment) and a
    running cohort with the given trainees enrolled."""

    def _build(*, modules=2, lessons=2, trainees=(), name="Prototyping 101"):
        program = ProgramsRepository(db_session).create(
            actor_id=admin.user_id, name=name, description="Hands-on prototyping"
        )
        curriculum = CurriculumRepository(db_session)
        course = curriculum.create_course(admin, name="Foundations", program_id=program.id)
        built_modules = []
        lessons_by_module = {}
        assignment_by_module = {}
        for m in range(modules):
            module = curriculum.create_module(course.id, title=f"Module {m + 1}")
            built_modules.append(module)
            lessons_by_module[module.id] = [
                curriculum.create_lesson(module.id, title=f"Lesson {m + 1}.{i + 1}")
                for i in range(lessons)
            ]
            assignment_by_module[module.id] = curriculum.create_assignment(
                module.id, title=f"Assignment {m + 1}"
            )

        now = utcnow()
        cohorts = CohortsRepository(db_session)
        cohort = cohorts.create(
            name="Cohort A",
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            program_id=program.id,
            mentor_id=mentor.user_id,
            actor_id=admin.user_id,
        )
        if trainees:
            cohorts.enroll_trainees(
                cohort.id, [t.user_id for t in trainees], actor_id=admin.user_id
            )
        return SimpleNamespace(
            program=program,
            course=course,
            modules=built_modules,
            lessons=lessons_by_module,
            assignments=assignment_by_module,
            cohort=cohort,
        )

    return _build


@pytest.fixture
def complete_program(db_session, mentor, admin):
    """Drive ``trainee`` through lessons and approved submissions of each module."""

    def _complete(built, trainee, modules=None):
        path = LearningPathRepository(db_session)
        submissions = SubmissionsRepository(db_session)
        for module in built.modules if modules is None else modules:
            for lesson in built.lessons[module.id]:
                path.record_lesson_access(trainee.user_id, lesson)
            submission = submissions.create(
                trainee, built.assignments[module.id].id, content="Finished work"
            )
            submissions.review(submission.id, mentor, status=SubmissionStatus.APPROVED)
            submissions.review(submission.id, admin, status=SubmissionStatus.APPROVED)

    return _complete

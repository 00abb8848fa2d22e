import os

# Point the app at SQLite before anything imports the settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("EXPIRE_STALE_ON_START", "true")

import pytest
import pytest_asyncio # For async fixtures
from datetime import datetime, timedelta
from typing import AsyncGenerator, Awaitable, Callable, Optional

from httpx import AsyncClient, ASGITransport # Use AsyncClient for async app
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app as fastapi_app
from app.api import deps
from app.core import security
from app.db import models
from app.db.base_class import Base
from app.schemas import ExamCreate, Principal, RoleEnum
from app.services import exam_catalog

# Fixed clock for service tests
NOW = datetime(2026, 11, 2, 10, 0, 0)

ADMIN_ID = 1
FACULTY_ID = 10
OTHER_FACULTY_ID = 11
STUDENT_ID = 100
OTHER_STUDENT_ID = 101 # not enrolled anywhere
COURSE_ID = 7
OTHER_COURSE_ID = 8


# --- Database ---

@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory database per test, schema created from the ORM metadata."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Session for service tests, with the course directory seeded."""
    async with session_factory() as session:
        session.add_all([
            models.Course(id=COURSE_ID, name="Data Structures", code="CS201", faculty_id=FACULTY_ID),
            models.Course(id=OTHER_COURSE_ID, name="Compilers", code="CS402", faculty_id=OTHER_FACULTY_ID),
        ])
        await session.flush()
        await session.execute(insert(models.course_students_table).values(course_id=COURSE_ID, student_id=STUDENT_ID))
        await session.commit()
        yield session


# --- Principals ---

@pytest.fixture(scope="session")
def admin() -> Principal:
    return Principal(id=ADMIN_ID, role=RoleEnum.admin)

@pytest.fixture(scope="session")
def faculty() -> Principal:
    return Principal(id=FACULTY_ID, role=RoleEnum.faculty)

@pytest.fixture(scope="session")
def other_faculty() -> Principal:
    return Principal(id=OTHER_FACULTY_ID, role=RoleEnum.faculty)

@pytest.fixture(scope="session")
def student() -> Principal:
    return Principal(id=STUDENT_ID, role=RoleEnum.student)

@pytest.fixture(scope="session")
def other_student() -> Principal:
    return Principal(id=OTHER_STUDENT_ID, role=RoleEnum.student)


def auth_headers(principal: Principal) -> dict[str, str]:
    """Bearer headers with a real token, as the identity provider would issue."""
    token = security.create_access_token(principal.id, principal.role)
    return {"Authorization": f"Bearer {token}"}


# --- Exams ---

def two_mcq_exam(start_time: datetime, end_time: datetime, *, max_attempts: int = 1, **overrides) -> ExamCreate:
    """Two mcq questions worth 5 and 10, keys "A" and "B"."""
    payload = {
        "title": "Quiz 1",
        "course_id": COURSE_ID,
        "duration": 60,
        "start_time": start_time,
        "end_time": end_time,
        "questions": [
            {"question_text": "First?", "question_type": "mcq", "options": ["A", "B", "C"], "correct_answer": "A", "marks": 5},
            {"question_text": "Second?", "question_type": "mcq", "options": ["A", "B", "C"], "correct_answer": "B", "marks": 10},
        ],
        "settings": {"max_attempts": max_attempts},
    }
    payload.update(overrides)
    return ExamCreate(**payload)


@pytest_asyncio.fixture(scope="function")
async def make_exam(db: AsyncSession, faculty: Principal) -> Callable[..., Awaitable[models.Exam]]:
    """Factory for the two-question exam, open for an hour either side of NOW by default."""
    async def _make(*, start_time: Optional[datetime] = None, end_time: Optional[datetime] = None,
                    max_attempts: int = 1, **overrides) -> models.Exam:
        exam_in = two_mcq_exam(
            start_time or NOW - timedelta(hours=1),
            end_time or NOW + timedelta(hours=1),
            max_attempts=max_attempts,
            **overrides,
        )
        return await exam_catalog.create_exam(db, faculty, exam_in)
    return _make


# --- Test Client ---

@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession, session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """httpx client against the app, each request on its own session of the test database."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[deps.get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    # Clean up override after test finishes
    del fastapi_app.dependency_overrides[deps.get_db]

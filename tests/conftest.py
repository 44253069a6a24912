"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.security import RequestContext, create_access_token
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.assessment import (
    AssessmentPhase,
    AssessmentStatus,
    ChildAssessmentInstance,
    TeacherAssessmentInstance,
)
from app.models.classroom import Child, ChildClassroom, Classroom, TeachingAssignment
from app.models.instrument import ChildInstrument, TeacherInstrument
from app.models.program import Activity, ActivityType, Enrollment, Track

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEACHER_USER_ID = 1
OTHER_USER_ID = 2


def dob_years_ago(years: float) -> date:
    return date.today() - timedelta(days=int(years * 365.25))


def likert_question(key: str, prompt: str = "", required: bool = True) -> dict:
    return {
        "question_id": key,
        "question_type": "likert",
        "prompt_text": prompt or f"Question {key}",
        "required": required,
        "allowed_values": ["0", "1", "2", "3", "4"],
    }


TEACHER_SECTIONS = [
    {
        "section_key": "practice",
        "title": "Classroom Practice",
        "type": "likert",
        "scale_key": "freq",
        "items": [
            {"key": "routines", "text": "I use predictable routines."},
            {"key": "feelings", "text": "I help children name feelings."},
        ],
    },
    {
        "section_key": "confidence",
        "title": "Confidence",
        "type": "scale",
        "scale_key": "conf",
        "items": [{"key": "overall", "text": "How confident are you?"}],
    },
]

TEACHER_SCALE_LABELS = {
    "freq": ["Never", "Rarely", "Sometimes", "Often", "Always"],
    "conf": {"low": "Not at all", "high": "Completely"},
}


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture(scope="function")
async def client(async_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test session injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def ctx() -> RequestContext:
    """Caller context for the enrolled teacher."""
    return RequestContext(user_id=TEACHER_USER_ID)


@pytest.fixture
def other_ctx() -> RequestContext:
    return RequestContext(user_id=OTHER_USER_ID)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization headers for the enrolled teacher."""
    token = create_access_token(subject=str(TEACHER_USER_ID))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    token = create_access_token(subject=str(OTHER_USER_ID))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def track(async_session: AsyncSession) -> Track:
    track = Track(name="Spring Cohort")
    async_session.add(track)
    await async_session.commit()
    return track


@pytest.fixture
async def classroom(async_session: AsyncSession) -> Classroom:
    classroom = Classroom(name="Sunflowers", school_name="Maple Street", age_band="preschool")
    async_session.add(classroom)
    await async_session.commit()
    return classroom


@pytest.fixture
async def enrollment(
    async_session: AsyncSession, track: Track, classroom: Classroom
) -> Enrollment:
    """Enrolled teacher assigned to the classroom."""
    enrollment = Enrollment(
        user_id=TEACHER_USER_ID,
        track_id=track.id,
        display_name="Jane Teacher",
        status="active",
    )
    async_session.add(enrollment)
    await async_session.flush()
    async_session.add(TeachingAssignment(enrollment_id=enrollment.id, classroom_id=classroom.id))
    await async_session.commit()
    return enrollment


async def add_child(
    session: AsyncSession,
    classroom: Classroom,
    first_name: str,
    last_name: str,
    dob: date | None,
) -> tuple[Child, ChildClassroom]:
    child = Child(first_name=first_name, last_name=last_name, dob=dob)
    session.add(child)
    await session.flush()
    membership = ChildClassroom(child_id=child.id, classroom_id=classroom.id, status="active")
    session.add(membership)
    await session.commit()
    return child, membership


@pytest.fixture
async def roster(
    async_session: AsyncSession, classroom: Classroom
) -> dict[str, tuple[Child, ChildClassroom]]:
    """Three preschool-aged children, keyed by first name."""
    return {
        "Ana": await add_child(async_session, classroom, "Ana", "Alvarez", dob_years_ago(4)),
        "Bo": await add_child(async_session, classroom, "Bo", "Brown", dob_years_ago(4.2)),
        "Cy": await add_child(async_session, classroom, "Cy", "Chen", dob_years_ago(3.5)),
    }


async def make_child_instrument(
    session: AsyncSession,
    band: str,
    questions: list[dict],
    name: str | None = None,
) -> ChildInstrument:
    instrument = ChildInstrument(
        name=name or f"Child Assessment {band}",
        instrument_type=f"children_{band}",
        version="1.0",
        questions=questions,
    )
    session.add(instrument)
    await session.commit()
    return instrument


@pytest.fixture
async def two_question_instrument(async_session: AsyncSession) -> ChildInstrument:
    """Preschool instrument with two required likert questions."""
    return await make_child_instrument(
        async_session,
        "preschool",
        [likert_question("q1", "Shares feelings"), likert_question("q2", "Calms down")],
    )


@pytest.fixture
async def child_instance(
    async_session: AsyncSession,
    enrollment: Enrollment,
    classroom: Classroom,
    two_question_instrument: ChildInstrument,
) -> ChildAssessmentInstance:
    """Pre-phase instance pinned to the two-question instrument."""
    instance = ChildAssessmentInstance(
        enrollment_id=enrollment.id,
        track_id=enrollment.track_id,
        classroom_id=classroom.id,
        phase=AssessmentPhase.PRE,
        instrument_age_band="preschool",
        instrument_id=two_question_instrument.id,
        instrument_version=two_question_instrument.version,
        status=AssessmentStatus.NOT_STARTED,
    )
    async_session.add(instance)
    await async_session.commit()
    return instance


@pytest.fixture
async def child_activity(async_session: AsyncSession, track: Track) -> Activity:
    activity = Activity(
        track_id=track.id,
        title="Child Assessment (Pre)",
        activity_type=ActivityType.CHILD_ASSESSMENT,
        external_ref={"phase": "pre"},
    )
    async_session.add(activity)
    await async_session.commit()
    return activity


@pytest.fixture
async def teacher_instrument(async_session: AsyncSession) -> TeacherInstrument:
    instrument = TeacherInstrument(
        instrument_key="teacher_self_assessment",
        name="Teacher Self-Assessment",
        version="2.0",
        sections=TEACHER_SECTIONS,
        scale_labels=TEACHER_SCALE_LABELS,
        status="active",
    )
    async_session.add(instrument)
    await async_session.commit()
    return instrument


async def make_teacher_instance(
    session: AsyncSession,
    enrollment: Enrollment,
    instrument: TeacherInstrument,
    phase: AssessmentPhase,
    responses: dict | None = None,
    status: AssessmentStatus = AssessmentStatus.NOT_STARTED,
) -> TeacherAssessmentInstance:
    instance = TeacherAssessmentInstance(
        enrollment_id=enrollment.id,
        track_id=enrollment.track_id,
        phase=phase,
        instrument_id=instrument.id,
        instrument_version=instrument.version,
        responses=responses or {},
        status=status,
    )
    session.add(instance)
    await session.commit()
    return instance


@pytest.fixture
async def teacher_pre_instance(
    async_session: AsyncSession,
    enrollment: Enrollment,
    teacher_instrument: TeacherInstrument,
) -> TeacherAssessmentInstance:
    return await make_teacher_instance(
        async_session, enrollment, teacher_instrument, AssessmentPhase.PRE
    )

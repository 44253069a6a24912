"""Database initialization utilities."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Base
from app.db.session import engine
from app.instruments.age_groups import AGE_GROUP_ORDER
from app.models.instrument import ChildInstrument, TeacherInstrument

logger = logging.getLogger(__name__)

DEFAULT_TEACHER_INSTRUMENT_KEY = "teacher_self_assessment"

_CHILD_QUESTION = {
    "question_id": "overall",
    "question_type": "likert",
    "prompt_text": "How often does the child show this behavior?",
    "required": True,
    "allowed_values": ["0", "1", "2", "3", "4"],
}

_TEACHER_SECTIONS = [
    {
        "section_key": "practices",
        "title": "Classroom Practices",
        "description": "How often do you use each practice?",
        "type": "likert",
        "scale_key": "frequency",
        "items": [
            {"key": "routines", "text": "I use predictable daily routines."},
            {"key": "feelings", "text": "I help children name their feelings."},
        ],
    },
    {
        "section_key": "wellbeing",
        "title": "Your Wellbeing",
        "type": "scale",
        "scale_key": "confidence",
        "retrospective": False,
        "items": [
            {"key": "confidence", "text": "How confident do you feel in your role?"},
        ],
    },
]

_TEACHER_SCALE_LABELS = {
    "frequency": ["Never", "Rarely", "Sometimes", "Often", "Always"],
    "confidence": {"low": "Not at all", "high": "Completely"},
}


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def drop_tables() -> None:
    """Drop all database tables (use with caution)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database tables dropped")


async def seed_child_instruments(session: AsyncSession) -> list[ChildInstrument]:
    """Create one starter instrument per age band that has none.

    Args:
        session: Database session

    Returns:
        Instruments created by this call
    """
    result = await session.execute(select(ChildInstrument.instrument_type))
    existing = set(result.scalars().all())

    created = []
    for band in AGE_GROUP_ORDER:
        instrument_type = f"children_{band}"
        if instrument_type in existing:
            continue
        instrument = ChildInstrument(
            name=f"Child Assessment ({band.title()})",
            instrument_type=instrument_type,
            version="1.0",
            questions=[dict(_CHILD_QUESTION)],
        )
        session.add(instrument)
        created.append(instrument)

    if created:
        await session.commit()
        logger.info(f"Seeded {len(created)} child instruments")
    return created


async def seed_teacher_instrument(session: AsyncSession) -> TeacherInstrument | None:
    """Create the starter self-assessment if no active one exists."""
    result = await session.execute(
        select(TeacherInstrument).where(TeacherInstrument.status == "active").limit(1)
    )
    if result.scalar_one_or_none():
        logger.info("Teacher instrument already exists, skipping creation")
        return None

    instrument = TeacherInstrument(
        instrument_key=DEFAULT_TEACHER_INSTRUMENT_KEY,
        name="Teacher Self-Assessment",
        version="1.0",
        sections=_TEACHER_SECTIONS,
        scale_labels=_TEACHER_SCALE_LABELS,
        status="active",
    )
    session.add(instrument)
    await session.commit()
    return instrument


async def init_db(session: AsyncSession) -> None:
    """Create tables and seed starter instruments.

    Args:
        session: Database session
    """
    await create_tables()
    await seed_child_instruments(session)
    await seed_teacher_instrument(session)
    logger.info("Database initialization complete")

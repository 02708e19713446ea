"""Shared fixtures: a throwaway SQLite database and a small course catalog."""

import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

# Must be set before skillpath.config is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="skillpath-tests-")
os.environ.setdefault("SKILLPATH_DATABASE_URL", f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'test.db'}")

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from skillpath.database import async_session, engine  # noqa: E402
from skillpath.models import Activity, Base, Skill, Unit  # noqa: E402


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Fresh tables for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with async_session() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def catalog(db: AsyncSession) -> dict[str, str]:
    """One skill with two units; returns ids by short name."""
    skill = Skill(id="skill-fractions", name="Fractions")
    unit_a = Unit(id="unit-basics", skill=skill, name="Basics", order=0)
    unit_b = Unit(id="unit-ops", skill=skill, name="Operations", order=1)
    act_1 = Activity(id="act-halves", unit=unit_a, name="Halves", order=0)
    act_2 = Activity(id="act-thirds", unit=unit_a, name="Thirds", order=1)
    act_3 = Activity(id="act-adding", unit=unit_b, name="Adding", order=0)
    db.add_all([skill, unit_a, unit_b, act_1, act_2, act_3])
    await db.commit()
    return {
        "skill": skill.id,
        "halves": act_1.id,
        "thirds": act_2.id,
        "adding": act_3.id,
    }

"""Pytest configuration and fixtures."""
import os
import uuid
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Ensure the application uses a dedicated SQLite database during tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"

from backend.config import get_settings


BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"
settings = get_settings()


def _remove_test_db():
    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # On Windows the file may still be open; the next run starts clean
            pass


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Build the test database schema through Alembic."""
    _remove_test_db()

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(alembic_cfg, "head")

    yield

    _remove_test_db()


@pytest.fixture
async def test_engine():
    """Engine on the migrated test database."""
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        # Concurrent sessions wait for the write lock instead of failing
        connect_args={"timeout": 30},
    )

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Factory for independent sessions, used to simulate concurrent callers."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()
        await session.close()


@pytest.fixture
async def test_app(session_factory):
    """Create test app with database override."""
    from backend.main import app
    from backend.database import get_db

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def member_factory(db_session):
    """Factory for creating test members with unique usernames."""
    from backend.services.member_service import MemberService

    member_service = MemberService(db_session)

    async def _create_member(username: str | None = None):
        if username is None:
            username = f"member{uuid.uuid4().hex[:10]}"
        return await member_service.create_member(username)

    return _create_member


@pytest.fixture
async def party_factory(db_session, member_factory):
    """Factory for a waiting party whose leader and extra members already joined."""
    from backend.services.party_roster_service import PartyRosterService

    roster = PartyRosterService(db_session)

    async def _create_party(
        leader=None,
        members: int = 0,
        candidate_outcomes=("A", "B", "C"),
        max_selections: int = 2,
        **kwargs,
    ):
        leader = leader or await member_factory()
        party = await roster.create_party(
            leader_id=leader.member_id,
            party_name=kwargs.pop("party_name", "Friday night"),
            bet_prompt=kwargs.pop("bet_prompt", "Who wins the match?"),
            candidate_outcomes=list(candidate_outcomes),
            max_selections=max_selections,
            **kwargs,
        )
        joined = []
        for _ in range(members):
            member = await member_factory()
            await roster.add_member(party.party_id, member.member_id)
            joined.append(member)
        return party, leader, joined

    return _create_party

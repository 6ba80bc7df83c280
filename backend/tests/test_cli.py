"""Tests for the management CLI."""

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from croptrail import cli
from croptrail.auth.password import verify_password
from croptrail.database import Base
from croptrail.models.profile import Profile, UserRole


@pytest_asyncio.fixture
async def cli_db(monkeypatch, tmp_path):
    # File-backed: the commands dispose the engine when they finish.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(cli, "engine", engine)
    monkeypatch.setattr(cli, "async_session", factory)
    yield factory
    await engine.dispose()


@pytest.mark.asyncio
class TestCreateUser:
    async def test_creates_profile(self, cli_db, capsys):
        code = await cli.create_user("depot@example.com", "depot-password", "vendor")

        assert code == 0
        assert "Created vendor" in capsys.readouterr().out
        async with cli_db() as session:
            profile = (
                await session.execute(select(Profile).where(Profile.email == "depot@example.com"))
            ).scalar_one()
        assert profile.role == UserRole.VENDOR
        assert verify_password("depot-password", profile.hashed_password)

    async def test_rejects_duplicate_email(self, cli_db, capsys):
        await cli.create_user("depot@example.com", "depot-password", "vendor")

        code = await cli.create_user("depot@example.com", "other-password", "farmer")

        assert code == 1
        assert "already exists" in capsys.readouterr().out

    async def test_rejects_unknown_role(self, cli_db, capsys):
        code = await cli.create_user("boss@example.com", "boss-password", "admin")

        assert code == 1
        assert "Unknown role 'admin'" in capsys.readouterr().out


@pytest.mark.unit
def test_usage_on_bad_arguments(capsys):
    assert cli.main(["croptrail.cli"]) == 2
    assert cli.main(["croptrail.cli", "create-user", "only-email"]) == 2
    assert "Usage" in capsys.readouterr().out

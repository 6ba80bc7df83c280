"""Management CLI.

Usage:
    python -m croptrail.cli init-db                          # Create all tables
    python -m croptrail.cli create-user EMAIL PASSWORD ROLE  # ROLE: farmer|transporter|vendor

Production schemas are managed by Alembic (``alembic upgrade head``);
``init-db`` is for local databases and SQLite.
"""

import asyncio
import sys

from sqlalchemy import select

from croptrail.auth.password import hash_password
from croptrail.database import Base, async_session, engine
from croptrail.models import Profile, UserRole

USAGE = "Usage: python -m croptrail.cli [init-db | create-user EMAIL PASSWORD ROLE]"


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Tables created.")


async def create_user(email: str, password: str, role: str) -> int:
    try:
        user_role = UserRole(role)
    except ValueError:
        print(f"Unknown role '{role}'. Choose one of: {', '.join(r.value for r in UserRole)}")
        return 1

    async with async_session() as session:
        existing = await session.execute(select(Profile.id).where(Profile.email == email))
        if existing.first() is not None:
            print(f"A profile with email {email} already exists.")
            return 1

        profile = Profile(email=email, hashed_password=hash_password(password), role=user_role)
        session.add(profile)
        await session.commit()
        print(f"Created {user_role.value} {profile.id} <{email}>")

    await engine.dispose()
    return 0


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "init-db":
        asyncio.run(init_db())
        return 0
    if cmd == "create-user" and len(argv) == 5:
        return asyncio.run(create_user(argv[2], argv[3], argv[4]))
    print(USAGE)
    return 2


if __name__ == "__main__":
    sys.exit(main(sys.argv))

"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_bearer_token       → raw bearer credential from the Authorization header
  get_current_profile    → decode JWT, load profile from DB, return Profile
  get_actor              → policy-layer Actor for the current profile

Identity resolution lives entirely in `get_current_profile`; tests and
alternative identity providers override that one dependency.
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.jwt import decode_token
from croptrail.auth.policies import Actor
from croptrail.auth.revocation import TokenRevocation
from croptrail.database import get_db
from croptrail.middleware.exceptions import AuthenticationError
from croptrail.models.profile import Profile

bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")
    return credentials.credentials


# ── Core identity dependency ────────────────────────────────

async def get_current_profile(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Decode the JWT, load the profile, and return it.

    Also stashes the decoded payload on the profile as `_token_payload`
    so logout can read the expiry without re-decoding.
    """
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise AuthenticationError("Invalid or expired token")

    if await TokenRevocation.is_revoked(token):
        raise AuthenticationError("Token has been revoked")

    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if not profile or not profile.is_active:
        raise AuthenticationError("User not found or inactive")

    profile._token_payload = payload  # type: ignore[attr-defined]
    return profile


async def get_actor(profile: Profile = Depends(get_current_profile)) -> Actor:
    return Actor.from_profile(profile)


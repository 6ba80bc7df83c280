"""Account routes.

Route overview:
  POST  /register  create a profile (role chosen once, default farmer)
  POST  /login     email + password login
  POST  /refresh   exchange a refresh token for a new token pair
  GET   /me        the caller's profile
  PATCH /me        edit full_name / phone
  POST  /logout    revoke the presented access token
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.deps import get_bearer_token, get_current_profile
from croptrail.auth.jwt import create_access_token, create_refresh_token, decode_token
from croptrail.auth.password import hash_password, verify_password
from croptrail.auth.policies import Actor, Operation, Table, enforce
from croptrail.auth.revocation import TokenRevocation
from croptrail.database import get_db
from croptrail.middleware.exceptions import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
)
from croptrail.models.profile import Profile
from croptrail.schemas.auth import (
    LoginRequest,
    ProfileOut,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_token_response(profile: Profile) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id=profile.id, role=profile.role.value),
        refresh_token=create_refresh_token(user_id=profile.id, role=profile.role.value),
        user=ProfileOut.model_validate(profile),
    )


# ── POST /register ──────────────────────────────────────────

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    existing = await db.execute(select(Profile.id).where(Profile.email == body.email))
    if existing.first() is not None:
        raise ConflictError("Email already registered", error_code="EMAIL_TAKEN")

    profile = Profile(
        email=body.email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        phone=body.phone,
        role=body.role,
    )
    db.add(profile)
    await db.flush()

    logger.info(f"Registered {profile.role.value} {profile.id}")
    return _build_token_response(profile)


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Profile).where(Profile.email == body.email))
    profile = result.scalar_one_or_none()

    if not profile or not verify_password(body.password, profile.hashed_password):
        raise AuthenticationError("Invalid credentials")
    if not profile.is_active:
        raise PermissionDeniedError("Account deactivated")

    return _build_token_response(profile)


# ── POST /refresh ────────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new access + refresh token pair."""
    payload = decode_token(body.refresh_token)
    if payload.get("type") != "refresh":
        raise AuthenticationError("Invalid refresh token")
    if await TokenRevocation.is_revoked(body.refresh_token):
        raise AuthenticationError("Token has been revoked")

    result = await db.execute(select(Profile).where(Profile.id == payload.get("sub")))
    profile = result.scalar_one_or_none()
    if not profile or not profile.is_active:
        raise AuthenticationError("User not found or inactive")

    return _build_token_response(profile)


# ── GET / PATCH /me ──────────────────────────────────────────

@router.get("/me", response_model=ProfileOut)
async def me(profile: Profile = Depends(get_current_profile)):
    return ProfileOut.model_validate(profile)


@router.patch("/me", response_model=ProfileOut)
async def update_me(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    enforce(Table.PROFILES, Operation.UPDATE, Actor.from_profile(profile), profile)

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    await db.flush()
    return ProfileOut.model_validate(profile)


# ── POST /logout ─────────────────────────────────────────────

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: str = Depends(get_bearer_token),
    profile: Profile = Depends(get_current_profile),
):
    """Blacklist the presented access token until it would have expired."""
    payload = getattr(profile, "_token_payload", {})
    await TokenRevocation.revoke_token(token, float(payload.get("exp", 0)))
    logger.info(f"Profile {profile.id} logged out")

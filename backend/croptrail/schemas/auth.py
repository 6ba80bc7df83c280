from pydantic import BaseModel, EmailStr, Field

from croptrail.models.profile import UserRole


# ── Registration ────────────────────────────────────────────

class RegisterRequest(BaseModel):
    """Self-registration. The role is chosen here and cannot change later."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str | None = None
    phone: str | None = Field(None, max_length=20)
    role: UserRole = UserRole.FARMER


class ProfileOut(BaseModel):
    id: str
    email: str
    full_name: str | None
    phone: str | None
    role: UserRole
    is_active: bool

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = Field(None, max_length=20)

    # Reject unknown keys so a "role" field is an error, not silently ignored.
    model_config = {"extra": "forbid"}


# ── Login ────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: ProfileOut


# ── Token refresh ────────────────────────────────────────────

class RefreshRequest(BaseModel):
    refresh_token: str

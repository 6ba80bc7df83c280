"""JWT token creation and decoding.

Token claims:
  - sub:   profile ID
  - role:  farmer | transporter | vendor
  - type:  "access" | "refresh"
  - exp:   expiry timestamp
"""

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from croptrail.config import settings
from croptrail.middleware.exceptions import AuthenticationError

ALGORITHM = settings.jwt_algorithm

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again and retry."


def create_access_token(
    user_id: str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def create_refresh_token(user_id: str, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "refresh",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT.

    Raises AuthenticationError with a user-actionable message for expired
    tokens and a generic one for anything else that fails validation.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError(SESSION_EXPIRED_MESSAGE)
    except JWTError:
        raise AuthenticationError("Invalid or expired token")

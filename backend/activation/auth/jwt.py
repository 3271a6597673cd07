"""JWT session tokens for the activation service.

Token claims:
  - sub:    user ID
  - type:   "access"
  - exp:    expiry timestamp

The browser carries the token in the `auth-token` cookie; the sync client
does the same.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from activation.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "type": "access",
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}


def session_user_id(token: str) -> str | None:
    """User id of a valid access token, else None (expired, forged, refresh)."""
    claims = decode_token(token)
    if claims.get("type") != "access":
        return None
    return claims.get("sub") or None

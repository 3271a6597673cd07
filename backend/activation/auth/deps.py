"""FastAPI dependency resolving the signed-in user for activation routes."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from activation.auth.jwt import session_user_id
from activation.config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user_id(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
) -> str:
    """Read the session token from the auth cookie (or a Bearer header).

    Raises 401 if no token is present or it does not decode to an
    access token.
    """
    token = request.cookies.get(settings.auth_cookie_name) or bearer
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token found",
        )

    user_id = session_user_id(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id

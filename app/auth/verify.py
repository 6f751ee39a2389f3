"""
verify.py
---------
Purpose:
    Bearer token verification for the chat API.

Notes:
    - Tokens are issued by the marketplace backend and signed with the
      shared secret from settings.
    - Provides `auth_dependency` for protected routes; `sub` is the user id.
    - Roles are looked up in the identity directory, not trusted from the token.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings

_security = HTTPBearer()


def verify_jwt(token: str) -> dict:
    try:
        options = {"verify_exp": True, "verify_aud": settings.JWT_AUDIENCE is not None}
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)


def current_user_id(claims: dict = Depends(auth_dependency)) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: missing user ID"
        )
    return str(user_id)

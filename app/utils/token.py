from datetime import datetime, timedelta
from typing import Optional, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.models.user import User

# Tokens are issued by the platform's auth service; here they are only verified
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


class TokenPayload(BaseModel):
    sub: Union[int, str]
    role: Optional[str] = None
    exp: Optional[int] = None


def issue_user_token(user: User, expires_in: Optional[timedelta] = None) -> str:
    expires_at = datetime.utcnow() + (
        expires_in or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {"sub": str(user.id), "role": user.role, "exp": expires_at}

    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def read_token(token: str) -> Optional[TokenPayload]:
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return TokenPayload.model_validate(claims)
    except (JWTError, ValidationError):
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    payload = read_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    try:
        user_id = int(payload.sub)
    except ValueError:
        raise _unauthorized("Invalid token subject")

    user = session.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")

    if not user.can_login:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user

from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linksecure.core.config import settings
from linksecure.core.database import get_db
from linksecure.models.user import User

DOWNLOAD_SCOPE = "link:download"

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = dict(data)
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": datetime.utcnow()})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def create_download_token(short_code: str) -> str:
    """Short-lived token that unlocks content for exactly one short code."""
    return create_access_token(
        {"sub": short_code, "scope": DOWNLOAD_SCOPE},
        expires_delta=timedelta(seconds=settings.DOWNLOAD_TOKEN_TTL_SECONDS),
    )


def download_token_matches(token: str, short_code: str) -> bool:
    try:
        payload = decode_token(token)
    except JWTError:
        return False
    return payload.get("scope") == DOWNLOAD_SCOPE and payload.get("sub") == short_code


async def _user_from_token(token: str, db: AsyncSession) -> User | None:
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    # download tokens carry a short code as subject, never a user
    if payload.get("scope") == DOWNLOAD_SCOPE:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    res = await db.execute(select(User).where(User.id == str(user_id)))
    user = res.scalars().first()
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if creds is None or not creds.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = await _user_from_token(creds.credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Anonymous callers and bad credentials both resolve to ``None``."""
    if creds is None or not creds.credentials:
        return None
    return await _user_from_token(creds.credentials, db)

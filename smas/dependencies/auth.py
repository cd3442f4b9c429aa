# smas/dependencies/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlmodel.ext.asyncio.session import AsyncSession
import uuid

from smas.accounts.models import AccountLink, User
from smas.accounts.repository import AccountLinkRepository, UserRepository
from smas.accounts.utils import decode_token, is_session_revoked
from smas.dependencies.db import get_session_dep

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session_dep),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not authenticated")
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")

    if payload.get("type") != "session":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    jti = payload.get("jti")
    if jti and await is_session_revoked(jti):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token revoked")

    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    user = await UserRepository(session).get_by_id(user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="user not found")
    return user


async def get_current_account(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_dep),
) -> AccountLink:
    link = await AccountLinkRepository(session).get_by_user(current_user.id)
    if link is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="no linked Spotify account")
    return link

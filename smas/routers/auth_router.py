# smas/routers/auth_router.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from ..accounts import utils
from ..accounts.schemas import AuthUrl, Token
from ..accounts.services import AccountService, AuthenticationError
from ..dependencies.auth import bearer_scheme
from ..dependencies.db import get_session_dep
from ..dependencies.services import get_music_provider, get_token_client
from ..infrastructure.spotify_auth import SpotifyAuthError, SpotifyTokenClient
from ..infrastructure.spotify_client import MusicProvider, SpotifyAPIError

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/spotify/login", response_model=AuthUrl)
async def spotify_login(
    redirect_to: Optional[str] = None,
    token_client: SpotifyTokenClient = Depends(get_token_client),
):
    if not token_client.client_id:
        raise HTTPException(status_code=500, detail="Spotify OAuth not configured")
    state = await utils.create_oauth_state("spotify", redirect_to)
    return {"auth_url": token_client.build_authorize_url(state)}


@router.get("/spotify/callback", response_model=Token)
async def spotify_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: AsyncSession = Depends(get_session_dep),
    token_client: SpotifyTokenClient = Depends(get_token_client),
    provider: MusicProvider = Depends(get_music_provider),
):
    if error:
        logger.info("spotify_consent_denied", error=error)
        raise HTTPException(status_code=400, detail=f"Spotify authorization failed: {error}")
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")

    payload = await utils.pop_oauth_state(state)
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid or expired state")
    if payload.get("provider") != "spotify":
        raise HTTPException(status_code=400, detail="State provider mismatch")

    try:
        grant = await token_client.exchange_code(code)
        profile = await provider.get_current_user(grant.access_token)
    except (SpotifyAuthError, SpotifyAPIError) as exc:
        logger.warning("spotify_sign_in_failed", error=str(exc))
        raise HTTPException(status_code=502, detail="Spotify sign-in failed")

    svc = AccountService(session)
    try:
        user = await svc.complete_sign_in(profile, grant)
    except AuthenticationError as exc:
        logger.warning("sign_in_rejected", reason=str(exc), external_account_id=profile.id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign-in rejected")

    session_token = svc.issue_session(user)
    return {"access_token": session_token["token"], "token_type": "bearer", "expires_in": session_token["exp"]}


@router.post("/logout")
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session_dep),
):
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not authenticated")
    try:
        await AccountService(session).logout(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    return {"ok": True}

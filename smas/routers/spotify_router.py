# smas/routers/spotify_router.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from smas.config import TOP_TRACKS_LIMIT, TOP_TRACKS_TIME_RANGE
from smas.dependencies.auth import get_current_account
from smas.dependencies.db import get_session_dep
from smas.dependencies.services import get_lock_manager, get_music_provider, get_token_client
from smas.infrastructure.spotify_client import SpotifyAPIError
from smas.schemas.spotify_schema import SpotifyTrack
from smas.services.credential_service import CredentialService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/spotify", tags=["spotify"])


@router.get("/top-songs", response_model=List[SpotifyTrack])
async def top_songs(
    account=Depends(get_current_account),
    session: AsyncSession = Depends(get_session_dep),
    provider=Depends(get_music_provider),
    token_client=Depends(get_token_client),
    lock_manager=Depends(get_lock_manager),
):
    token = await CredentialService(session, token_client, lock_manager).get_valid_access_token(
        account.external_account_id
    )
    if not token.ok:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Spotify session expired")
    try:
        return await provider.get_top_tracks(token.access_token, limit=TOP_TRACKS_LIMIT, time_range=TOP_TRACKS_TIME_RANGE)
    except SpotifyAPIError as exc:
        logger.warning("top_tracks_fetch_failed", status=exc.status_code, error=str(exc))
        raise HTTPException(status_code=502, detail="Failed to fetch top tracks")

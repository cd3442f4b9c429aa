# smas/routers/playlists_router.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from smas.dependencies.auth import get_current_account
from smas.dependencies.db import get_session_dep
from smas.dependencies.services import get_lock_manager, get_music_provider, get_token_client
from smas.infrastructure.contributions_repo import ContributionsRepository
from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.spotify_client import SpotifyAPIError
from smas.schemas.playlist_schema import ContributionsResponse, ProvisionResponse, SharingLinkResponse
from smas.services.credential_service import CredentialService
from smas.services.playlist_service import PlaylistService, load_cover_image
from smas.services.sharing_service import SharingService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/playlists", tags=["playlists"])


async def _owned_playlist(session: AsyncSession, playlist_id: uuid.UUID, owner_external_id: str):
    playlist = await PlaylistsRepository(session).get_by_id(playlist_id)
    if not playlist or playlist.owner_external_id != owner_external_id:
        raise HTTPException(status_code=404, detail="playlist not found")
    return playlist


@router.post("", response_model=ProvisionResponse)
async def provision_playlist(
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
        logger.warning("provision_owner_token_unavailable", error=token.error)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Spotify session expired")

    svc = PlaylistService(session, provider, cover_image=load_cover_image())
    try:
        provisioned = await svc.provision(account.external_account_id, token.access_token)
    except SpotifyAPIError as exc:
        logger.warning("provision_failed", status=exc.status_code, error=str(exc))
        raise HTTPException(status_code=502, detail="Failed to prepare playlist")
    return {
        "playlist": provisioned.playlist,
        "tracks": provisioned.tracks,
        "sharing_link": provisioned.sharing_link,
        "created": provisioned.created,
    }


@router.get("/{playlist_id}/contributions", response_model=ContributionsResponse)
async def list_contributions(
    playlist_id: uuid.UUID,
    account=Depends(get_current_account),
    session: AsyncSession = Depends(get_session_dep),
):
    await _owned_playlist(session, playlist_id, account.external_account_id)
    ledger = ContributionsRepository(session)
    contributions = await ledger.list_by_playlist(playlist_id)
    active_tracks = [
        {"track_uri": uri, "contributor_name": name} for uri, name in await ledger.contributed_tracks(playlist_id)
    ]
    return {"contributions": contributions, "active_tracks": active_tracks}


@router.get("/{playlist_id}/sharing-link", response_model=SharingLinkResponse)
async def get_sharing_link(
    playlist_id: uuid.UUID,
    account=Depends(get_current_account),
    session: AsyncSession = Depends(get_session_dep),
):
    await _owned_playlist(session, playlist_id, account.external_account_id)
    link = await SharingService(session).get_active_for_playlist(playlist_id)
    return {"sharing_link": link}

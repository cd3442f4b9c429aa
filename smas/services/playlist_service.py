# smas/services/playlist_service.py
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.config import PLAYLIST_NAME, PLAYLIST_DESCRIPTION, PLAYLIST_COVER_PATH
from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.spotify_client import MusicProvider, SpotifyAPIError
from smas.models.playlist import Playlist
from smas.models.sharing_link import SharingLink
from smas.schemas.spotify_schema import SpotifyPlaylist, SpotifyTrack
from smas.services.sharing_service import SharingService

logger = structlog.get_logger(__name__)


@dataclass
class ProvisionedPlaylist:
    playlist: Playlist
    tracks: List[SpotifyTrack]
    sharing_link: Optional[SharingLink]
    created: bool


def load_cover_image(path: Optional[str] = PLAYLIST_COVER_PATH) -> Optional[str]:
    """Base64 JPEG body for the cover upload, or None when not configured or unreadable."""
    if not path:
        return None
    try:
        return Path(path).read_text().strip() or None
    except OSError as exc:
        logger.warning("playlist_cover_unreadable", path=path, error=str(exc))
        return None


class PlaylistService:
    """
    Dashboard provisioning: make sure the owner has the shared Spotify playlist
    and that it is registered here, exactly once.
    """

    def __init__(
        self,
        session: AsyncSession,
        provider: MusicProvider,
        name: str = PLAYLIST_NAME,
        description: str = PLAYLIST_DESCRIPTION,
        cover_image: Optional[str] = None,
    ):
        self.provider = provider
        self.playlists = PlaylistsRepository(session)
        self.sharing = SharingService(session)
        self.name = name
        self.description = description
        self.cover_image = cover_image

    async def _find_or_create_external(self, access_token: str, owner_external_id: str):
        for candidate in await self.provider.get_user_playlists(access_token):
            if candidate.name == self.name:
                return candidate, False

        created = await self.provider.create_playlist(access_token, owner_external_id, self.name, self.description, True)
        if self.cover_image:
            try:
                await self.provider.upload_playlist_cover_image(access_token, created.id, self.cover_image)
            except SpotifyAPIError as exc:
                logger.warning("playlist_cover_upload_failed", playlist_id=created.id, error=str(exc))
        return created, True

    async def provision(self, owner_external_id: str, access_token: str) -> ProvisionedPlaylist:
        external, created = await self._find_or_create_external(access_token, owner_external_id)
        tracks = [] if created else await self.provider.get_playlist_tracks(access_token, external.id)

        playlist = await self.playlists.get_or_create(
            external_playlist_id=external.id,
            owner_external_id=owner_external_id,
            name=external.name,
            description=external.description,
        )
        playlist = await self._reconcile(playlist, external, len(tracks))

        link = await self.sharing.get_active_for_playlist(playlist.id)
        logger.info(
            "playlist_provisioned",
            playlist_id=str(playlist.id),
            external_playlist_id=external.id,
            created=created,
        )
        return ProvisionedPlaylist(playlist=playlist, tracks=tracks, sharing_link=link, created=created)

    async def _reconcile(self, playlist: Playlist, external: SpotifyPlaylist, track_count: int) -> Playlist:
        name = external.name if external.name != playlist.name else None
        description = external.description if external.description != playlist.description else None
        count = max(track_count, external.track_total)
        if name is None and description is None and count == playlist.track_count:
            return playlist
        logger.info("playlist_metadata_drift", playlist_id=str(playlist.id))
        return await self.playlists.update(playlist, name=name, description=description, track_count=count)

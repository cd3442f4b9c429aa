# smas/infrastructure/playlists_repo.py
from typing import List, Optional
import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.models.base import utcnow
from smas.models.playlist import Playlist

logger = structlog.get_logger(__name__)


class PlaylistsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, playlist_id: uuid.UUID) -> Optional[Playlist]:
        q = select(Playlist).where(Playlist.id == playlist_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_external_id(self, external_playlist_id: str) -> Optional[Playlist]:
        q = select(Playlist).where(Playlist.external_playlist_id == external_playlist_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_owner(self, owner_external_id: str) -> List[Playlist]:
        q = select(Playlist).where(Playlist.owner_external_id == owner_external_id, Playlist.is_active == True)  # noqa: E712
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def get_or_create(
        self,
        external_playlist_id: str,
        owner_external_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> Playlist:
        """
        Return the row registered for this external playlist, untouched even when
        name/description differ. Reconciling metadata is an explicit update().
        """
        existing = await self.get_by_external_id(external_playlist_id)
        if existing:
            return existing

        playlist = Playlist(
            external_playlist_id=external_playlist_id,
            owner_external_id=owner_external_id,
            name=name,
            description=description,
            track_count=0,
            is_active=True,
        )
        self.session.add(playlist)
        try:
            await self.session.commit()
        except IntegrityError:
            # lost a concurrent create for the same external id
            await self.session.rollback()
            winner = await self.get_by_external_id(external_playlist_id)
            if winner is None:
                raise
            return winner
        await self.session.refresh(playlist)
        logger.info("playlist_registered", playlist_id=str(playlist.id), external_playlist_id=external_playlist_id)
        return playlist

    async def update(
        self,
        playlist: Playlist,
        name: Optional[str] = None,
        description: Optional[str] = None,
        track_count: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Playlist:
        if name is not None:
            playlist.name = name
        if description is not None:
            playlist.description = description
        if track_count is not None:
            playlist.track_count = max(0, track_count)
        if is_active is not None:
            playlist.is_active = is_active
        playlist.updated_at = utcnow()
        self.session.add(playlist)
        await self.session.commit()
        await self.session.refresh(playlist)
        return playlist

    async def increment_track_count(self, playlist: Playlist, added: int) -> Playlist:
        return await self.update(playlist, track_count=playlist.track_count + added)

    async def deactivate(self, playlist: Playlist) -> Playlist:
        return await self.update(playlist, is_active=False)

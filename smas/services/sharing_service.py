# smas/services/sharing_service.py
import secrets
from typing import Callable, Optional
import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.sharing_links_repo import SharingLinksRepository
from smas.models.sharing_link import SharingLink, SLUG_ALPHABET, SLUG_LENGTH

logger = structlog.get_logger(__name__)

MAX_SLUG_ATTEMPTS = 10


class SlugGenerationExhausted(Exception):
    pass


def generate_slug(length: int = SLUG_LENGTH) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


class SharingService:
    def __init__(
        self,
        session: AsyncSession,
        slug_factory: Callable[[], str] = generate_slug,
        max_attempts: int = MAX_SLUG_ATTEMPTS,
    ):
        self.session = session
        self.links = SharingLinksRepository(session)
        self.playlists = PlaylistsRepository(session)
        self.slug_factory = slug_factory
        self.max_attempts = max_attempts

    async def create_unique_link(self, playlist_id: uuid.UUID, owner_external_id: str, owner_name: str) -> SharingLink:
        """
        Issue a new link for an owned playlist.
        Raises ValueError when the playlist is unknown, inactive or owned by someone else.
        A slug lost to a concurrent insert costs one attempt, like any other collision.
        """
        playlist = await self.playlists.get_by_id(playlist_id)
        if not playlist or not playlist.is_active or playlist.owner_external_id != owner_external_id:
            raise ValueError("invalid playlist")
        playlist_id = playlist.id

        for attempt in range(1, self.max_attempts + 1):
            slug = self.slug_factory()
            if await self.links.slug_exists(slug):
                logger.debug("slug_collision", attempt=attempt)
                continue
            link = SharingLink(
                slug=slug,
                playlist_id=playlist_id,
                owner_external_id=owner_external_id,
                owner_name=owner_name,
            )
            try:
                link = await self.links.create(link)
            except IntegrityError:
                # slug taken between the availability check and the insert
                await self.session.rollback()
                logger.warning("slug_taken_on_insert", slug=slug, attempt=attempt)
                continue
            logger.info("sharing_link_created", link_id=str(link.id), playlist_id=str(playlist_id), slug=link.slug)
            return link

        logger.error("slug_generation_exhausted", attempts=self.max_attempts)
        raise SlugGenerationExhausted(f"no free slug after {self.max_attempts} attempts")

    async def get_by_slug(self, slug: str) -> Optional[SharingLink]:
        return await self.links.get_by_slug(slug)

    async def get_active_for_playlist(self, playlist_id: uuid.UUID) -> Optional[SharingLink]:
        links = await self.links.list_active_by_playlist(playlist_id)
        return links[0] if links else None

    async def increment_usage(self, link_id: uuid.UUID) -> Optional[SharingLink]:
        link = await self.links.get_by_id(link_id)
        if link is None:
            return None
        return await self.links.increment_usage(link)

    async def revoke(self, link_id: uuid.UUID, owner_external_id: str) -> SharingLink:
        link = await self.links.get_by_id(link_id)
        if not link or link.owner_external_id != owner_external_id:
            raise ValueError("sharing link not found")
        link = await self.links.deactivate(link)
        logger.info("sharing_link_revoked", link_id=str(link.id))
        return link

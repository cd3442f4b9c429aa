# smas/infrastructure/sharing_links_repo.py
from typing import List, Optional
import uuid

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.models.base import utcnow
from smas.models.sharing_link import SharingLink


class SharingLinksRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, link: SharingLink) -> SharingLink:
        self.session.add(link)
        await self.session.commit()
        await self.session.refresh(link)
        return link

    async def get_by_id(self, link_id: uuid.UUID) -> Optional[SharingLink]:
        q = select(SharingLink).where(SharingLink.id == link_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Optional[SharingLink]:
        """Active links only: a revoked slug is indistinguishable from an unknown one."""
        q = select(SharingLink).where(SharingLink.slug == slug, SharingLink.is_active == True)  # noqa: E712
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def slug_exists(self, slug: str) -> bool:
        # any row, revoked included
        q = select(SharingLink.id).where(SharingLink.slug == slug)
        res = await self.session.execute(q)
        return res.first() is not None

    async def list_active_by_playlist(self, playlist_id: uuid.UUID) -> List[SharingLink]:
        q = (
            select(SharingLink)
            .where(SharingLink.playlist_id == playlist_id, SharingLink.is_active == True)  # noqa: E712
            .order_by(SharingLink.created_at.desc())
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def increment_usage(self, link: SharingLink) -> SharingLink:
        now = utcnow()
        link.usage_count = max(link.usage_count, 0) + 1
        link.last_used_at = now
        link.updated_at = now
        self.session.add(link)
        await self.session.commit()
        await self.session.refresh(link)
        return link

    async def deactivate(self, link: SharingLink) -> SharingLink:
        link.is_active = False
        link.updated_at = utcnow()
        self.session.add(link)
        await self.session.commit()
        await self.session.refresh(link)
        return link

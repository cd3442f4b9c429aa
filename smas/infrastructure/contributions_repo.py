# smas/infrastructure/contributions_repo.py
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import uuid

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.models.base import utcnow
from smas.models.contribution import Contribution, CONTRIBUTION_COOLDOWN


@dataclass(frozen=True)
class CooldownCheck:
    active: bool
    contribution: Optional[Contribution] = None

    @property
    def release_at(self) -> Optional[datetime]:
        return self.contribution.expires_at if self.contribution else None

    def days_remaining(self, now: datetime) -> int:
        if not self.active or self.contribution is None:
            return 0
        remaining = self.contribution.expires_at - now
        return max(0, math.ceil(remaining / timedelta(days=1)))


class ContributionsRepository:
    """Append-only ledger; rows are never updated and expiry is computed from expires_at."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        playlist_id: uuid.UUID,
        contributor_id: uuid.UUID,
        contributor_name: str,
        track_uris: List[str],
        now: Optional[datetime] = None,
    ) -> Contribution:
        created_at = now or utcnow()
        contribution = Contribution(
            playlist_id=playlist_id,
            contributor_id=contributor_id,
            contributor_name=contributor_name,
            track_uris=list(track_uris),
            created_at=created_at,
            expires_at=created_at + CONTRIBUTION_COOLDOWN,
        )
        self.session.add(contribution)
        await self.session.commit()
        await self.session.refresh(contribution)
        return contribution

    async def latest_for(self, playlist_id: uuid.UUID, contributor_id: uuid.UUID) -> Optional[Contribution]:
        q = (
            select(Contribution)
            .where(Contribution.playlist_id == playlist_id, Contribution.contributor_id == contributor_id)
            .order_by(Contribution.created_at.desc())
            .limit(1)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def has_active_contribution(
        self, playlist_id: uuid.UUID, contributor_id: uuid.UUID, now: Optional[datetime] = None
    ) -> CooldownCheck:
        # only the most recent row decides; older expired history is kept
        latest = await self.latest_for(playlist_id, contributor_id)
        if latest is None:
            return CooldownCheck(active=False)
        if not latest.is_active_at(now or utcnow()):
            return CooldownCheck(active=False)
        return CooldownCheck(active=True, contribution=latest)

    async def get_by_id(self, contribution_id: uuid.UUID) -> Optional[Contribution]:
        q = select(Contribution).where(Contribution.id == contribution_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_playlist(self, playlist_id: uuid.UUID) -> List[Contribution]:
        q = select(Contribution).where(Contribution.playlist_id == playlist_id).order_by(Contribution.created_at.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_by_contributor(self, contributor_id: uuid.UUID) -> List[Contribution]:
        q = (
            select(Contribution)
            .where(Contribution.contributor_id == contributor_id)
            .order_by(Contribution.created_at.desc())
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_active_by_playlist(self, playlist_id: uuid.UUID, now: Optional[datetime] = None) -> List[Contribution]:
        q = (
            select(Contribution)
            .where(Contribution.playlist_id == playlist_id, Contribution.expires_at > (now or utcnow()))
            .order_by(Contribution.created_at.desc())
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def contributed_tracks(self, playlist_id: uuid.UUID, now: Optional[datetime] = None) -> List[Tuple[str, str]]:
        """(track uri, contributor name) for every active contribution."""
        tracks = []
        for contribution in await self.list_active_by_playlist(playlist_id, now):
            for uri in contribution.track_uris:
                tracks.append((uri, contribution.contributor_name))
        return tracks

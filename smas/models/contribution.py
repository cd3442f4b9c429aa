# smas/models/contribution.py
from sqlmodel import SQLModel, Field, Column
from typing import List
import uuid
from datetime import datetime, timedelta
from sqlalchemy import JSON, Index

from smas.models.base import utcnow

# absolute duration: 4 * 7 * 24 * 3600 * 1000 ms, no calendar arithmetic
CONTRIBUTION_COOLDOWN = timedelta(weeks=4)


class Contribution(SQLModel, table=True):
    __table_args__ = (Index("ix_contribution_playlist_contributor", "playlist_id", "contributor_id", "created_at"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    playlist_id: uuid.UUID = Field(foreign_key="playlist.id", index=True)
    contributor_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    contributor_name: str = Field(default="")
    track_uris: List[str] = Field(sa_column=Column(JSON, nullable=False), default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    def is_active_at(self, now: datetime) -> bool:
        return now < self.expires_at

# smas/models/playlist.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
import uuid
from datetime import datetime
from sqlalchemy import String

from smas.models.base import utcnow


class Playlist(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # immutable once set
    external_playlist_id: str = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    owner_external_id: str = Field(index=True)
    name: str
    description: Optional[str] = Field(default=None)
    track_count: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

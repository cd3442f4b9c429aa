# smas/models/sharing_link.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
import uuid
from datetime import datetime
from sqlalchemy import String

from smas.models.base import utcnow

SLUG_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
SLUG_LENGTH = 8


class SharingLink(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # unique across every link ever issued, revoked ones included
    slug: str = Field(sa_column=Column(String(SLUG_LENGTH), unique=True, index=True, nullable=False))
    playlist_id: uuid.UUID = Field(foreign_key="playlist.id", index=True)
    owner_external_id: str = Field(index=True)
    owner_name: str
    is_active: bool = Field(default=True)
    usage_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_used_at: Optional[datetime] = Field(default=None)

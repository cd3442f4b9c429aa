# smas/schemas/sharing_schema.py
from typing import Optional
import uuid
from datetime import datetime

from smas.schemas.common import CamelModel


class CreateLinkRequest(CamelModel):
    playlist_id: Optional[uuid.UUID] = None
    owner_name: Optional[str] = None


class CreateLinkResponse(CamelModel):
    link: str


class SharingLinkPublic(CamelModel):
    """What a visitor of /share/<slug> gets to see."""

    link_slug: str
    owner_name: str
    playlist_id: uuid.UUID
    is_active: bool
    created_at: datetime


class SharingLinkRead(CamelModel):
    id: uuid.UUID
    slug: str
    playlist_id: uuid.UUID
    owner_name: str
    is_active: bool
    usage_count: int
    created_at: datetime
    last_used_at: Optional[datetime] = None


def share_path(slug: str) -> str:
    return f"/share/{slug}"

# smas/schemas/contribution_schema.py
from typing import List, Optional
import uuid
from datetime import datetime

from smas.schemas.common import CamelModel
from smas.schemas.spotify_schema import SpotifyTrack


class ContributeRequest(CamelModel):
    playlist_id: Optional[uuid.UUID] = None
    track_uris: Optional[List[str]] = None
    link_slug: Optional[str] = None


class ContributeResponse(CamelModel):
    success: bool
    message: str
    tracks: List[SpotifyTrack] = []


class ContributionRead(CamelModel):
    id: uuid.UUID
    playlist_id: uuid.UUID
    contributor_name: str
    track_uris: List[str]
    created_at: datetime
    expires_at: datetime


class ContributionHistoryResponse(CamelModel):
    contributions: List[ContributionRead] = []


class CooldownResponse(CamelModel):
    success: bool = False
    message: str
    has_contributed: bool = True
    days_remaining: int
    cooldown_ends_at: Optional[datetime] = None
    contribution: Optional[ContributionRead] = None

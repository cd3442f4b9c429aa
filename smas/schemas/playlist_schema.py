# smas/schemas/playlist_schema.py
from typing import List, Optional
import uuid
from datetime import datetime

from pydantic import Field

from smas.schemas.common import CamelModel
from smas.schemas.contribution_schema import ContributionRead
from smas.schemas.sharing_schema import SharingLinkRead
from smas.schemas.spotify_schema import SpotifyTrack


class PlaylistRead(CamelModel):
    id: uuid.UUID
    external_playlist_id: str = Field(alias="spotifyPlaylistId")
    name: str
    description: Optional[str] = None
    track_count: int
    is_active: bool
    created_at: datetime


class ProvisionResponse(CamelModel):
    playlist: PlaylistRead
    tracks: List[SpotifyTrack] = []
    sharing_link: Optional[SharingLinkRead] = None
    created: bool = False


class ContributedTrack(CamelModel):
    track_uri: str
    contributor_name: str


class ContributionsResponse(CamelModel):
    contributions: List[ContributionRead] = []
    # tracks still inside their cooldown window, newest contribution first
    active_tracks: List[ContributedTrack] = []


class SharingLinkResponse(CamelModel):
    sharing_link: Optional[SharingLinkRead] = None

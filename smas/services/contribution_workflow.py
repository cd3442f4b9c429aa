# smas/services/contribution_workflow.py
"""
Contribution workflow.

A friend opens an owner's sharing link and pushes their current top tracks
into the owner's Spotify playlist. Steps run strictly in order:

    ValidatingLink -> CheckingCooldown -> FetchingContributorTracks
    -> RefreshingOwnerCredential -> MutatingExternalPlaylist
    -> RecordingContribution -> Success

The contributor's token is only used to read their own top tracks. Every
write to the playlist uses the owner's stored, delegated credential.

Tracks are added before the contribution row is written and the two are not
transactional: if the ledger write fails after Spotify accepted the tracks,
the outcome is RecordingFailed and `contribution_recording_failed` is logged
with enough context to reconcile by hand.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import uuid

import httpx
import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.config import TOP_TRACKS_LIMIT, TOP_TRACKS_TIME_RANGE
from smas.infrastructure.contributions_repo import ContributionsRepository, CooldownCheck
from smas.infrastructure.locks import LockManager, contribution_key
from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.sharing_links_repo import SharingLinksRepository
from smas.infrastructure.spotify_auth import SpotifyTokenClient
from smas.infrastructure.spotify_client import MusicProvider, SpotifyAPIError
from smas.models.base import utcnow
from smas.models.playlist import Playlist
from smas.models.sharing_link import SharingLink
from smas.schemas.spotify_schema import SpotifyTrack
from smas.services.credential_service import CredentialService

logger = structlog.get_logger(__name__)


class ContributionStage(str, Enum):
    VALIDATING_LINK = "ValidatingLink"
    CHECKING_COOLDOWN = "CheckingCooldown"
    FETCHING_CONTRIBUTOR_TRACKS = "FetchingContributorTracks"
    REFRESHING_OWNER_CREDENTIAL = "RefreshingOwnerCredential"
    MUTATING_EXTERNAL_PLAYLIST = "MutatingExternalPlaylist"
    RECORDING_CONTRIBUTION = "RecordingContribution"
    DONE = "Done"


class ContributionStatus(str, Enum):
    SUCCESS = "Success"
    LINK_INVALID = "LinkInvalid"
    COOLDOWN_BLOCKED = "CooldownBlocked"
    NO_TRACKS_AVAILABLE = "NoTracksAvailable"
    OWNER_CREDENTIAL_EXPIRED = "OwnerCredentialExpired"
    EXTERNAL_MUTATION_FAILED = "ExternalMutationFailed"
    RECORDING_FAILED = "RecordingFailed"
    INTERNAL_ERROR = "InternalError"


MESSAGES = {
    ContributionStatus.SUCCESS: "Songs added successfully",
    ContributionStatus.LINK_INVALID: "This sharing link is invalid or no longer active",
    ContributionStatus.COOLDOWN_BLOCKED: "You have already contributed to this playlist recently",
    ContributionStatus.NO_TRACKS_AVAILABLE: "No top tracks available to contribute",
    ContributionStatus.OWNER_CREDENTIAL_EXPIRED: "The playlist owner needs to sign in again, please try again later",
    ContributionStatus.EXTERNAL_MUTATION_FAILED: "Failed to add tracks to playlist, please try again",
    ContributionStatus.RECORDING_FAILED: "Failed to record contribution",
    ContributionStatus.INTERNAL_ERROR: "Internal server error",
}


@dataclass(frozen=True)
class ContributorContext:
    """Who is contributing, passed explicitly instead of read from a global session."""

    contributor_id: uuid.UUID
    contributor_name: str
    contributor_access_token: str


@dataclass
class ContributionOutcome:
    status: ContributionStatus
    stage: ContributionStage
    tracks: List[SpotifyTrack] = field(default_factory=list)
    contribution_id: Optional[uuid.UUID] = None
    expires_at: Optional[datetime] = None
    cooldown: Optional[CooldownCheck] = None
    days_remaining: Optional[int] = None
    playlist_id: Optional[uuid.UUID] = None

    @property
    def ok(self) -> bool:
        return self.status == ContributionStatus.SUCCESS

    @property
    def message(self) -> str:
        return MESSAGES[self.status]

    @property
    def release_at(self) -> Optional[datetime]:
        return self.cooldown.release_at if self.cooldown else None


class ContributionWorkflow:
    def __init__(
        self,
        session: AsyncSession,
        provider: MusicProvider,
        token_client: SpotifyTokenClient,
        lock_manager: LockManager,
        clock: Callable[[], datetime] = utcnow,
        top_tracks_limit: int = TOP_TRACKS_LIMIT,
        time_range: str = TOP_TRACKS_TIME_RANGE,
    ):
        self.session = session
        self.provider = provider
        self.lock_manager = lock_manager
        self.clock = clock
        self.top_tracks_limit = top_tracks_limit
        self.time_range = time_range
        self.links = SharingLinksRepository(session)
        self.playlists = PlaylistsRepository(session)
        self.ledger = ContributionsRepository(session)
        self.credentials = CredentialService(session, token_client, lock_manager, clock=clock)
        self.stage = ContributionStage.VALIDATING_LINK

    def _outcome(self, status: ContributionStatus, **kwargs) -> ContributionOutcome:
        return ContributionOutcome(status=status, stage=self.stage, **kwargs)

    async def run(
        self,
        contributor: ContributorContext,
        link_slug: str,
        playlist_id: Optional[uuid.UUID] = None,
        track_uris: Optional[List[str]] = None,
    ) -> ContributionOutcome:
        log = logger.bind(contributor_id=str(contributor.contributor_id), link_slug=link_slug)
        try:
            outcome = await self._run(contributor, link_slug, playlist_id, track_uris, log)
        except Exception as exc:
            log.exception("contribution_unexpected_error", stage=self.stage.value, error=str(exc))
            return self._outcome(ContributionStatus.INTERNAL_ERROR, playlist_id=playlist_id)
        log.info("contribution_finished", status=outcome.status.value, stage=outcome.stage.value)
        return outcome

    async def _run(self, contributor, link_slug, playlist_id, track_uris, log) -> ContributionOutcome:
        self.stage = ContributionStage.VALIDATING_LINK
        resolved = await self._resolve_link(link_slug, playlist_id)
        if resolved is None:
            return self._outcome(ContributionStatus.LINK_INVALID, playlist_id=playlist_id)
        link, playlist = resolved

        # check-then-record must not interleave for the same contributor and playlist
        async with self.lock_manager.lock(contribution_key(str(playlist.id), str(contributor.contributor_id))):
            return await self._contribute(contributor, link, playlist, track_uris, log)

    async def _resolve_link(self, link_slug: str, playlist_id: Optional[uuid.UUID]):
        if not link_slug:
            return None
        link = await self.links.get_by_slug(link_slug)
        if link is None:
            return None
        if playlist_id is not None and link.playlist_id != playlist_id:
            return None
        playlist = await self.playlists.get_by_id(link.playlist_id)
        if playlist is None or not playlist.is_active:
            return None
        return link, playlist

    async def _contribute(
        self,
        contributor: ContributorContext,
        link: SharingLink,
        playlist: Playlist,
        track_uris: Optional[List[str]],
        log,
    ) -> ContributionOutcome:
        # a rollback expires ORM instances, so keep plain copies of what we report
        playlist_id = playlist.id
        external_playlist_id = playlist.external_playlist_id

        self.stage = ContributionStage.CHECKING_COOLDOWN
        now = self.clock()
        cooldown = await self.ledger.has_active_contribution(playlist_id, contributor.contributor_id, now=now)
        if cooldown.active:
            return self._outcome(
                ContributionStatus.COOLDOWN_BLOCKED,
                cooldown=cooldown,
                days_remaining=cooldown.days_remaining(now),
                playlist_id=playlist_id,
            )

        # before any owner refresh, so an empty snapshot costs no token call
        self.stage = ContributionStage.FETCHING_CONTRIBUTOR_TRACKS
        tracks = await self.provider.get_top_tracks(
            contributor.contributor_access_token, limit=self.top_tracks_limit, time_range=self.time_range
        )
        if track_uris is not None:
            wanted = set(track_uris)
            tracks = [t for t in tracks if t.uri in wanted]
        if not tracks:
            return self._outcome(ContributionStatus.NO_TRACKS_AVAILABLE, playlist_id=playlist_id)

        self.stage = ContributionStage.REFRESHING_OWNER_CREDENTIAL
        owner_token = await self.credentials.get_valid_access_token(playlist.owner_external_id)
        if not owner_token.ok:
            log.warning("owner_credential_unavailable", owner=playlist.owner_external_id, error=owner_token.error)
            return self._outcome(ContributionStatus.OWNER_CREDENTIAL_EXPIRED, playlist_id=playlist_id)

        # one attempt per user action; a retry could insert the tracks twice
        self.stage = ContributionStage.MUTATING_EXTERNAL_PLAYLIST
        uris = [t.uri for t in tracks]
        try:
            await self.provider.add_tracks_to_playlist(owner_token.access_token, external_playlist_id, uris)
        except (SpotifyAPIError, httpx.HTTPError) as exc:
            log.warning("external_playlist_mutation_failed", playlist_id=str(playlist_id), error=str(exc))
            return self._outcome(ContributionStatus.EXTERNAL_MUTATION_FAILED, playlist_id=playlist_id)

        self.stage = ContributionStage.RECORDING_CONTRIBUTION
        try:
            contribution = await self.ledger.create(
                playlist_id,
                contributor.contributor_id,
                contributor.contributor_name,
                uris,
                now=self.clock(),
            )
        except Exception as exc:
            await self.session.rollback()
            log.error(
                "contribution_recording_failed",
                playlist_id=str(playlist_id),
                external_playlist_id=external_playlist_id,
                track_uris=uris,
                error=str(exc),
                exc_info=True,
            )
            return self._outcome(ContributionStatus.RECORDING_FAILED, playlist_id=playlist_id)

        contribution_id, expires_at = contribution.id, contribution.expires_at
        log.info("contribution_recorded", contribution_id=str(contribution_id), playlist_id=str(playlist_id))
        await self._record_usage(link, playlist, len(uris), log)

        self.stage = ContributionStage.DONE
        return self._outcome(
            ContributionStatus.SUCCESS,
            tracks=tracks,
            contribution_id=contribution_id,
            expires_at=expires_at,
            playlist_id=playlist_id,
        )

    async def _record_usage(self, link: SharingLink, playlist: Playlist, added: int, log) -> None:
        # analytics only; the contribution is already recorded
        link_id = link.id
        try:
            await self.links.increment_usage(link)
            await self.playlists.increment_track_count(playlist, added)
        except Exception as exc:
            await self.session.rollback()
            log.warning("link_usage_update_failed", link_id=str(link_id), error=str(exc))

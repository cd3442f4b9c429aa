"""End-to-end contribution runs against the fake provider and a real database."""

import asyncio
from datetime import timedelta

import httpx
import pytest

from conftest import StubTokenClient, create_account, create_shared_playlist, expire_credential, make_track
from smas.infrastructure.contributions_repo import ContributionsRepository
from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.sharing_links_repo import SharingLinksRepository
from smas.infrastructure.spotify_client import SpotifyAPIError
from smas.services.contribution_workflow import (
    ContributionStage,
    ContributionStatus,
    ContributionWorkflow,
    ContributorContext,
)
from smas.services.sharing_service import SharingService


@pytest.fixture
async def world(session, clock, provider):
    await create_account(session, "alice", "Alice", "alice-token", clock() + timedelta(hours=1))
    bob = await create_account(session, "bob", "Bob", "bob-token", clock() + timedelta(hours=1))
    playlist, link = await create_shared_playlist(session, "alice", "Alice", external_playlist_id="sp-alice")
    provider.top_tracks["bob-token"] = [make_track(n) for n in range(1, 6)]
    return {
        "bob": ContributorContext(contributor_id=bob.id, contributor_name="Bob", contributor_access_token="bob-token"),
        "playlist": playlist,
        "link": link,
    }


def workflow(session, provider, token_client, lock_manager, clock):
    return ContributionWorkflow(session, provider, token_client, lock_manager, clock=clock)


async def test_successful_contribution(world, session, provider, token_client, lock_manager, clock):
    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(
        world["bob"], world["link"].slug
    )

    assert outcome.status == ContributionStatus.SUCCESS
    assert outcome.stage == ContributionStage.DONE
    assert [t.uri for t in outcome.tracks] == [f"spotify:track:t{n}" for n in range(1, 6)]
    # written with the owner's token, never the contributor's
    assert provider.added == [("alice-token", "sp-alice", [f"spotify:track:t{n}" for n in range(1, 6)])]
    assert outcome.expires_at == clock() + timedelta(weeks=4)

    ledger = ContributionsRepository(session)
    rows = await ledger.list_by_playlist(world["playlist"].id)
    assert len(rows) == 1 and rows[0].contributor_name == "Bob"

    link = await SharingLinksRepository(session).get_by_id(world["link"].id)
    assert link.usage_count == 1
    playlist = await PlaylistsRepository(session).get_by_id(world["playlist"].id)
    assert playlist.track_count == 5
    assert f"contribution:{world['playlist'].id}:{world['bob'].contributor_id}" in lock_manager.acquired


async def test_second_attempt_is_blocked_without_mutation(world, session, provider, token_client, lock_manager, clock):
    wf = workflow(session, provider, token_client, lock_manager, clock)
    await wf.run(world["bob"], world["link"].slug)
    clock.advance(timedelta(days=1))

    outcome = await wf.run(world["bob"], world["link"].slug)

    assert outcome.status == ContributionStatus.COOLDOWN_BLOCKED
    assert outcome.days_remaining == 27
    assert outcome.release_at == clock() - timedelta(days=1) + timedelta(weeks=4)
    assert len(provider.added) == 1


async def test_contribution_allowed_again_after_cooldown(world, session, provider, token_client, lock_manager, clock):
    wf = workflow(session, provider, token_client, lock_manager, clock)
    await wf.run(world["bob"], world["link"].slug)
    clock.advance(timedelta(weeks=4))

    outcome = await wf.run(world["bob"], world["link"].slug)

    assert outcome.ok
    assert len(provider.added) == 2


async def test_unknown_or_revoked_link(world, session, provider, token_client, lock_manager, clock):
    wf = workflow(session, provider, token_client, lock_manager, clock)

    assert (await wf.run(world["bob"], "nosuch00")).status == ContributionStatus.LINK_INVALID

    await SharingLinksRepository(session).deactivate(world["link"])
    outcome = await wf.run(world["bob"], world["link"].slug)
    assert outcome.status == ContributionStatus.LINK_INVALID
    assert outcome.stage == ContributionStage.VALIDATING_LINK
    assert provider.added == []


async def test_playlist_id_must_match_link(world, session, provider, token_client, lock_manager, clock):
    other = await PlaylistsRepository(session).get_or_create("sp-other", "alice", "Other")

    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(
        world["bob"], world["link"].slug, playlist_id=other.id
    )

    assert outcome.status == ContributionStatus.LINK_INVALID


async def test_empty_top_tracks(world, session, provider, token_client, lock_manager, clock):
    provider.top_tracks["bob-token"] = []

    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(world["bob"], world["link"].slug)

    assert outcome.status == ContributionStatus.NO_TRACKS_AVAILABLE
    assert token_client.calls == 0
    assert await ContributionsRepository(session).list_by_playlist(world["playlist"].id) == []


async def test_track_selection_filters_snapshot(world, session, provider, token_client, lock_manager, clock):
    wf = workflow(session, provider, token_client, lock_manager, clock)

    outcome = await wf.run(
        world["bob"], world["link"].slug, track_uris=["spotify:track:t2", "spotify:track:not-in-top"]
    )

    assert outcome.ok
    assert provider.added[0][2] == ["spotify:track:t2"]


async def test_expired_owner_token_is_refreshed_before_write(world, session, provider, token_client, lock_manager, clock):
    await expire_credential(session, "alice", clock() - timedelta(minutes=5))

    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(world["bob"], world["link"].slug)

    assert outcome.ok
    assert token_client.calls == 1
    assert provider.added[0][0] == "new-access-1"


async def test_owner_refresh_rejected(world, session, provider, lock_manager, clock):
    await expire_credential(session, "alice", clock() - timedelta(minutes=5))
    rejecting = StubTokenClient(clock=clock, status_code=400)

    outcome = await workflow(session, provider, rejecting, lock_manager, clock).run(world["bob"], world["link"].slug)

    assert outcome.status == ContributionStatus.OWNER_CREDENTIAL_EXPIRED
    assert provider.added == []
    assert await ContributionsRepository(session).list_by_playlist(world["playlist"].id) == []


@pytest.mark.parametrize(
    "error",
    [SpotifyAPIError("Spotify API error (403): forbidden", 403), httpx.ConnectError("down")],
)
async def test_mutation_failure_records_nothing(world, session, provider, token_client, lock_manager, clock, error):
    provider.fail_add = error

    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(world["bob"], world["link"].slug)

    assert outcome.status == ContributionStatus.EXTERNAL_MUTATION_FAILED
    assert outcome.stage == ContributionStage.MUTATING_EXTERNAL_PLAYLIST
    assert await ContributionsRepository(session).list_by_playlist(world["playlist"].id) == []
    link = await SharingLinksRepository(session).get_by_id(world["link"].id)
    assert link.usage_count == 0


async def test_recording_failure_after_tracks_were_added(
    world, session, provider, token_client, lock_manager, clock, monkeypatch
):
    async def broken_create(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(ContributionsRepository, "create", broken_create)

    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(world["bob"], world["link"].slug)

    assert outcome.status == ContributionStatus.RECORDING_FAILED
    assert outcome.stage == ContributionStage.RECORDING_CONTRIBUTION
    assert len(provider.added) == 1


async def test_unexpected_error_becomes_internal_error(world, session, provider, token_client, lock_manager, clock):
    async def explode(*args, **kwargs):
        raise KeyError("items")

    provider.get_top_tracks = explode

    outcome = await workflow(session, provider, token_client, lock_manager, clock).run(world["bob"], world["link"].slug)

    assert outcome.status == ContributionStatus.INTERNAL_ERROR
    assert outcome.stage == ContributionStage.FETCHING_CONTRIBUTOR_TRACKS


async def test_bob_contributes_through_fixed_slug_then_repeats(session, provider, token_client, lock_manager, clock):
    await create_account(session, "alice", "Alice", "alice-token", clock() + timedelta(hours=1))
    bob = await create_account(session, "bob", "Bob", "bob-token", clock() + timedelta(hours=1))
    playlist = await PlaylistsRepository(session).get_or_create("sp-alice", "alice", "SMAS")
    await SharingService(session, slug_factory=lambda: "abc12345").create_unique_link(playlist.id, "alice", "Alice")
    provider.top_tracks["bob-token"] = [make_track(1), make_track(2)]
    bob_ctx = ContributorContext(contributor_id=bob.id, contributor_name="Bob", contributor_access_token="bob-token")
    wf = workflow(session, provider, token_client, lock_manager, clock)

    first = await wf.run(bob_ctx, "abc12345")
    clock.advance(timedelta(seconds=1))
    second = await wf.run(bob_ctx, "abc12345")

    assert first.ok
    assert second.status == ContributionStatus.COOLDOWN_BLOCKED
    assert second.stage == ContributionStage.CHECKING_COOLDOWN
    rows = await ContributionsRepository(session).list_by_playlist(playlist.id)
    assert [r.contributor_id for r in rows] == [bob.id]
    assert provider.added == [("alice-token", "sp-alice", ["spotify:track:t1", "spotify:track:t2"])]


async def test_simultaneous_attempts_by_one_contributor(
    world, session, session_factory, provider, token_client, lock_manager, clock
):
    async def attempt():
        async with session_factory() as own_session:
            return await workflow(own_session, provider, token_client, lock_manager, clock).run(
                world["bob"], world["link"].slug
            )

    first, second = await asyncio.gather(attempt(), attempt())

    assert {first.status, second.status} == {ContributionStatus.SUCCESS, ContributionStatus.COOLDOWN_BLOCKED}
    assert len(provider.added) == 1
    rows = await ContributionsRepository(session).list_by_playlist(world["playlist"].id)
    assert len(rows) == 1

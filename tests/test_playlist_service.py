"""Dashboard provisioning of the shared playlist."""

from conftest import make_track
from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.spotify_client import SpotifyAPIError
from smas.schemas.spotify_schema import SpotifyPlaylist
from smas.services.playlist_service import PlaylistService, load_cover_image
from smas.services.sharing_service import SharingService


async def test_creates_playlist_and_uploads_cover(session, provider):
    svc = PlaylistService(session, provider, cover_image="aGVsbG8=")

    result = await svc.provision("alice", "alice-token")

    assert result.created
    assert result.playlist.external_playlist_id == "sp-1"
    assert result.playlist.owner_external_id == "alice"
    assert provider.covers == ["sp-1"]
    assert result.sharing_link is None


async def test_cover_failure_is_not_fatal(session, provider):
    provider.fail_cover = SpotifyAPIError("Failed to upload playlist cover image. Status: 400", 400)

    result = await PlaylistService(session, provider, cover_image="aGVsbG8=").provision("alice", "alice-token")

    assert result.created
    assert provider.covers == []


async def test_drifted_metadata_is_reconciled(session, provider):
    repo = PlaylistsRepository(session)
    registered = await repo.get_or_create("sp-9", "alice", "SMAS", "old description")
    provider.playlists["alice-token"] = [
        SpotifyPlaylist(id="sp-9", name="SMAS", description="new description", track_total=3)
    ]
    provider.playlist_tracks["sp-9"] = [make_track(1), make_track(2), make_track(3)]

    result = await PlaylistService(session, provider).provision("alice", "alice-token")

    assert not result.created
    assert result.playlist.id == registered.id
    assert result.playlist.description == "new description"
    assert result.playlist.track_count == 3
    assert len(result.tracks) == 3


async def test_active_link_is_returned(session, provider):
    svc = PlaylistService(session, provider)
    first = await svc.provision("alice", "alice-token")
    link = await SharingService(session).create_unique_link(first.playlist.id, "alice", "Alice")

    second = await svc.provision("alice", "alice-token")

    assert second.sharing_link.id == link.id
    assert len(await PlaylistsRepository(session).list_by_owner("alice")) == 1


def test_cover_image_loading(tmp_path):
    cover = tmp_path / "cover.b64"
    cover.write_text("aGVsbG8=\n")

    assert load_cover_image(str(cover)) == "aGVsbG8="
    assert load_cover_image(None) is None
    assert load_cover_image(str(tmp_path / "missing.b64")) is None

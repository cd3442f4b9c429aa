"""Spotify Web API client over httpx.MockTransport."""

import httpx
import pytest

from smas.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig, RateLimitedError
from smas.infrastructure.spotify_client import SpotifyAPIError, SpotifyClient


def make_client(handler, max_retries=3):
    delays = []

    async def no_sleep(delay):
        delays.append(delay)

    limiter = RateLimiter(RateLimiterConfig(max_retries=max_retries), sleep=no_sleep)
    client = SpotifyClient(api_base="https://api.example/v1", rate_limiter=limiter, transport=httpx.MockTransport(handler))
    return client, delays


TRACK = {
    "id": "t1",
    "uri": "spotify:track:t1",
    "name": "Song",
    "artists": [{"name": "Artist"}],
    "album": {"name": "Album", "images": [{"url": "http://img"}]},
    "duration_ms": 1000,
}


class TestRateLimiter:
    def test_backoff_grows_and_is_capped(self):
        limiter = RateLimiter(RateLimiterConfig(base_delay=1.0, max_delay=5.0))
        assert [limiter.backoff_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]
        assert limiter.backoff_delay(0, retry_after=3) == 3

    async def test_gives_up_after_max_retries(self):
        calls = []

        async def always_limited():
            calls.append(1)
            raise RateLimitedError(None)

        async def no_sleep(delay):
            pass

        with pytest.raises(RateLimitedError):
            await RateLimiter(RateLimiterConfig(max_retries=2), sleep=no_sleep).execute_with_retry(always_limited)
        assert len(calls) == 3


class TestReads:
    async def test_top_tracks_are_parsed(self):
        def handler(request):
            assert request.url.path == "/v1/me/top/tracks"
            assert request.url.params["time_range"] == "short_term"
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(200, json={"items": [TRACK]})

        client, _ = make_client(handler)
        tracks = await client.get_top_tracks("tok", limit=5)

        assert len(tracks) == 1
        assert tracks[0].uri == "spotify:track:t1"
        assert tracks[0].artist == "Artist"
        assert tracks[0].image_url == "http://img"

    async def test_rate_limited_read_is_retried_honouring_retry_after(self):
        responses = iter([httpx.Response(429, headers={"Retry-After": "2"}), httpx.Response(200, json={"id": "alice"})])
        client, delays = make_client(lambda request: next(responses))

        profile = await client.get_current_user("tok")

        assert profile.id == "alice"
        assert delays == [2.0]

    async def test_http_date_retry_after_falls_back_to_backoff(self):
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
                httpx.Response(200, json={"id": "alice"}),
            ]
        )
        client, delays = make_client(lambda request: next(responses))

        profile = await client.get_current_user("tok")

        assert profile.id == "alice"
        assert delays == [1.0]

    async def test_exhausted_retries_surface_as_api_error(self):
        client, _ = make_client(lambda request: httpx.Response(429), max_retries=1)

        with pytest.raises(SpotifyAPIError) as err:
            await client.get_current_user("tok")
        assert err.value.status_code == 429

    async def test_unauthorized_maps_to_token_expired(self):
        client, _ = make_client(lambda request: httpx.Response(401, json={"error": {"message": "expired"}}))

        with pytest.raises(SpotifyAPIError) as err:
            await client.get_top_tracks("tok")
        assert err.value.token_expired

    async def test_playlist_tracks_skip_local_files(self):
        body = {"items": [{"track": TRACK}, {"track": {"id": None, "name": "local"}}, {"track": None}]}
        client, _ = make_client(lambda request: httpx.Response(200, json=body))

        tracks = await client.get_playlist_tracks("tok", "p1")

        assert [t.id for t in tracks] == ["t1"]


class TestWrites:
    async def test_add_tracks_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        client, _ = make_client(handler)
        with pytest.raises(SpotifyAPIError):
            await client.add_tracks_to_playlist("tok", "p1", ["spotify:track:t1"])
        assert len(calls) == 1

    async def test_add_tracks_posts_uris(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/v1/playlists/p1/tracks"
            assert b"spotify:track:t1" in request.read()
            return httpx.Response(201, json={"snapshot_id": "snap"})

        client, _ = make_client(handler)
        assert await client.add_tracks_to_playlist("tok", "p1", ["spotify:track:t1"]) == "snap"

    async def test_cover_upload_expects_202(self):
        client, _ = make_client(lambda request: httpx.Response(200))

        with pytest.raises(SpotifyAPIError):
            await client.upload_playlist_cover_image("tok", "p1", "aGVsbG8=")

    async def test_create_playlist(self):
        def handler(request):
            assert request.url.path == "/v1/users/alice/playlists"
            return httpx.Response(201, json={"id": "p9", "name": "SMAS", "owner": {"id": "alice"}})

        client, _ = make_client(handler)
        playlist = await client.create_playlist("tok", "alice", "SMAS", "desc")

        assert playlist.id == "p9"
        assert playlist.owner_id == "alice"

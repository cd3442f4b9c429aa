# smas/infrastructure/spotify_client.py
from typing import Any, Dict, List, Optional, Protocol

import httpx
import structlog

from smas.config import SPOTIFY_API_BASE
from smas.infrastructure.rate_limiter import RateLimiter, RateLimitedError
from smas.schemas.spotify_schema import SpotifyPlaylist, SpotifyProfile, SpotifyTrack

logger = structlog.get_logger(__name__)


class SpotifyAPIError(Exception):
    def __init__(self, message: str, status_code: int, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def token_expired(self) -> bool:
        return self.code == "TOKEN_EXPIRED"


class MusicProvider(Protocol):
    """Typed boundary to the music service; callers never see raw provider JSON."""

    async def get_current_user(self, access_token: str) -> SpotifyProfile:
        ...

    async def get_top_tracks(self, access_token: str, limit: int = 5, time_range: str = "short_term") -> List[SpotifyTrack]:
        ...

    async def get_user_playlists(self, access_token: str, limit: int = 50) -> List[SpotifyPlaylist]:
        ...

    async def get_playlist_tracks(self, access_token: str, playlist_id: str) -> List[SpotifyTrack]:
        ...

    async def create_playlist(
        self, access_token: str, user_id: str, name: str, description: str, public: bool = True
    ) -> SpotifyPlaylist:
        ...

    async def add_tracks_to_playlist(self, access_token: str, playlist_id: str, track_uris: List[str]) -> Optional[str]:
        ...

    async def upload_playlist_cover_image(self, access_token: str, playlist_id: str, base64_image: str) -> None:
        ...


def retry_after_seconds(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; the HTTP-date form falls back to backoff."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class SpotifyClient:
    """Bearer-authenticated Spotify Web API calls. Reads retry on 429, writes never do."""

    def __init__(
        self,
        api_base: str = SPOTIFY_API_BASE,
        timeout: int = 30,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter()
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.api_base, timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _headers(access_token: str, content_type: str = "application/json") -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}", "Content-Type": content_type}

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 401:
            raise SpotifyAPIError("TOKEN_EXPIRED", 401, "TOKEN_EXPIRED")
        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message") or "Spotify API error"
            except ValueError:
                message = response.text or "Spotify API error"
            raise SpotifyAPIError(f"Spotify API error ({response.status_code}): {message}", response.status_code)

    async def _get(self, access_token: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        async def send() -> Dict[str, Any]:
            async with self._client() as client:
                response = await client.get(path, headers=self._headers(access_token), params=params)
            if response.status_code == 429:
                raise RateLimitedError(retry_after_seconds(response.headers.get("Retry-After")))
            self._raise_for_status(response)
            return response.json()

        try:
            return await self.rate_limiter.execute_with_retry(send, name=path)
        except RateLimitedError:
            raise SpotifyAPIError("Spotify API error (429): rate limited", 429, "RATE_LIMITED")

    async def _send_once(self, method: str, access_token: str, path: str, **kwargs) -> httpx.Response:
        content_type = kwargs.pop("content_type", "application/json")
        async with self._client() as client:
            response = await client.request(method, path, headers=self._headers(access_token, content_type), **kwargs)
        self._raise_for_status(response)
        return response

    async def get_current_user(self, access_token: str) -> SpotifyProfile:
        data = await self._get(access_token, "/me")
        return SpotifyProfile.from_api(data)

    async def get_top_tracks(self, access_token: str, limit: int = 5, time_range: str = "short_term") -> List[SpotifyTrack]:
        data = await self._get(access_token, "/me/top/tracks", params={"limit": limit, "time_range": time_range})
        return [SpotifyTrack.from_api(item) for item in data.get("items", []) if item and item.get("id")]

    async def get_user_playlists(self, access_token: str, limit: int = 50) -> List[SpotifyPlaylist]:
        data = await self._get(access_token, "/me/playlists", params={"limit": limit})
        return [SpotifyPlaylist.from_api(item) for item in data.get("items", []) if item]

    async def get_playlist_tracks(self, access_token: str, playlist_id: str) -> List[SpotifyTrack]:
        data = await self._get(access_token, f"/playlists/{playlist_id}/tracks")
        tracks = []
        for item in data.get("items", []):
            track = (item or {}).get("track")
            # local files and removed tracks come back without an id
            if track and track.get("id"):
                tracks.append(SpotifyTrack.from_api(track))
        return tracks

    async def create_playlist(
        self, access_token: str, user_id: str, name: str, description: str, public: bool = True
    ) -> SpotifyPlaylist:
        response = await self._send_once(
            "POST",
            access_token,
            f"/users/{user_id}/playlists",
            json={"name": name, "description": description, "public": public},
        )
        playlist = SpotifyPlaylist.from_api(response.json())
        logger.info("spotify_playlist_created", playlist_id=playlist.id, owner=user_id)
        return playlist

    async def add_tracks_to_playlist(self, access_token: str, playlist_id: str, track_uris: List[str]) -> Optional[str]:
        response = await self._send_once(
            "POST", access_token, f"/playlists/{playlist_id}/tracks", json={"uris": track_uris}
        )
        return response.json().get("snapshot_id")

    async def upload_playlist_cover_image(self, access_token: str, playlist_id: str, base64_image: str) -> None:
        response = await self._send_once(
            "PUT",
            access_token,
            f"/playlists/{playlist_id}/images",
            content=base64_image,
            content_type="image/jpeg",
        )
        if response.status_code != 202:
            raise SpotifyAPIError(
                f"Failed to upload playlist cover image. Status: {response.status_code}", response.status_code
            )

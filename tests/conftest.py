import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.accounts import utils
from smas.accounts.models import AccountLink, User
from smas.infrastructure.credentials_repo import CredentialsRepository
from smas.infrastructure.database import init_db
from smas.infrastructure.playlists_repo import PlaylistsRepository
from smas.infrastructure.spotify_auth import SpotifyTokenClient
from smas.infrastructure.spotify_client import SpotifyAPIError
from smas.models.base import utcnow
from smas.schemas.spotify_schema import SpotifyPlaylist, SpotifyProfile, SpotifyTrack
from smas.services.sharing_service import SharingService


class FakeRedis:
    """Just the commands the session and OAuth-state helpers use."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    async def set(self, key, value, ex=None):
        self.data[key] = value
        return True

    async def exists(self, key):
        return 1 if key in self.data else 0

    async def getdel(self, key):
        return self.data.pop(key, None)


class InMemoryLockManager:
    def __init__(self):
        self.locks: Dict[str, asyncio.Lock] = {}
        self.acquired: List[str] = []

    @asynccontextmanager
    async def lock(self, key: str):
        lock = self.locks.setdefault(key, asyncio.Lock())
        async with lock:
            self.acquired.append(key)
            yield


def make_track(n: int) -> SpotifyTrack:
    return SpotifyTrack(id=f"t{n}", uri=f"spotify:track:t{n}", name=f"Song {n}", artist="Artist", album="Album")


class FakeMusicProvider:
    def __init__(self):
        self.top_tracks: Dict[str, List[SpotifyTrack]] = {}
        self.profiles: Dict[str, SpotifyProfile] = {}
        self.playlists: Dict[str, List[SpotifyPlaylist]] = {}
        self.playlist_tracks: Dict[str, List[SpotifyTrack]] = {}
        self.added: List[tuple] = []
        self.created: List[tuple] = []
        self.covers: List[str] = []
        self.fail_add: Optional[Exception] = None
        self.fail_cover: Optional[Exception] = None

    async def get_current_user(self, access_token):
        if access_token not in self.profiles:
            raise SpotifyAPIError("TOKEN_EXPIRED", 401, "TOKEN_EXPIRED")
        return self.profiles[access_token]

    async def get_top_tracks(self, access_token, limit=5, time_range="short_term"):
        return list(self.top_tracks.get(access_token, []))[:limit]

    async def get_user_playlists(self, access_token, limit=50):
        return list(self.playlists.get(access_token, []))

    async def get_playlist_tracks(self, access_token, playlist_id):
        return list(self.playlist_tracks.get(playlist_id, []))

    async def create_playlist(self, access_token, user_id, name, description, public=True):
        playlist = SpotifyPlaylist(id=f"sp-{len(self.created) + 1}", name=name, description=description, owner_id=user_id)
        self.created.append((access_token, user_id, name))
        self.playlists.setdefault(access_token, []).append(playlist)
        return playlist

    async def add_tracks_to_playlist(self, access_token, playlist_id, track_uris):
        if self.fail_add:
            raise self.fail_add
        self.added.append((access_token, playlist_id, list(track_uris)))
        return "snapshot"

    async def upload_playlist_cover_image(self, access_token, playlist_id, base64_image):
        if self.fail_cover:
            raise self.fail_cover
        self.covers.append(playlist_id)


class StubTokenClient(SpotifyTokenClient):
    """Token endpoint answered by an httpx.MockTransport that counts calls."""

    def __init__(self, clock=utcnow, status_code=200, rotate=True):
        self.calls = 0
        self.status_code = status_code
        self.rotate = rotate
        super().__init__(
            client_id="cid",
            client_secret="secret",
            token_url="https://accounts.example/api/token",
            redirect_uri="http://localhost/cb",
            transport=httpx.MockTransport(self._handle),
            clock=clock,
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "invalid_grant", "error_description": "revoked"})
        body = {"access_token": f"new-access-{self.calls}", "expires_in": 3600, "token_type": "Bearer"}
        if self.rotate:
            body["refresh_token"] = f"new-refresh-{self.calls}"
        return httpx.Response(200, json=body)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(utils, "redis_client", redis)
    return redis


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/smas-test.db", poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    @asynccontextmanager
    async def factory():
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    return factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider():
    return FakeMusicProvider()


@pytest.fixture
def lock_manager():
    return InMemoryLockManager()


@pytest.fixture
def clock():
    return Clock(datetime(2025, 1, 31, 12, 0, 0))


@pytest.fixture
def token_client(clock):
    return StubTokenClient(clock=clock)


async def create_account(session, external_id: str, name: str, access_token: str, expires_at: datetime, refresh_token="refresh-0"):
    """User + AccountLink + stored credential, as a completed sign-in leaves them."""
    user = User(display_name=name, email=f"{external_id}@example.com")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    session.add(
        AccountLink(user_id=user.id, provider="spotify", external_account_id=external_id, external_profile_id=external_id)
    )
    await session.commit()
    await CredentialsRepository(session).put(
        user_id=user.id,
        external_account_id=external_id,
        access_token_enc=utils.encrypt_token(access_token),
        refresh_token_enc=utils.encrypt_token(refresh_token),
        expires_at=expires_at,
    )
    return user


async def create_shared_playlist(session, owner_external_id: str, owner_name: str, external_playlist_id="sp-alice"):
    playlist = await PlaylistsRepository(session).get_or_create(external_playlist_id, owner_external_id, "SMAS", "desc")
    link = await SharingService(session).create_unique_link(playlist.id, owner_external_id, owner_name)
    return playlist, link


async def expire_credential(session, external_id: str, expires_at: datetime):
    repo = CredentialsRepository(session)
    cred = await repo.get(external_id)
    cred.access_token_expires_at = expires_at
    session.add(cred)
    await session.commit()
    return cred

# smas/dependencies/services.py
from functools import lru_cache

from smas.infrastructure.locks import LockManager, RedisLockManager
from smas.infrastructure.spotify_auth import SpotifyTokenClient
from smas.infrastructure.spotify_client import MusicProvider, SpotifyClient


@lru_cache
def get_music_provider() -> MusicProvider:
    return SpotifyClient()


@lru_cache
def get_token_client() -> SpotifyTokenClient:
    return SpotifyTokenClient()


@lru_cache
def get_lock_manager() -> LockManager:
    return RedisLockManager()

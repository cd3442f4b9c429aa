# smas/infrastructure/locks.py
from typing import AsyncContextManager, Optional, Protocol

import redis.asyncio as aioredis

from smas.config import LOCK_TIMEOUT_SECONDS, LOCK_BLOCKING_TIMEOUT_SECONDS
from smas.infrastructure.redis_cache import redis_client


class LockManager(Protocol):
    def lock(self, key: str) -> AsyncContextManager:
        ...


class RedisLockManager:
    """
    Named locks shared by every worker process.
    `timeout` bounds how long a crashed holder can block others; acquiring
    raises redis.exceptions.LockError after `blocking_timeout` seconds.
    """

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        timeout: int = LOCK_TIMEOUT_SECONDS,
        blocking_timeout: int = LOCK_BLOCKING_TIMEOUT_SECONDS,
    ):
        self.client = client or redis_client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    def lock(self, key: str) -> AsyncContextManager:
        return self.client.lock(f"lock:{key}", timeout=self.timeout, blocking_timeout=self.blocking_timeout)


def credential_refresh_key(external_account_id: str) -> str:
    return f"credential-refresh:{external_account_id}"


def contribution_key(playlist_id: str, contributor_id: str) -> str:
    return f"contribution:{playlist_id}:{contributor_id}"

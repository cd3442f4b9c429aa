# smas/infrastructure/redis_cache.py
import redis.asyncio as aioredis

from smas.config import REDIS_URL

redis_client = aioredis.from_url(REDIS_URL, decode_responses=True)

"""
Time expiring cache for computed voting power.

The cache is advisory: any failure of the backend is logged and treated as a
miss, the caller then recomputes from chain state.
"""
import asyncio
import logging
from typing import Optional, Union

import orjson
from fastapi_cache.backends import Backend
from fastapi_cache.backends.inmemory import InMemoryBackend
from fastapi_cache.backends.redis import RedisBackend
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from .types import VotingPower

_LOGGER = logging.getLogger(__name__)

KEY_PREFIX = "voting-power"
LATEST = "latest"

BlockKey = Union[int, str]

# unreachable backend or a corrupted entry
CACHE_ERRORS = (RedisError, OSError, asyncio.TimeoutError, ValueError, KeyError)


def namespace_for(address: str) -> str:
    return f"{KEY_PREFIX}:{address}"


def cache_key(address: str, block_number: Optional[BlockKey]) -> str:
    """
    Key of an entry, e.g. voting-power:0xAbC...:latest or voting-power:0xAbC...:1234
    """
    block = LATEST if block_number is None else block_number
    return f"{namespace_for(address)}:{block}"


class NoCache:
    """
    Cache used when none is configured, never stores anything
    """

    async def get(
        self, address: str, block_number: Optional[BlockKey] = None
    ) -> Optional[VotingPower]:
        return None

    async def put(
        self,
        address: str,
        block_number: Optional[BlockKey],
        power: VotingPower,
        ttl: int,
    ) -> None:
        return None

    async def invalidate(self, address: str) -> None:
        return None

    async def ping(self) -> bool:
        return False


class VotingPowerCache:
    """
    Voting power cache on top of a fastapi-cache backend (in memory or redis)
    """

    def __init__(self, backend: Backend):
        self.backend = backend

    async def get(
        self, address: str, block_number: Optional[BlockKey] = None
    ) -> Optional[VotingPower]:
        key = cache_key(address, block_number)
        try:
            cached = await self.backend.get(key)
            if cached is None:
                return None
            return VotingPower.from_dict(orjson.loads(cached))
        except CACHE_ERRORS as e:
            _LOGGER.warning(f"Cache read of {key} failed: {e!r}")
            return None

    async def put(
        self,
        address: str,
        block_number: Optional[BlockKey],
        power: VotingPower,
        ttl: int,
    ) -> None:
        key = cache_key(address, block_number)
        try:
            await self.backend.set(key, orjson.dumps(power.to_dict()), expire=ttl)
        except CACHE_ERRORS as e:
            _LOGGER.warning(f"Cache write of {key} failed: {e!r}")

    async def invalidate(self, address: str) -> None:
        """
        Drop all cached entries of an address, whatever block they were computed for.
        Call whenever the lock positions of the address change (stake, withdraw).
        """
        try:
            removed = await self.backend.clear(namespace=namespace_for(address))
            _LOGGER.info(f"Invalidated {removed} cached voting power entries of {address}")
        except CACHE_ERRORS as e:
            _LOGGER.warning(f"Cache invalidation for {address} failed: {e!r}")

    async def ping(self) -> bool:
        try:
            await self.backend.get(f"{KEY_PREFIX}:ping")
            return True
        except CACHE_ERRORS:
            return False


def build_backend(cache_url: Optional[str]) -> Optional[Backend]:
    """
    Build the fastapi-cache backend for a cache url, None if no cache is configured
    :param cache_url: memory:// or redis://host:port/db
    """
    if not cache_url:
        return None
    if cache_url.startswith("memory://"):
        return InMemoryBackend()
    if cache_url.startswith(("redis://", "rediss://", "unix://")):
        return RedisBackend(aioredis.from_url(cache_url))
    raise ValueError(f"Unsupported cache url {cache_url}")


def build_cache(backend: Optional[Backend]) -> Union[VotingPowerCache, NoCache]:
    if backend is None:
        _LOGGER.info("No cache configured, voting power is recomputed on every request")
        return NoCache()
    return VotingPowerCache(backend)

from __future__ import annotations

from dataclasses import dataclass

from services.cache import CacheBackend


@dataclass(slots=True)
class GuardResult:
    acquired: bool
    holders: int


class CreationGuard:
    """Short-lived (guild, user) claim that serializes ticket provisioning.

    The first caller inside the TTL window wins; later callers see
    ``acquired=False`` until the key expires or is released.
    """

    def __init__(self, cache: CacheBackend, ttl_seconds: int) -> None:
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key_for(guild_id: int, user_id: int) -> str:
        return f"ticket:create:{guild_id}:{user_id}"

    async def acquire(self, guild_id: int, user_id: int) -> GuardResult:
        holders = await self.cache.incr(self.key_for(guild_id, user_id), ttl=self.ttl_seconds)
        return GuardResult(acquired=holders == 1, holders=holders)

    async def release(self, guild_id: int, user_id: int) -> None:
        await self.cache.delete(self.key_for(guild_id, user_id))

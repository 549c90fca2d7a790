"""
Call association store.

Maps call ids to the (meeting, user) they belong to while the call is live.
Removal is atomic so that exactly one termination hands the call off, and
every removal leaves a tombstone so a stale or replayed event can never
recreate an association for a call that already ended.

Two backends are provided: an in-process dict (single instance, lost on
restart) and Redis (shared between instances, survives restarts).
"""
import logging
import os
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Optional

import redis.asyncio as redis

from models.call_models import CallAssociation

logger = logging.getLogger(__name__)

TOMBSTONE_TTL_SECONDS = 86400  # 24 hour TTL
# Associations whose Terminated event never arrives are dropped after this long
ASSOCIATION_TTL_SECONDS = 172800


class CallAssociationStore(ABC):
    """Keyed by call id. Only the call lifecycle tracker mutates it."""

    @abstractmethod
    async def put(self, association: CallAssociation) -> bool:
        """Store an association; returns False if the call has already terminated."""

    @abstractmethod
    async def get(self, call_id: str) -> Optional[CallAssociation]:
        ...

    @abstractmethod
    async def pop(self, call_id: str) -> Optional[CallAssociation]:
        """Atomically remove and return the association, tombstoning the call id."""

    @abstractmethod
    async def is_terminated(self, call_id: str) -> bool:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    async def close(self) -> None:
        pass


class InMemoryCallStore(CallAssociationStore):
    def __init__(self, tombstone_ttl: float = TOMBSTONE_TTL_SECONDS):
        self._associations: Dict[str, CallAssociation] = {}
        # call id -> expiry, oldest first; every entry shares the same TTL
        self._tombstones: "OrderedDict[str, float]" = OrderedDict()
        self.tombstone_ttl = tombstone_ttl

    async def put(self, association: CallAssociation) -> bool:
        self._sweep_tombstones()
        if await self.is_terminated(association.call_id):
            return False
        self._associations[association.call_id] = association
        return True

    async def get(self, call_id: str) -> Optional[CallAssociation]:
        return self._associations.get(call_id)

    async def pop(self, call_id: str) -> Optional[CallAssociation]:
        self._sweep_tombstones()
        self._tombstones[call_id] = time.monotonic() + self.tombstone_ttl
        self._tombstones.move_to_end(call_id)
        return self._associations.pop(call_id, None)

    async def is_terminated(self, call_id: str) -> bool:
        expires_at = self._tombstones.get(call_id)
        if expires_at is None:
            return False
        if expires_at <= time.monotonic():
            del self._tombstones[call_id]
            return False
        return True

    async def count(self) -> int:
        return len(self._associations)

    def _sweep_tombstones(self) -> None:
        now = time.monotonic()
        while self._tombstones:
            call_id, expires_at = next(iter(self._tombstones.items()))
            if expires_at > now:
                break
            del self._tombstones[call_id]


class RedisCallStore(CallAssociationStore):
    """
    Redis-backed store.

    Keys:
        call:{call_id}:association  JSON-encoded CallAssociation
        call:{call_id}:terminated   tombstone, expires after 24 hours
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, redis_url: Optional[str] = None):
        if redis_client is None:
            redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
            redis_client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
        self.redis_client = redis_client

    @staticmethod
    def _association_key(call_id: str) -> str:
        return f"call:{call_id}:association"

    @staticmethod
    def _tombstone_key(call_id: str) -> str:
        return f"call:{call_id}:terminated"

    async def put(self, association: CallAssociation) -> bool:
        call_id = association.call_id
        # Write first, then re-check the tombstone: a concurrent pop either sees
        # the write or leaves a tombstone that makes us undo it.
        await self.redis_client.set(
            self._association_key(call_id),
            association.model_dump_json(),
            ex=ASSOCIATION_TTL_SECONDS,
        )
        if await self.redis_client.exists(self._tombstone_key(call_id)):
            await self.redis_client.delete(self._association_key(call_id))
            return False
        return True

    async def get(self, call_id: str) -> Optional[CallAssociation]:
        raw = await self.redis_client.get(self._association_key(call_id))
        return CallAssociation.model_validate_json(raw) if raw else None

    async def pop(self, call_id: str) -> Optional[CallAssociation]:
        # Tombstone and removal run as one MULTI block, so a put that writes
        # after the removal always finds the tombstone.
        async with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.set(self._tombstone_key(call_id), "1", ex=TOMBSTONE_TTL_SECONDS)
            pipe.getdel(self._association_key(call_id))
            _, raw = await pipe.execute()
        return CallAssociation.model_validate_json(raw) if raw else None

    async def is_terminated(self, call_id: str) -> bool:
        return bool(await self.redis_client.exists(self._tombstone_key(call_id)))

    async def count(self) -> int:
        total = 0
        async for _ in self.redis_client.scan_iter(match="call:*:association"):
            total += 1
        return total

    async def close(self) -> None:
        await self.redis_client.aclose()


def build_call_store() -> CallAssociationStore:
    """
    Select the store backend from configuration.

    CALL_STORE_BACKEND may be "memory" or "redis"; when unset, Redis is used
    if REDIS_URL is configured.
    """
    backend = os.getenv("CALL_STORE_BACKEND", "").lower()
    if not backend:
        backend = "redis" if os.getenv("REDIS_URL") else "memory"

    if backend == "redis":
        logger.info("Call association store: redis")
        return RedisCallStore()
    if backend == "memory":
        logger.warning("Call association store: in-memory (associations are lost on restart)")
        return InMemoryCallStore()
    raise ValueError(f"Unsupported CALL_STORE_BACKEND: {backend}")

"""
services/memory_service.py

Chat session contexts, keyed by sessionId.
  - Production:  Redis (USE_REDIS=true in .env)
  - Development: in-memory dict (resets on restart)

Context lifecycle:
  absent ──start session / first message──▶ active
  active ──message──▶ active (lastActivity, expiresAt pushed forward)
  active ──SESSION_TTL_SECONDS idle──▶ expired (dropped on next message)
  active ──DELETE──▶ absent

Read-modify-write on one session is serialized by a per-session
asyncio.Lock, so concurrent messages never lose an update.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from pydantic import Field
from redis.exceptions import RedisError

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.logger import get_logger
from bhasha.models.base import CamelModel
from bhasha.models.response import ChatMessage

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionContext(CamelModel):
    session_id: str
    language: str = "en"
    session_type: str = "general"
    user_level: str = "intermediate"
    messages: list[ChatMessage] = []
    subjects: list[str] = []
    preferences: dict[str, Any] = {}
    start_time: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    def touch(self, ttl_seconds: int, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.last_activity = now
        self.expires_at = now + timedelta(seconds=ttl_seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at is not None and (now or utcnow()) >= self.expires_at

    def add_message(self, message: ChatMessage, limit: int) -> None:
        """Append, keep only the newest `limit` messages, track subjects in first-seen order."""
        self.messages.append(message)
        if len(self.messages) > limit:
            self.messages = self.messages[-limit:]
        if message.subject and message.subject not in self.subjects:
            self.subjects.append(message.subject)


Mutation = Callable[[Optional[SessionContext]], Awaitable[SessionContext]]


class SessionStore(ABC):
    """Swappable storage for session contexts."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, session_id: str):
        """
        Hold the session's lock. The lock object lives while anyone holds
        or waits on it, so a delete never splits one session across two locks.
        """
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                self._locks.pop(session_id, None)

    @abstractmethod
    async def get(self, session_id: str) -> Optional[SessionContext]:
        ...

    @abstractmethod
    async def save(self, context: SessionContext) -> None:
        ...

    @abstractmethod
    async def _remove(self, session_id: str) -> bool:
        ...

    async def update(self, session_id: str, mutate: Mutation) -> SessionContext:
        """
        Load → mutate → save under the session lock.
        `mutate` receives None when the session does not exist yet.
        """
        async with self.lock(session_id):
            context = await mutate(await self.get(session_id))
            await self.save(context)
            return context

    async def delete(self, session_id: str) -> bool:
        async with self.lock(session_id):
            removed = await self._remove(session_id)
        return removed

    async def drop(self, session_id: str) -> None:
        """Remove without taking the lock (caller already holds it)."""
        await self._remove(session_id)


class InMemorySessionStore(SessionStore):
    name = "memory"

    def __init__(self):
        super().__init__()
        self._sessions: dict[str, SessionContext] = {}

    async def get(self, session_id: str) -> Optional[SessionContext]:
        context = self._sessions.get(session_id)
        return context.model_copy(deep=True) if context else None

    async def save(self, context: SessionContext) -> None:
        self._sessions[context.session_id] = context.model_copy(deep=True)

    async def _remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None


class RedisSessionStore(SessionStore):
    """
    JSON-serialized contexts. Keys live twice the session TTL so an
    expired session is still recognisable (401) before Redis evicts it.
    """

    name = "redis"
    KEY_PREFIX = "bhasha:chat:"

    def __init__(self, url: str):
        super().__init__()
        self._url = url
        self._redis: Optional[aioredis.Redis] = None

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(self._url, decode_responses=True)
        return self._redis

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def get(self, session_id: str) -> Optional[SessionContext]:
        try:
            raw = await self._client().get(self._key(session_id))
        except RedisError as e:
            logger.error(f"Session read error: {e}")
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, "Session store unavailable", detail=str(e)) from e
        return SessionContext.model_validate_json(raw) if raw else None

    async def save(self, context: SessionContext) -> None:
        try:
            await self._client().set(
                self._key(context.session_id),
                context.model_dump_json(),
                ex=settings.SESSION_TTL_SECONDS * 2,
            )
        except RedisError as e:
            logger.error(f"Session write error: {e}")
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, "Session store unavailable", detail=str(e)) from e

    async def _remove(self, session_id: str) -> bool:
        try:
            return bool(await self._client().delete(self._key(session_id)))
        except RedisError as e:
            logger.error(f"Session delete error: {e}")
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, "Session store unavailable", detail=str(e)) from e


def build_session_store() -> SessionStore:
    if settings.USE_REDIS:
        logger.info(f"Session store: Redis ({settings.REDIS_URL.split('@')[-1]})")
        return RedisSessionStore(settings.REDIS_URL)
    return InMemorySessionStore()


# Singleton
session_store = build_session_store()

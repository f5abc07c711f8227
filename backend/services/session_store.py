"""
Redis-backed snapshot store for ranking sessions.

The snapshot is a single JSON document per session id, refreshed with a
TTL on every save. Transient Redis failures are retried with exponential
backoff; when the retries run out the caller gets a PersistenceFailure.
"""
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import get_settings
from schemas.ranking import SessionSnapshot
from services.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)
settings = get_settings()


class SessionStore:
    """Saves and loads SessionSnapshot documents in Redis."""

    _redis_key_prefix: str = "ranking:session:"

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        ttl_seconds: int = settings.session_ttl_seconds,
        retries: int = settings.persistence_retries,
        backoff_seconds: float = settings.persistence_backoff_seconds,
    ) -> None:
        self._redis = client
        self._ttl = ttl_seconds
        self._retries = max(retries, 1)
        self._backoff = backoff_seconds

    def _key(self, session_id: str) -> str:
        return f"{self._redis_key_prefix}{session_id}"

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            client = redis.from_url(settings.redis_url)
            # Test connection
            try:
                await client.ping()
            except RedisError:
                await client.aclose()
                raise
            self._redis = client
        return self._redis

    async def _with_retries(self, operation: str, func):
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retries),
                wait=wait_exponential(multiplier=self._backoff, max=30),
                retry=retry_if_exception_type(RedisError),
                reraise=False,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying session {operation} "
                            f"(attempt {attempt.retry_state.attempt_number}/{self._retries})"
                        )
                    return await func()
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(f"Session {operation} failed after {self._retries} attempts: {cause}")
            raise PersistenceFailure(f"Session {operation} failed: {cause}") from cause

    async def save(self, session_id: str, snapshot: SessionSnapshot) -> None:
        """Save snapshot to Redis."""
        async def _save() -> None:
            r = await self._get_redis()
            await r.setex(self._key(session_id), self._ttl, snapshot.model_dump_json())

        await self._with_retries("save", _save)
        logger.debug(f"Saved session {session_id} ({snapshot.battle_counter} battles)")

    async def load(self, session_id: str) -> Optional[SessionSnapshot]:
        """Get snapshot from Redis, None if there is none."""
        async def _load():
            r = await self._get_redis()
            return await r.get(self._key(session_id))

        data = await self._with_retries("load", _load)
        if not data:
            return None
        try:
            return SessionSnapshot.model_validate_json(data)
        except ValueError as e:
            logger.error(f"Stored session {session_id} is corrupt, ignoring it: {e}")
            return None

    async def delete(self, session_id: str) -> None:
        async def _delete() -> None:
            r = await self._get_redis()
            await r.delete(self._key(session_id))

        await self._with_retries("delete", _delete)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

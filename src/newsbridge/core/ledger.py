"""
Duplicate ledger backed by Redis.

Records which article ids have already been delivered to Drupal. Each
delivered id becomes a key ``posted:article:<id>`` holding ``"1"`` with an
expiry (one year by default); the key's existence is the whole record, and
Redis expiry is the only cleanup path besides the operator-driven
[clear()][newsbridge.core.ledger.DuplicateLedger.clear].

The two failure modes are deliberately asymmetric:

* [has_seen()][newsbridge.core.ledger.DuplicateLedger.has_seen] **fails
  open**. A Redis error is logged and reported as "not seen", so an outage
  can cause a duplicate node but never a missed one.
* [mark_seen()][newsbridge.core.ledger.DuplicateLedger.mark_seen] and
  [clear()][newsbridge.core.ledger.DuplicateLedger.clear] **fail loudly**
  with [LedgerError][newsbridge.core.exceptions.LedgerError].

Examples:
    ```python
    ledger = DuplicateLedger.from_config(RedisConfig(url="redis://localhost:6379"))
    async with ledger:
        if not await ledger.has_seen("abc"):
            ...
            await ledger.mark_seen("abc")
    ```
"""

from __future__ import annotations

from types import TracebackType
from typing import Self

import redis.asyncio as aioredis
from pydantic import BaseModel, Field, SecretStr
from redis.exceptions import RedisError

from newsbridge.models.constants import DEFAULT_DEDUP_TTL_SECONDS, LEDGER_KEY_PREFIX

from .exceptions import LedgerError
from .logger import Logger


_REDIS_ERRORS = (RedisError, OSError, TimeoutError)


class RedisConfig(BaseModel):
    """Connection parameters for the ledger's Redis server.

    ``url`` accepts a full ``redis://`` / ``rediss://`` URL or a bare
    ``host:port`` address.
    """

    url: str = Field(min_length=1, description="Redis URL or host:port")
    password: SecretStr = Field(default=SecretStr(""), description="Redis password")
    db: int = Field(default=0, ge=0, description="Redis database number")
    connect_timeout: float = Field(default=5.0, gt=0.0, description="Connect/ping timeout")

    def connection_url(self) -> str:
        """Return ``url`` normalized to a ``redis://`` URL."""
        if "://" in self.url:
            return self.url
        return f"redis://{self.url}"


class DuplicateLedger:
    """Tracks delivered article ids in Redis with a time-to-live.

    Attributes:
        ttl: Lifetime of a ledger entry in seconds.
    """

    def __init__(
        self,
        client: aioredis.Redis,
        *,
        ttl: int = DEFAULT_DEDUP_TTL_SECONDS,
        logger: Logger | None = None,
    ) -> None:
        self._client = client
        self.ttl = ttl or DEFAULT_DEDUP_TTL_SECONDS
        self._logger = logger or Logger("ledger")

    @classmethod
    def from_config(
        cls,
        config: RedisConfig,
        *,
        ttl: int = DEFAULT_DEDUP_TTL_SECONDS,
        logger: Logger | None = None,
    ) -> DuplicateLedger:
        """Create a ledger with a fresh Redis client (no connection yet)."""
        password = config.password.get_secret_value() or None
        client = aioredis.Redis.from_url(
            config.connection_url(),
            password=password,
            db=config.db,
            decode_responses=True,
            socket_connect_timeout=config.connect_timeout,
        )
        return cls(client, ttl=ttl, logger=logger)

    @staticmethod
    def key(article_id: str) -> str:
        """Return the namespaced Redis key for ``article_id``."""
        return f"{LEDGER_KEY_PREFIX}{article_id}"

    async def connect(self) -> None:
        """Ping Redis to confirm the ledger is usable.

        Raises:
            LedgerError: If Redis cannot be reached. Fatal at boot.
        """
        try:
            await self._client.ping()
        except _REDIS_ERRORS as e:
            raise LedgerError(f"redis connection: {e}") from e
        self._logger.info("ledger_connected", ttl=self.ttl)

    async def close(self) -> None:
        """Release the Redis connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def has_seen(self, article_id: str) -> bool:
        """Return True if ``article_id`` was already delivered.

        Any Redis error is logged and treated as "not seen".
        """
        key = self.key(article_id)
        try:
            exists = await self._client.exists(key)
        except _REDIS_ERRORS as e:
            self._logger.error(
                "ledger_check_failed", article_id=article_id, redis_key=key, error=str(e)
            )
            return False

        seen = exists == 1
        self._logger.debug("ledger_checked", article_id=article_id, redis_key=key, seen=seen)
        return seen

    async def mark_seen(self, article_id: str) -> None:
        """Record ``article_id`` as delivered for ``ttl`` seconds.

        Raises:
            LedgerError: If the key could not be written. Leaving it unwritten
                risks a duplicate delivery in a later cycle.
        """
        key = self.key(article_id)
        try:
            await self._client.set(key, "1", ex=self.ttl)
        except _REDIS_ERRORS as e:
            self._logger.error(
                "ledger_mark_failed",
                article_id=article_id,
                redis_key=key,
                ttl=self.ttl,
                error=str(e),
            )
            raise LedgerError(f"mark {article_id} as posted: {e}") from e
        self._logger.debug("ledger_marked", article_id=article_id, redis_key=key, ttl=self.ttl)

    async def clear(self, article_id: str) -> None:
        """Forget ``article_id`` so the next cycle may deliver it again.

        Raises:
            LedgerError: If the key could not be deleted.
        """
        key = self.key(article_id)
        try:
            await self._client.delete(key)
        except _REDIS_ERRORS as e:
            self._logger.error(
                "ledger_clear_failed", article_id=article_id, redis_key=key, error=str(e)
            )
            raise LedgerError(f"clear {article_id}: {e}") from e
        self._logger.info("ledger_cleared", article_id=article_id, redis_key=key)

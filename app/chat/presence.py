"""
Presence directory: which users currently hold a live connection.

A user is reachable when the registry maps their id to the Channels
channel name of an open WebSocket. The delivery core only queries the
registry; ChatConsumer maintains it as connections open, heartbeat and
close.

Redis layout:
    presence:channel:<user_id> -> <channel name>   (TTL refreshed by heartbeat)

Design Decisions:
    - Redis-only storage (no database persistence)
    - TTL-based auto-expiry for connections that vanish without closing
    - One handle per user; the most recently registered connection wins
    - Refresh and unregister are compare-and-set Lua scripts so a stale
      connection never extends or removes a newer connection's entry

Usage:
    from chat.presence import get_presence_directory

    directory = get_presence_directory()
    handle = directory.lookup(user.id)   # None means not reachable
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from core.exceptions import ExternalServiceError

from chat.constants import PRESENCE_CONFIG

logger = logging.getLogger(__name__)


@runtime_checkable
class PresenceDirectory(Protocol):
    """Read side of the connection registry used during fan-out."""

    def lookup(self, user_id) -> str | None:
        """Return the connection handle for the user, or None if offline."""
        ...


class RedisPresenceDirectory:
    """
    Connection registry stored in Redis.

    The raw client comes from django-redis so it shares the cache's
    connection pool and socket timeouts.
    """

    # Keys: [connection_key]
    # Args: [channel_name, ttl_seconds]
    LUA_REFRESH = """
    local current = redis.call('GET', KEYS[1])
    if current == ARGV[1] then
        redis.call('EXPIRE', KEYS[1], ARGV[2])
        return 1
    end
    if not current then
        redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
        return 1
    end
    return 0
    """

    # Keys: [connection_key]
    # Args: [channel_name]
    LUA_UNREGISTER = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('DEL', KEYS[1])
    end
    return 0
    """

    def __init__(self, redis_client=None, ttl_seconds: int | None = None):
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds or PRESENCE_CONFIG.CONNECTION_TTL_SECONDS
        self._refresh_script = None
        self._unregister_script = None

    @property
    def redis(self):
        if self._redis is None:
            from django_redis import get_redis_connection

            self._redis = get_redis_connection("default")
        return self._redis

    @staticmethod
    def _connection_key(user_id) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_CONNECTION}:{user_id}"

    @staticmethod
    def _decode(value) -> str | None:
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    # =========================================================================
    # Query
    # =========================================================================

    def lookup(self, user_id) -> str | None:
        """
        Return the channel name registered for the user.

        Raises:
            ExternalServiceError: If Redis cannot be reached
        """
        try:
            value = self.redis.get(self._connection_key(user_id))
        except RedisError as exc:
            raise ExternalServiceError(
                "Presence registry unavailable",
                error_code="PRESENCE_UNAVAILABLE",
                details={"user_id": str(user_id)},
            ) from exc
        return self._decode(value)

    # =========================================================================
    # Registry maintenance (called by ChatConsumer)
    # =========================================================================

    def register(self, user_id, channel_name: str) -> None:
        """Record channel_name as the user's live connection."""
        self.redis.set(
            self._connection_key(user_id),
            channel_name,
            ex=self.ttl_seconds,
        )
        logger.debug(f"Registered connection {channel_name} for user {user_id}")

    def refresh(self, user_id, channel_name: str) -> bool:
        """
        Extend the TTL of the user's entry if it still belongs to channel_name.

        Re-creates an expired entry. Returns False when another connection
        has taken over the entry.
        """
        if self._refresh_script is None:
            self._refresh_script = self.redis.register_script(self.LUA_REFRESH)
        result = self._refresh_script(
            keys=[self._connection_key(user_id)],
            args=[channel_name, self.ttl_seconds],
        )
        return bool(result)

    def unregister(self, user_id, channel_name: str) -> bool:
        """
        Remove the user's entry if it still belongs to channel_name.

        Returns True when an entry was removed.
        """
        if self._unregister_script is None:
            self._unregister_script = self.redis.register_script(self.LUA_UNREGISTER)
        removed = self._unregister_script(
            keys=[self._connection_key(user_id)],
            args=[channel_name],
        )
        if removed:
            logger.debug(f"Unregistered connection {channel_name} for user {user_id}")
        return bool(removed)


def get_presence_directory() -> RedisPresenceDirectory:
    """Presence directory used when callers do not inject one."""
    return RedisPresenceDirectory()

"""Logout blacklist for JWTs, kept in Redis.

A revoked token is stored under ``revoked:<token>`` with a TTL equal to
its remaining lifetime, so the blacklist never outgrows the set of
tokens that could still be presented.
"""

import logging
import time

from redis.exceptions import RedisError

from croptrail.utils.redis_client import get_redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "revoked:"


class TokenRevocation:
    @staticmethod
    async def revoke_token(token: str, expires_at: float) -> bool:
        """Blacklist ``token`` until ``expires_at`` (unix time).

        Returns False if Redis could not be written.
        """
        remaining = int(expires_at - time.time())
        if remaining <= 0:
            # Already unusable.
            return True

        redis_client = await get_redis()
        try:
            await redis_client.set(f"{KEY_PREFIX}{token}", int(time.time()), ex=remaining)
        except RedisError as e:
            logger.error(f"Failed to revoke token: {e}")
            return False
        return True

    @staticmethod
    async def is_revoked(token: str) -> bool:
        """Fails closed: an unreachable Redis counts as revoked."""
        redis_client = await get_redis()
        try:
            return bool(await redis_client.exists(f"{KEY_PREFIX}{token}"))
        except RedisError as e:
            logger.error(f"Failed to check token revocation: {e}")
            return True

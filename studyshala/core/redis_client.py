import redis.asyncio as aioredis
from redis.asyncio import Redis
from typing import Optional

from studyshala.core.config import settings
from studyshala.core.logging_config import logger


class RedisClient:
    """Redis client used by the shared OAuth state store"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis: Optional[Redis] = None

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = aioredis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True
            )
            await self.redis.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection error: {e}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.close()
            self.redis = None
        logger.info("Redis disconnected")

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """Set value, with a native per-key expiry when given"""
        if expire:
            return bool(await self.redis.set(key, value, ex=expire))
        return bool(await self.redis.set(key, value))

    async def getdel(self, key: str) -> Optional[str]:
        """Atomically read and delete a key"""
        return await self.redis.getdel(key)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Redis PING error: {e}")
            return False


redis_client = RedisClient()

# interfaces/search_store.py
"""
Finished-search storage keyed by searchId.
Backs manual refresh (GET /api/hotels/search/{id}) after a stream ends.
"""

from typing import Dict, Optional
from loguru import logger
import redis

from ..config import settings
from ..schemas.search_schemas import StoredSearch


class SearchStore:
    """
    Keeps finished searches for SEARCH_TTL_SECONDS.
    Uses Redis when reachable, otherwise an in-process dict.
    """

    def __init__(
        self,
        redis_host: Optional[str] = None,
        redis_port: Optional[int] = None,
        redis_db: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        use_redis: bool = True,
    ):
        self.ttl_seconds = ttl_seconds or settings.SEARCH_TTL_SECONDS
        self.redis_client: Optional[redis.Redis] = None
        self._memory_store: Dict[str, str] = {}

        if not use_redis:
            logger.info("SearchStore using in-memory store")
            return

        host = redis_host or settings.REDIS_HOST
        port = redis_port or settings.REDIS_PORT
        try:
            self.redis_client = redis.Redis(
                host=host,
                port=port,
                db=settings.REDIS_DB if redis_db is None else redis_db,
                decode_responses=True,
                socket_connect_timeout=2,
            )
            self.redis_client.ping()
            logger.info(f"SearchStore connected to Redis at {host}:{port}")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed, using in-memory store: {e}")
            self.redis_client = None

    def _get_key(self, search_id: str) -> str:
        return f"search:{search_id}"

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client else "memory"

    def save(self, search: StoredSearch) -> None:
        payload = search.model_dump_json(by_alias=True)
        if self.redis_client:
            try:
                self.redis_client.setex(self._get_key(search.search_id), self.ttl_seconds, payload)
                return
            except redis.RedisError as e:
                logger.error(f"Redis save error: {e}")
        self._memory_store[search.search_id] = payload

    def get(self, search_id: str) -> Optional[StoredSearch]:
        payload = None
        if self.redis_client:
            try:
                payload = self.redis_client.get(self._get_key(search_id))
            except redis.RedisError as e:
                logger.error(f"Redis get error: {e}")
        if payload is None:
            payload = self._memory_store.get(search_id)
        if payload is None:
            return None
        return StoredSearch.model_validate_json(payload)


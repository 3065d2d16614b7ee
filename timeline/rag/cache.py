"""Redis cache for query embeddings"""

from typing import List, Optional
import hashlib
import json
import logging

import redis

logger = logging.getLogger(__name__)


class EmbeddingCache:
    """Fail-open Redis cache keyed by model and text"""

    def __init__(self, client: Optional[redis.Redis], ttl: int = 3600, prefix: str = "emb"):
        self.client = client
        self.ttl = ttl
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, ttl: int = 3600) -> "EmbeddingCache":
        try:
            client = redis.from_url(redis_url, decode_responses=False)
            logger.info("Redis cache enabled for query embeddings")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis cache: {e}")
            client = None
        return cls(client, ttl=ttl)

    def _key(self, model: str, text: str) -> str:
        digest = hashlib.sha256(f"{model}\n{text}".encode("utf-8")).hexdigest()
        return f"{self.prefix}:{digest}"

    def get(self, model: str, text: str) -> Optional[List[float]]:
        if self.client is None:
            return None
        try:
            cached = self.client.get(self._key(model, text))
            if cached:
                logger.debug("Cache hit for query embedding")
                return json.loads(cached)
        except Exception as e:
            logger.warning(f"Cache retrieval error: {e}")
        return None

    def set(self, model: str, text: str, embedding: List[float]):
        if self.client is None:
            return
        try:
            self.client.setex(self._key(model, text), self.ttl, json.dumps(embedding))
        except Exception as e:
            logger.warning(f"Cache save error: {e}")

    def health_check(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

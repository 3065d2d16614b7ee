"""OpenAI embeddings service"""

from typing import Awaitable, Callable, List, Optional
import asyncio
import logging
import time

import openai
from openai import AsyncOpenAI

from timeline.exceptions import DataIntegrityException, ExternalAPIException
from timeline.rag.cache import EmbeddingCache
from timeline.rag.config import RAGConfig

logger = logging.getLogger(__name__)


def is_retryable_status(status: Optional[int]) -> bool:
    """429 and 5xx are transient"""
    return status is not None and (status == 429 or status >= 500)


class EmbeddingsService:
    """Batched, order-preserving embedding client with bounded retries"""

    def __init__(
        self,
        client: AsyncOpenAI,
        config: RAGConfig,
        cache: Optional[EmbeddingCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.client = client
        self.model = config.embedding_model
        self.batch_size = max(1, config.embed_batch_size)
        self.max_retries = max(0, config.embed_max_retries)
        self.base_delay = config.embed_retry_base_delay
        self.cache = cache
        self.sleep = sleep

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts, one vector per input in input order

        Args:
            texts: Texts to embed

        Returns:
            List of embedding vectors aligned with texts

        Raises:
            ExternalAPIException: Upstream failure or exhausted retries
            DataIntegrityException: Upstream returned the wrong number of vectors
        """
        if not texts:
            return []

        vectors: List[List[float]] = []
        for offset in range(0, len(texts), self.batch_size):
            batch = texts[offset:offset + self.batch_size]
            vectors.extend(await self._embed_batch(batch))

        logger.info(f"Generated {len(vectors)} embeddings in {-(-len(texts) // self.batch_size)} batch(es)")
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single search query, using the cache when available"""
        if self.cache is not None:
            cached = self.cache.get(self.model, text)
            if cached:
                return cached

        vector = (await self.embed_texts([text]))[0]

        if self.cache is not None:
            self.cache.set(self.model, text, vector)
        return vector

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        attempt = 0
        while True:
            started = time.perf_counter()
            try:
                response = await self.client.embeddings.create(
                    model=self.model,
                    input=batch,
                    encoding_format="float"
                )
                break
            except openai.APIStatusError as e:
                if is_retryable_status(e.status_code) and attempt < self.max_retries:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Embedding request returned {e.status_code}, retrying in {delay:.2f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await self.sleep(delay)
                    attempt += 1
                    continue
                logger.error(f"Embedding request failed with status {e.status_code}")
                raise ExternalAPIException(
                    f"Embedding request failed with status {e.status_code}.",
                    status=e.status_code
                ) from e
            except openai.OpenAIError as e:
                logger.error(f"Embedding request failed: {e}")
                raise ExternalAPIException(f"Embedding request failed: {e}") from e

        logger.info(f"Embedding batch of {len(batch)} took {(time.perf_counter() - started) * 1000:.0f}ms")

        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(batch):
            raise DataIntegrityException(
                f"Embedding response size mismatch: expected {len(batch)}, got {len(items)}."
            )
        if [item.index for item in items] != list(range(len(batch))):
            raise DataIntegrityException("Embedding response indices do not cover the batch.")

        return [list(item.embedding) for item in items]

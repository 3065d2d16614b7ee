"""Factory for the shared RAG clients"""

from functools import lru_cache
import logging

from openai import AsyncOpenAI
from qdrant_client import QdrantClient

from timeline.config import get_settings
from timeline.rag.cache import EmbeddingCache
from timeline.rag.config import RAGConfig
from timeline.rag.embeddings import EmbeddingsService
from timeline.rag.generator import Generator
from timeline.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)


@lru_cache
def get_rag_config() -> RAGConfig:
    return RAGConfig.from_settings(get_settings())


@lru_cache
def get_openai_client() -> AsyncOpenAI:
    """OpenAI client; retries are handled by the services, not the SDK"""
    config = get_rag_config()
    return AsyncOpenAI(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        max_retries=0
    )


@lru_cache
def get_qdrant_client() -> QdrantClient:
    config = get_rag_config()
    if config.qdrant_api_key:
        client = QdrantClient(url=config.qdrant_url, api_key=config.qdrant_api_key)
    else:
        client = QdrantClient(url=config.qdrant_url)
    logger.info(f"Qdrant client configured for {config.qdrant_url}")
    return client


@lru_cache
def get_embedding_cache() -> EmbeddingCache:
    config = get_rag_config()
    if not config.enable_cache:
        return EmbeddingCache(None, ttl=config.cache_ttl)
    return EmbeddingCache.from_url(config.redis_url, ttl=config.cache_ttl)


@lru_cache
def get_vector_store() -> VectorStore:
    config = get_rag_config()
    return VectorStore(get_qdrant_client(), config.qdrant_collection, config.vector_size)


@lru_cache
def get_embeddings_service() -> EmbeddingsService:
    return EmbeddingsService(get_openai_client(), get_rag_config(), cache=get_embedding_cache())


@lru_cache
def get_generator() -> Generator:
    return Generator(get_openai_client(), get_rag_config())

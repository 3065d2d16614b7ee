"""RAG system configuration"""

from dataclasses import dataclass
from typing import Optional

from timeline.config import Settings


@dataclass
class RAGConfig:
    """Configuration for the RAG components"""

    # OpenAI Settings
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    max_tokens: int = 400
    temperature: float = 0.2

    # Embedding batch client
    embed_batch_size: int = 100
    embed_max_retries: int = 3
    embed_retry_base_delay: float = 0.5

    # Qdrant Settings
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "chunk_embeddings"
    # text-embedding-3-small: 1536
    vector_size: int = 1536

    # Chunking
    chunk_max_chars: int = 1500
    chunk_overlap_chars: int = 200

    # Chat context
    max_context_chars: int = 12000
    max_snippet_chars: int = 1200
    max_conversation_chars: int = 6000
    max_conversation_messages: int = 12

    # Redis Cache
    enable_cache: bool = True
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 3600  # 1 hour

    @classmethod
    def from_settings(cls, settings: Settings) -> "RAGConfig":
        return cls(
            openai_api_key=settings.OPENAI_API_KEY,
            openai_base_url=settings.OPENAI_BASE_URL,
            llm_model=settings.OPENAI_CHAT_MODEL,
            embedding_model=settings.OPENAI_EMBEDDING_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            temperature=settings.OPENAI_TEMPERATURE,
            embed_batch_size=settings.EMBED_BATCH_SIZE,
            embed_max_retries=settings.EMBED_MAX_RETRIES,
            embed_retry_base_delay=settings.EMBED_RETRY_BASE_DELAY,
            qdrant_url=settings.QDRANT_URL,
            qdrant_api_key=settings.QDRANT_API_KEY,
            qdrant_collection=settings.QDRANT_COLLECTION,
            vector_size=settings.EMBEDDING_VECTOR_SIZE,
            chunk_max_chars=settings.CHUNK_MAX_CHARS,
            chunk_overlap_chars=settings.CHUNK_OVERLAP_CHARS,
            max_context_chars=settings.CHAT_MAX_CONTEXT_CHARS,
            max_snippet_chars=settings.CHAT_MAX_SNIPPET_CHARS,
            max_conversation_chars=settings.CHAT_MAX_CONVERSATION_CHARS,
            max_conversation_messages=settings.CHAT_MAX_CONVERSATION_MESSAGES,
            enable_cache=settings.EMBED_CACHE_ENABLED,
            redis_url=settings.REDIS_URL,
            cache_ttl=settings.EMBED_CACHE_TTL
        )

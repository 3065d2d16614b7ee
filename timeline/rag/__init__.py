"""RAG module - chunking, embeddings, vector storage and grounded generation"""

from timeline.rag.chunking import TextChunk, chunk_text
from timeline.rag.config import RAGConfig
from timeline.rag.embeddings import EmbeddingsService
from timeline.rag.generator import Generator
from timeline.rag.vector_store import VectorStore, VectorHit

__all__ = [
    'TextChunk',
    'chunk_text',
    'RAGConfig',
    'EmbeddingsService',
    'Generator',
    'VectorStore',
    'VectorHit'
]

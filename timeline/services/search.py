"""Semantic search over embedded chunks"""

from typing import List, Optional
import logging
import time

from sqlalchemy.orm import Session

from timeline.config import Settings
from timeline.exceptions import ValidationException
from timeline.models.chunk_embedding import ChunkEmbedding
from timeline.models.drive_file_ref import DriveFileRef
from timeline.rag.embeddings import EmbeddingsService
from timeline.rag.vector_store import VectorStore
from timeline.schemas.search import SearchResult
from timeline.services.usage import UsageKind, UsageLedger, require_owner

logger = logging.getLogger(__name__)


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    if limit is None:
        limit = default
    return max(1, min(limit, maximum))


class SearchService:
    """Ranks an owner's current chunks by cosine similarity to a query"""

    def __init__(
        self,
        db: Session,
        embeddings: EmbeddingsService,
        vector_store: VectorStore,
        usage: UsageLedger,
        settings: Settings
    ):
        self.db = db
        self.embeddings = embeddings
        self.vector_store = vector_store
        self.usage = usage
        self.default_limit = settings.SEARCH_DEFAULT_LIMIT
        self.max_limit = settings.SEARCH_MAX_LIMIT

    def has_embeddings(self, owner_id: str) -> bool:
        return self.db.query(ChunkEmbedding.id).filter(ChunkEmbedding.owner_id == owner_id).first() is not None

    def _current_artifact_ids(self, owner_id: str) -> List[str]:
        rows = self.db.query(DriveFileRef.current_chunks_artifact_id).filter(
            DriveFileRef.owner_id == owner_id,
            DriveFileRef.current_chunks_artifact_id.isnot(None)
        ).all()
        return [row[0] for row in rows]

    async def search(self, owner_id: str, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        """
        Metered search

        Args:
            owner_id: Owner id
            query: Free-text query
            limit: Result count, clamped to [1, SEARCH_MAX_LIMIT]

        Returns:
            Results ordered by descending score

        Raises:
            ValidationException: Blank query
            QuotaExceededException: Daily search quota used up
        """
        require_owner(owner_id)
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValidationException("Query is required.")

        self.usage.assert_remaining(owner_id, UsageKind.SEARCHES, 1)
        results = await self.retrieve(owner_id, cleaned, limit)
        self.usage.record(owner_id, UsageKind.SEARCHES, 1)
        return results

    async def retrieve(self, owner_id: str, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        """Unmetered ranking used by chat, which is metered on its own"""
        require_owner(owner_id)
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValidationException("Query is required.")
        limit = clamp_limit(limit, self.default_limit, self.max_limit)

        artifact_ids = self._current_artifact_ids(owner_id)
        if not artifact_ids:
            logger.info(f"Owner {owner_id} has no ingested content to search")
            return []

        started = time.perf_counter()
        query_vector = await self.embeddings.embed_query(cleaned)
        hits = self.vector_store.search(query_vector, owner_id, artifact_ids, limit)
        if not hits:
            return []

        rows = self.db.query(ChunkEmbedding, DriveFileRef.name).join(
            DriveFileRef, ChunkEmbedding.drive_file_ref_id == DriveFileRef.id
        ).filter(
            ChunkEmbedding.owner_id == owner_id,
            ChunkEmbedding.id.in_([hit.id for hit in hits])
        ).all()
        by_id = {embedding.id: (embedding, name) for embedding, name in rows}

        results = []
        for hit in hits:
            if hit.id not in by_id:
                # Point without a committed row (e.g. interrupted run)
                continue
            embedding, name = by_id[hit.id]
            results.append(SearchResult(
                score=hit.score,
                drive_file_ref_id=embedding.drive_file_ref_id,
                drive_file_name=name,
                chunk_index=embedding.chunk_index,
                snippet=embedding.chunk_text,
                updated_at=embedding.updated_at
            ))

        logger.info(
            f"Search for owner {owner_id} returned {len(results)} results "
            f"in {(time.perf_counter() - started) * 1000:.0f}ms"
        )
        return results

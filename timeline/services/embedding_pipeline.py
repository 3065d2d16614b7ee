"""Embedding stage: embed missing chunks of each file's current CHUNKS_JSON artifact"""

from datetime import datetime
from typing import List, Optional, Set
import logging

from sqlalchemy.orm import Session

from timeline.config import Settings
from timeline.database.upsert import insert_ignore
from timeline.exceptions import ArtifactPayloadException, QuotaExceededException
from timeline.models.chunk_embedding import ChunkEmbedding, chunk_embedding_id
from timeline.models.derived_artifact import ArtifactType, DerivedArtifact
from timeline.models.drive_file_ref import DriveFileRef
from timeline.rag.embeddings import EmbeddingsService
from timeline.rag.vector_store import VectorStore
from timeline.schemas.artifact import ChunkItem, decode_chunks_payload
from timeline.schemas.pipeline import EmbedRunSummary
from timeline.services.usage import UsageKind, UsageLedger, require_owner

logger = logging.getLogger(__name__)

ARTIFACT_PAGE_SIZE = 10


class EmbeddingPipeline:
    """Embeds chunks that have no row for their (artifact, index, hash) yet"""

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
        self.default_max_chunks = settings.EMBED_MAX_CHUNKS_PER_RUN

    def _artifact_page(self, owner_id: str, drive_file_ref_id: Optional[str], offset: int) -> List[DerivedArtifact]:
        query = self.db.query(DerivedArtifact).join(
            DriveFileRef, DerivedArtifact.drive_file_ref_id == DriveFileRef.id
        ).filter(
            DerivedArtifact.owner_id == owner_id,
            DerivedArtifact.type == ArtifactType.CHUNKS_JSON,
            DerivedArtifact.id == DriveFileRef.current_chunks_artifact_id
        )
        if drive_file_ref_id:
            query = query.filter(DerivedArtifact.drive_file_ref_id == drive_file_ref_id)

        return query.order_by(
            DriveFileRef.ingested_at.desc(),
            DerivedArtifact.updated_at.desc(),
            DerivedArtifact.id.asc()
        ).offset(offset).limit(ARTIFACT_PAGE_SIZE).all()

    def _existing_chunk_indexes(self, artifact: DerivedArtifact) -> Set[int]:
        rows = self.db.query(ChunkEmbedding.chunk_index).filter(
            ChunkEmbedding.artifact_id == artifact.id,
            ChunkEmbedding.content_hash == artifact.content_hash
        ).all()
        return {row[0] for row in rows}

    async def _embed_chunks(self, owner_id: str, artifact: DerivedArtifact, chunks: List[ChunkItem]):
        self.usage.assert_remaining(owner_id, UsageKind.EMBED_CHUNKS, len(chunks))

        vectors = await self.embeddings.embed_texts([chunk.text for chunk in chunks])

        now = datetime.utcnow()
        rows = []
        payloads = []
        for chunk in chunks:
            rows.append({
                "id": chunk_embedding_id(artifact.id, chunk.index, artifact.content_hash),
                "owner_id": owner_id,
                "drive_file_ref_id": artifact.drive_file_ref_id,
                "artifact_id": artifact.id,
                "chunk_index": chunk.index,
                "chunk_text": chunk.text,
                "content_hash": artifact.content_hash,
                "created_at": now,
                "updated_at": now,
            })
            payloads.append({
                "owner_id": owner_id,
                "drive_file_ref_id": artifact.drive_file_ref_id,
                "artifact_id": artifact.id,
                "chunk_index": chunk.index,
                "content_hash": artifact.content_hash,
            })

        # Vectors first: a row without its point would never be re-embedded
        self.vector_store.upsert([row["id"] for row in rows], vectors, payloads)
        try:
            insert_ignore(self.db, ChunkEmbedding, rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.usage.record(owner_id, UsageKind.EMBED_CHUNKS, len(rows))
        return len(rows)

    async def run(
        self,
        owner_id: str,
        drive_file_ref_id: Optional[str] = None,
        max_chunks: Optional[int] = None
    ) -> EmbedRunSummary:
        """
        Embed missing chunks, newest ingestions first

        Args:
            owner_id: Owner id
            drive_file_ref_id: Restrict to one file
            max_chunks: Cap for this run (default EMBED_MAX_CHUNKS_PER_RUN), also capped by remaining quota

        Returns:
            Run summary; done is True only if every artifact was visited before the cap was hit

        Raises:
            QuotaExceededException: No embed quota left today
        """
        require_owner(owner_id)
        requested_cap = self.default_max_chunks if max_chunks is None else max_chunks
        remaining_quota = self.usage.remaining(owner_id, UsageKind.EMBED_CHUNKS)
        if remaining_quota <= 0:
            limit = self.usage.limits()[UsageKind.EMBED_CHUNKS]
            raise QuotaExceededException(limit=limit, remaining=0, kind=UsageKind.EMBED_CHUNKS.value)
        cap = max(0, min(requested_cap, remaining_quota))

        summary = EmbedRunSummary()
        offset = 0
        reached_end = False

        while summary.embedded_chunks < cap and not reached_end:
            artifacts = self._artifact_page(owner_id, drive_file_ref_id, offset)
            if not artifacts:
                reached_end = True
                break

            for artifact in artifacts:
                if summary.embedded_chunks >= cap:
                    break

                summary.processed_artifacts += 1
                try:
                    payload = decode_chunks_payload(artifact.content_json, artifact.id)
                except ArtifactPayloadException as e:
                    summary.invalid_artifacts += 1
                    logger.error(str(e))
                    continue

                if not payload.chunks:
                    continue

                existing = self._existing_chunk_indexes(artifact)
                summary.skipped_chunks += len(existing)

                missing = [chunk for chunk in payload.chunks if chunk.index not in existing]
                selected = missing[:cap - summary.embedded_chunks]
                if not selected:
                    continue

                summary.embedded_chunks += await self._embed_chunks(owner_id, artifact, selected)

            offset += ARTIFACT_PAGE_SIZE

        summary.done = summary.embedded_chunks < cap and reached_end
        logger.info(
            f"Embed run for owner {owner_id}: artifacts={summary.processed_artifacts} "
            f"embedded={summary.embedded_chunks} skipped={summary.skipped_chunks} "
            f"invalid={summary.invalid_artifacts} done={summary.done}"
        )
        return summary

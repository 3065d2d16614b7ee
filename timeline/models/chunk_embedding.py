"""Chunk embedding model for tracking embedded chunks"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index, UniqueConstraint
from datetime import datetime
import uuid
from timeline.database.base import Base

# Namespace for deterministic point ids shared with Qdrant
CHUNK_EMBEDDING_NAMESPACE = uuid.UUID("5b0f3c52-8d0a-4b7e-9a43-2f6f1d1c7e21")


def chunk_embedding_id(artifact_id: str, chunk_index: int, content_hash: str) -> str:
    """Stable id for one (artifact, chunk, hash) triple"""
    return str(uuid.uuid5(CHUNK_EMBEDDING_NAMESPACE, f"{artifact_id}:{chunk_index}:{content_hash}"))


class ChunkEmbedding(Base):
    """Embedded chunk; the vector lives in Qdrant under the same id"""

    __tablename__ = "chunk_embeddings"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    drive_file_ref_id = Column(String(36), ForeignKey("drive_file_refs.id", ondelete="CASCADE"), nullable=False, index=True)
    artifact_id = Column(String(36), ForeignKey("derived_artifacts.id", ondelete="CASCADE"), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    chunk_text = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)  # parent artifact hash
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('artifact_id', 'chunk_index', 'content_hash', name='uq_embedding_artifact_chunk_hash'),
        Index('idx_embedding_artifact_hash', 'artifact_id', 'content_hash'),
    )

    def __repr__(self):
        return f"<ChunkEmbedding(id={self.id}, artifact_id={self.artifact_id}, index={self.chunk_index})>"

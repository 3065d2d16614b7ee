"""Derived artifact model"""

from sqlalchemy import Column, String, Text, DateTime, Enum, ForeignKey, Index, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid
from timeline.database.base import Base


class ArtifactType(str, enum.Enum):
    """Kinds of payload derived from a file's text"""
    RAW_TEXT = "RAW_TEXT"
    CHUNKS_JSON = "CHUNKS_JSON"
    METADATA_JSON = "METADATA_JSON"


class DerivedArtifact(Base):
    """Content-addressed payload derived from one Drive file"""

    __tablename__ = "derived_artifacts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(64), nullable=False, index=True)
    drive_file_ref_id = Column(String(36), ForeignKey("drive_file_refs.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(ArtifactType), nullable=False)
    content_hash = Column(String(64), nullable=False)  # sha256 hex of the payload
    content_text = Column(Text, nullable=True)
    content_json = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    drive_file_ref = relationship("DriveFileRef", back_populates="artifacts")

    __table_args__ = (
        UniqueConstraint('drive_file_ref_id', 'type', 'content_hash', name='uq_artifact_file_type_hash'),
        Index('idx_owner_type', 'owner_id', 'type'),
    )

    def __repr__(self):
        return f"<DerivedArtifact(id={self.id}, type={self.type}, hash={self.content_hash[:12]})>"

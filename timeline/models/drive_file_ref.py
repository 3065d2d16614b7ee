"""Drive file reference model"""

from sqlalchemy import Column, String, Text, DateTime, BigInteger, Enum, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid
from timeline.database.base import Base


class FileStatus(str, enum.Enum):
    """Indexing status set by the listing stage"""
    NEW = "NEW"
    INDEXED = "INDEXED"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


class ContentStatus(str, enum.Enum):
    """Content status set by the ingestion stage"""
    PENDING = "PENDING"
    INGESTED = "INGESTED"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


class DriveFileRef(Base):
    """One indexed Google Drive file for one owner"""

    __tablename__ = "drive_file_refs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(64), nullable=False, index=True)
    drive_file_id = Column(String(255), nullable=False)
    name = Column(String(500), nullable=False, default="Untitled")
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    modified_time = Column(DateTime, nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    checksum = Column(String(64), nullable=True)  # md5Checksum from Drive

    status = Column(Enum(FileStatus), default=FileStatus.NEW, nullable=False)
    last_error = Column(Text, nullable=True)

    content_status = Column(Enum(ContentStatus), default=ContentStatus.PENDING, nullable=False)
    content_last_error = Column(Text, nullable=True)
    content_version = Column(String(64), nullable=True)  # modified time, else checksum
    ingested_at = Column(DateTime, nullable=True)
    # CHUNKS_JSON artifact from the latest successful ingestion
    current_chunks_artifact_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    artifacts = relationship("DerivedArtifact", back_populates="drive_file_ref", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('owner_id', 'drive_file_id', name='uq_drive_file_owner'),
        Index('idx_owner_content_status', 'owner_id', 'status', 'content_status', 'updated_at'),
    )

    @property
    def computed_content_version(self):
        """Version marker derived from modified time, falling back to checksum"""
        if self.modified_time is not None:
            return self.modified_time.isoformat()
        return self.checksum

    def __repr__(self):
        return f"<DriveFileRef(id={self.id}, name={self.name}, content_status={self.content_status})>"

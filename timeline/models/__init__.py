"""Database models package"""

from timeline.models.drive_file_ref import DriveFileRef, FileStatus, ContentStatus
from timeline.models.derived_artifact import DerivedArtifact, ArtifactType
from timeline.models.chunk_embedding import ChunkEmbedding, chunk_embedding_id
from timeline.models.index_state import IndexState
from timeline.models.usage_counter import UsageCounter
from timeline.models.drive_connection import DriveConnection
from timeline.models.chat import ChatThread, ChatMessage, MessageRole

__all__ = [
    "DriveFileRef",
    "FileStatus",
    "ContentStatus",
    "DerivedArtifact",
    "ArtifactType",
    "ChunkEmbedding",
    "chunk_embedding_id",
    "IndexState",
    "UsageCounter",
    "DriveConnection",
    "ChatThread",
    "ChatMessage",
    "MessageRole"
]

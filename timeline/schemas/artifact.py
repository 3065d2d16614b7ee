"""Artifact payload schemas

CHUNKS_JSON and METADATA_JSON payloads are stored as loosely typed JSON. Every
read goes through these models so a malformed payload is rejected at the
boundary instead of being trusted downstream.
"""

import hashlib
import json
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from timeline.exceptions import ArtifactPayloadException


class ChunkItem(BaseModel):
    """One sliding-window chunk of a file's raw text"""
    index: int = Field(ge=0)
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    text: str

    @model_validator(mode="after")
    def check_offsets(self):
        if self.end < self.start:
            raise ValueError("chunk end offset precedes start offset")
        return self


class SourceMetadata(BaseModel):
    """Drive file fields copied into every derived payload"""
    drive_file_id: str
    name: str
    mime_type: str
    modified_time: Optional[str] = None


class ChunksPayload(BaseModel):
    """CHUNKS_JSON payload"""
    chunks: List[ChunkItem]
    source: SourceMetadata


class MetadataPayload(BaseModel):
    """METADATA_JSON payload"""
    source: SourceMetadata
    size_bytes: Optional[int] = None
    checksum: Optional[str] = None
    content_version: Optional[str] = None


def canonical_json(payload: BaseModel) -> str:
    """Stable serialization used for content hashing"""
    return json.dumps(
        payload.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False
    )


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string"""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_payload(payload: BaseModel) -> str:
    return hash_text(canonical_json(payload))


def decode_chunks_payload(data: Any, artifact_id: Optional[str] = None) -> ChunksPayload:
    """
    Validate a stored CHUNKS_JSON payload

    Args:
        data: Raw JSON value from the artifact row
        artifact_id: Artifact id for error messages

    Returns:
        Parsed payload

    Raises:
        ArtifactPayloadException: If the payload does not match the schema
    """
    if data is None:
        raise ArtifactPayloadException(f"Artifact {artifact_id} has no chunk payload")
    try:
        return ChunksPayload.model_validate(data)
    except ValidationError as e:
        raise ArtifactPayloadException(
            f"Artifact {artifact_id} has a malformed chunk payload: {e.error_count()} validation errors"
        ) from e

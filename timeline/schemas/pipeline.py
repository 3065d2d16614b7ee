"""Pipeline run summaries"""

from pydantic import BaseModel
from typing import Optional


class IndexRunSummary(BaseModel):
    """Result of one listing (index) run"""
    processed: int = 0
    new_or_updated: int = 0
    bytes_listed: int = 0
    cursor: Optional[str] = None
    done: bool = False


class IngestRunSummary(BaseModel):
    """Result of one ingestion run"""
    processed: int = 0
    ingested: int = 0
    skipped: int = 0
    errored: int = 0
    bytes_processed: int = 0
    done: bool = False


class IngestRetryResponse(BaseModel):
    """Files moved from ERROR back to PENDING"""
    requeued: int


class EmbedRunRequest(BaseModel):
    """Embedding run options"""
    drive_file_ref_id: Optional[str] = None
    max_chunks: Optional[int] = None


class EmbedRunSummary(BaseModel):
    """Result of one embedding run"""
    processed_artifacts: int = 0
    embedded_chunks: int = 0
    skipped_chunks: int = 0
    invalid_artifacts: int = 0
    done: bool = False

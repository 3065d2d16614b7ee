"""Drive and file schemas"""

from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime

from timeline.models.drive_file_ref import FileStatus, ContentStatus
from timeline.models.derived_artifact import ArtifactType


class DriveConnectionRequest(BaseModel):
    """Access token issued by the OAuth layer"""
    access_token: str
    expires_at: Optional[datetime] = None
    account_email: Optional[str] = None


class DriveStatusResponse(BaseModel):
    """Connection and indexing progress for the current owner"""
    connected: bool
    account_email: Optional[str] = None
    last_index_run_at: Optional[datetime] = None
    index_done: bool = False
    last_index_stats: Optional[Dict[str, Any]] = None
    files_by_status: Dict[str, int] = {}
    files_by_content_status: Dict[str, int] = {}
    embedded_chunks: int = 0


class FileRefResponse(BaseModel):
    """Indexed Drive file"""
    id: str
    drive_file_id: str
    name: str
    mime_type: str
    modified_time: Optional[datetime] = None
    size_bytes: Optional[int] = None
    status: FileStatus
    last_error: Optional[str] = None
    content_status: ContentStatus
    content_last_error: Optional[str] = None
    ingested_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FileListResponse(BaseModel):
    """Paginated file list"""
    items: List[FileRefResponse]
    total: int
    page: int
    limit: int
    pages: int


class ArtifactResponse(BaseModel):
    """Derived artifact (payload preview only)"""
    id: str
    type: ArtifactType
    content_hash: str
    preview: Optional[str] = None
    chunk_count: Optional[int] = None
    is_current: bool = False
    created_at: datetime
    updated_at: datetime


class ArtifactListResponse(BaseModel):
    """Artifacts for one file"""
    file: FileRefResponse
    artifacts: List[ArtifactResponse]

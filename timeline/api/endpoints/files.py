"""File listing endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging

from timeline.database.session import get_db
from timeline.models.drive_file_ref import ContentStatus
from timeline.schemas.drive import ArtifactListResponse, FileListResponse
from timeline.security.auth import get_current_owner
from timeline.services.file_service import file_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/files", response_model=FileListResponse)
async def list_files(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    content_status: Optional[ContentStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_current_owner)
):
    """
    List indexed files with pagination and filters

    - **page**: Page number (1-indexed)
    - **limit**: Items per page (1-100)
    - **content_status**: PENDING, INGESTED, SKIPPED or ERROR
    - **search**: Substring of the file name
    """
    return file_service.list_files(
        db,
        owner_id,
        page=page,
        limit=limit,
        content_status=content_status,
        search=search
    )


@router.get("/files/{file_id}/artifacts", response_model=ArtifactListResponse)
async def list_artifacts(
    file_id: str,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_current_owner)
):
    return file_service.get_artifacts(db, owner_id, file_id)

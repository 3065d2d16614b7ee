"""Read-side queries over indexed files, artifacts and progress"""

from typing import Optional
import logging

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from timeline.exceptions import NotFoundException
from timeline.models.chunk_embedding import ChunkEmbedding
from timeline.models.derived_artifact import ArtifactType, DerivedArtifact
from timeline.models.drive_connection import DriveConnection
from timeline.models.drive_file_ref import ContentStatus, DriveFileRef
from timeline.models.index_state import IndexState
from timeline.schemas.drive import (
    ArtifactListResponse,
    ArtifactResponse,
    DriveStatusResponse,
    FileListResponse,
    FileRefResponse
)

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500


class FileService:
    """Owner-scoped file listing and status queries"""

    def list_files(
        self,
        db: Session,
        owner_id: str,
        page: int = 1,
        limit: int = 20,
        content_status: Optional[ContentStatus] = None,
        search: Optional[str] = None
    ) -> FileListResponse:
        """
        List file refs with pagination and filters

        Args:
            db: Database session
            owner_id: Owner id
            page: Page number (1-indexed)
            limit: Items per page
            content_status: Filter by content status
            search: Substring match on the file name

        Returns:
            Paginated file list, most recently updated first
        """
        query = db.query(DriveFileRef).filter(DriveFileRef.owner_id == owner_id)

        if content_status:
            query = query.filter(DriveFileRef.content_status == content_status)

        if search:
            query = query.filter(DriveFileRef.name.like(f"%{search}%"))

        total = query.count()
        pages = (total + limit - 1) // limit
        offset = (page - 1) * limit

        files = query.order_by(desc(DriveFileRef.updated_at), DriveFileRef.id).offset(offset).limit(limit).all()

        return FileListResponse(
            items=[FileRefResponse.model_validate(f) for f in files],
            total=total,
            page=page,
            limit=limit,
            pages=pages
        )

    def get_artifacts(self, db: Session, owner_id: str, file_ref_id: str) -> ArtifactListResponse:
        """
        Artifacts derived from one file, newest first

        Raises:
            NotFoundException: File does not exist for this owner
        """
        file_ref = db.query(DriveFileRef).filter(
            DriveFileRef.id == file_ref_id,
            DriveFileRef.owner_id == owner_id
        ).first()
        if file_ref is None:
            raise NotFoundException("File not found.")

        artifacts = db.query(DerivedArtifact).filter(
            DerivedArtifact.drive_file_ref_id == file_ref.id
        ).order_by(desc(DerivedArtifact.updated_at)).all()

        items = []
        for artifact in artifacts:
            preview = None
            chunk_count = None
            if artifact.type == ArtifactType.RAW_TEXT:
                preview = (artifact.content_text or "")[:PREVIEW_CHARS]
            elif artifact.type == ArtifactType.CHUNKS_JSON and isinstance(artifact.content_json, dict):
                chunks = artifact.content_json.get("chunks")
                chunk_count = len(chunks) if isinstance(chunks, list) else None

            items.append(ArtifactResponse(
                id=artifact.id,
                type=artifact.type,
                content_hash=artifact.content_hash,
                preview=preview,
                chunk_count=chunk_count,
                is_current=artifact.id == file_ref.current_chunks_artifact_id,
                created_at=artifact.created_at,
                updated_at=artifact.updated_at
            ))

        return ArtifactListResponse(file=FileRefResponse.model_validate(file_ref), artifacts=items)

    def drive_status(self, db: Session, owner_id: str) -> DriveStatusResponse:
        """Connection, index cursor and per-status counts"""
        connection = db.query(DriveConnection).filter(DriveConnection.owner_id == owner_id).first()
        state = db.query(IndexState).filter(IndexState.owner_id == owner_id).first()

        by_status = db.query(DriveFileRef.status, func.count(DriveFileRef.id)).filter(
            DriveFileRef.owner_id == owner_id
        ).group_by(DriveFileRef.status).all()
        by_content_status = db.query(DriveFileRef.content_status, func.count(DriveFileRef.id)).filter(
            DriveFileRef.owner_id == owner_id
        ).group_by(DriveFileRef.content_status).all()
        embedded = db.query(func.count(ChunkEmbedding.id)).filter(
            ChunkEmbedding.owner_id == owner_id
        ).scalar() or 0

        stats = state.stats_json if state and isinstance(state.stats_json, dict) else None

        return DriveStatusResponse(
            connected=connection is not None,
            account_email=connection.account_email if connection else None,
            last_index_run_at=state.last_run_at if state else None,
            index_done=bool(stats and stats.get("done")),
            last_index_stats=stats,
            files_by_status={status.value: count for status, count in by_status},
            files_by_content_status={status.value: count for status, count in by_content_status},
            embedded_chunks=embedded
        )


# Global file service instance
file_service = FileService()

"""Ingestion stage: text extraction, chunking and content-addressed artifacts"""

from datetime import datetime
from typing import Optional, Tuple
import logging

from sqlalchemy.orm import Session

from timeline.config import Settings
from timeline.drive.client import DriveClient, SkippedContent
from timeline.exceptions import DriveNotConnectedException
from timeline.models.derived_artifact import ArtifactType, DerivedArtifact
from timeline.models.drive_file_ref import ContentStatus, DriveFileRef, FileStatus
from timeline.rag.chunking import chunk_text
from timeline.schemas.artifact import (
    ChunkItem,
    ChunksPayload,
    MetadataPayload,
    SourceMetadata,
    hash_payload,
    hash_text
)
from timeline.schemas.pipeline import IngestRunSummary
from timeline.services.usage import require_owner

logger = logging.getLogger(__name__)

INGESTABLE_FILE_STATUSES = (FileStatus.NEW, FileStatus.INDEXED)


def build_source_metadata(file_ref: DriveFileRef) -> SourceMetadata:
    return SourceMetadata(
        drive_file_id=file_ref.drive_file_id,
        name=file_ref.name,
        mime_type=file_ref.mime_type,
        modified_time=file_ref.modified_time.isoformat() if file_ref.modified_time else None
    )


class IngestionPipeline:
    """Turns PENDING file refs into RAW_TEXT, CHUNKS_JSON and METADATA_JSON artifacts"""

    def __init__(self, db: Session, drive_client: DriveClient, settings: Settings):
        self.db = db
        self.drive = drive_client
        self.max_files = settings.INGEST_MAX_FILES_PER_RUN
        self.max_bytes = settings.INGEST_MAX_BYTES_PER_RUN
        self.chunk_max_chars = settings.CHUNK_MAX_CHARS
        self.chunk_overlap_chars = settings.CHUNK_OVERLAP_CHARS

    def _pending_query(self, owner_id: str):
        return self.db.query(DriveFileRef).filter(
            DriveFileRef.owner_id == owner_id,
            DriveFileRef.status.in_(INGESTABLE_FILE_STATUSES),
            DriveFileRef.content_status == ContentStatus.PENDING
        )

    def _upsert_artifact(
        self,
        file_ref: DriveFileRef,
        artifact_type: ArtifactType,
        content_hash: str,
        content_text: Optional[str] = None,
        content_json: Optional[dict] = None
    ) -> DerivedArtifact:
        """Insert a new artifact, or touch the existing one with the same hash"""
        artifact = self.db.query(DerivedArtifact).filter(
            DerivedArtifact.drive_file_ref_id == file_ref.id,
            DerivedArtifact.type == artifact_type,
            DerivedArtifact.content_hash == content_hash
        ).first()

        if artifact is None:
            artifact = DerivedArtifact(
                owner_id=file_ref.owner_id,
                drive_file_ref_id=file_ref.id,
                type=artifact_type,
                content_hash=content_hash,
                content_text=content_text,
                content_json=content_json
            )
            self.db.add(artifact)
            self.db.flush()
        else:
            artifact.updated_at = datetime.utcnow()

        return artifact

    async def _ingest_file(self, owner_id: str, file_ref: DriveFileRef) -> Tuple[str, int]:
        """
        Ingest one file in a single transaction

        Returns:
            Outcome ("ingested" or "skipped") and downloaded byte count
        """
        result = await self.drive.fetch_text(owner_id, file_ref.drive_file_id, file_ref.mime_type)
        content_version = file_ref.computed_content_version

        if isinstance(result, SkippedContent):
            file_ref.content_status = ContentStatus.SKIPPED
            file_ref.content_last_error = result.reason
            file_ref.content_version = content_version
            self.db.commit()
            logger.info(f"Skipped {file_ref.name} ({file_ref.id}): {result.reason}")
            return "skipped", 0

        raw_text = result.text
        source = build_source_metadata(file_ref)
        chunks = chunk_text(raw_text, self.chunk_max_chars, self.chunk_overlap_chars)

        chunks_payload = ChunksPayload(
            chunks=[ChunkItem(**chunk.to_dict()) for chunk in chunks],
            source=source
        )
        metadata_payload = MetadataPayload(
            source=source,
            size_bytes=file_ref.size_bytes,
            checksum=file_ref.checksum,
            content_version=content_version
        )

        self._upsert_artifact(file_ref, ArtifactType.RAW_TEXT, hash_text(raw_text), content_text=raw_text)
        chunks_artifact = self._upsert_artifact(
            file_ref,
            ArtifactType.CHUNKS_JSON,
            hash_payload(chunks_payload),
            content_json=chunks_payload.model_dump(mode="json")
        )
        self._upsert_artifact(
            file_ref,
            ArtifactType.METADATA_JSON,
            hash_payload(metadata_payload),
            content_json=metadata_payload.model_dump(mode="json")
        )

        file_ref.content_status = ContentStatus.INGESTED
        file_ref.content_last_error = None
        file_ref.content_version = content_version
        file_ref.ingested_at = datetime.utcnow()
        file_ref.current_chunks_artifact_id = chunks_artifact.id
        self.db.commit()

        logger.info(f"Ingested {file_ref.name} ({file_ref.id}): {len(chunks)} chunks, {result.byte_length} bytes")
        return "ingested", result.byte_length

    def _mark_error(self, file_ref_id: str, message: str):
        file_ref = self.db.query(DriveFileRef).filter(DriveFileRef.id == file_ref_id).first()
        if file_ref is None:
            return
        file_ref.content_status = ContentStatus.ERROR
        file_ref.content_last_error = message[:2000]
        self.db.commit()

    async def run(self, owner_id: str) -> IngestRunSummary:
        """
        Ingest the oldest PENDING files within the run's file and byte budgets

        Args:
            owner_id: Owner id

        Returns:
            Run summary; done is True when no PENDING candidates remain
        """
        require_owner(owner_id)
        candidates = self._pending_query(owner_id).order_by(
            DriveFileRef.updated_at.asc(),
            DriveFileRef.id.asc()
        ).limit(self.max_files).all()

        summary = IngestRunSummary()

        for file_ref in candidates:
            if summary.processed >= self.max_files:
                break
            # Known size is checked before downloading; the first file is always admitted
            if (
                file_ref.size_bytes
                and summary.processed > 0
                and summary.bytes_processed + file_ref.size_bytes > self.max_bytes
            ):
                logger.info(f"Ingest byte budget reached before {file_ref.id}")
                break

            summary.processed += 1
            file_ref_id = file_ref.id
            try:
                outcome, byte_length = await self._ingest_file(owner_id, file_ref)
            except DriveNotConnectedException:
                self.db.rollback()
                raise
            except Exception as e:
                self.db.rollback()
                summary.errored += 1
                logger.error(f"Ingestion failed for file ref {file_ref_id}: {e}")
                self._mark_error(file_ref_id, str(e) or e.__class__.__name__)
                continue

            if outcome == "skipped":
                summary.skipped += 1
            else:
                summary.ingested += 1
                summary.bytes_processed += byte_length

            # Google-native exports have no recorded size; stop once actual bytes fill the budget
            if summary.bytes_processed >= self.max_bytes:
                logger.info(f"Ingest byte budget exhausted after {summary.bytes_processed} bytes")
                break

        summary.done = self._pending_query(owner_id).count() == 0
        logger.info(
            f"Ingest run for owner {owner_id}: processed={summary.processed} ingested={summary.ingested} "
            f"skipped={summary.skipped} errored={summary.errored} bytes={summary.bytes_processed} done={summary.done}"
        )
        return summary

    def retry_errored(self, owner_id: str) -> int:
        """Move ERROR files back to PENDING so the next run retries them"""
        require_owner(owner_id)
        requeued = self.db.query(DriveFileRef).filter(
            DriveFileRef.owner_id == owner_id,
            DriveFileRef.content_status == ContentStatus.ERROR
        ).update(
            {
                DriveFileRef.content_status: ContentStatus.PENDING,
                DriveFileRef.content_last_error: None,
                DriveFileRef.updated_at: datetime.utcnow()
            },
            synchronize_session=False
        )
        self.db.commit()
        logger.info(f"Re-queued {requeued} errored files for owner {owner_id}")
        return requeued

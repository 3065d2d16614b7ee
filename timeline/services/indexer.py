"""Drive listing stage: file refs and the resumable index cursor"""

from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from timeline.config import Settings
from timeline.drive.client import DriveClient, DriveFile, is_supported_mime_type, unsupported_reason
from timeline.models.drive_file_ref import ContentStatus, DriveFileRef, FileStatus
from timeline.models.index_state import IndexState
from timeline.schemas.pipeline import IndexRunSummary
from timeline.services.usage import require_owner

logger = logging.getLogger(__name__)

# Content statuses that re-enter PENDING when the remote content changes
RESETTABLE_CONTENT_STATUSES = {ContentStatus.INGESTED, ContentStatus.SKIPPED, ContentStatus.ERROR}


class Indexer:
    """Walks the owner's Drive listing one bounded page-slice per run"""

    def __init__(self, db: Session, drive_client: DriveClient, settings: Settings):
        self.db = db
        self.drive = drive_client
        self.max_files = max(1, settings.INDEX_MAX_FILES_PER_RUN)
        self.max_bytes = settings.INDEX_MAX_BYTES_PER_RUN
        self.page_size = max(1, min(settings.GOOGLE_DRIVE_PAGE_SIZE, self.max_files))

    def _get_state(self, owner_id: str) -> Optional[IndexState]:
        return self.db.query(IndexState).filter(IndexState.owner_id == owner_id).first()

    def _select_files(self, files: List[DriveFile], start_index: int):
        """Take files in order until the file or listed-size cap is hit"""
        selected = []
        bytes_listed = 0
        for drive_file in files[start_index:]:
            if len(selected) >= self.max_files:
                break
            if drive_file.size_bytes:
                # A single oversized file is still admitted so the cursor can move
                if selected and bytes_listed + drive_file.size_bytes > self.max_bytes:
                    break
                bytes_listed += drive_file.size_bytes
            selected.append(drive_file)
        return selected, bytes_listed

    def _apply(self, owner_id: str, drive_file: DriveFile, existing: Optional[DriveFileRef]):
        ref = existing
        if ref is None:
            ref = DriveFileRef(owner_id=owner_id, drive_file_id=drive_file.id)
            self.db.add(ref)

        ref.name = drive_file.name
        ref.mime_type = drive_file.mime_type
        ref.modified_time = drive_file.modified_time
        ref.size_bytes = drive_file.size_bytes
        ref.checksum = drive_file.checksum

        if not is_supported_mime_type(drive_file.mime_type):
            reason = unsupported_reason(drive_file.mime_type)
            ref.status = FileStatus.SKIPPED
            ref.last_error = reason
            ref.content_status = ContentStatus.SKIPPED
            ref.content_last_error = reason
            return

        if existing is None:
            ref.status = FileStatus.NEW
            ref.last_error = None
            ref.content_status = ContentStatus.PENDING
            ref.content_last_error = None
            return

        if (
            existing.content_status in RESETTABLE_CONTENT_STATUSES
            and existing.content_version is not None
            and drive_file.content_version != existing.content_version
        ):
            logger.info(f"Drive file {drive_file.id} changed, re-queueing for ingestion")
            ref.content_status = ContentStatus.PENDING
            ref.content_last_error = None

    async def run(self, owner_id: str) -> IndexRunSummary:
        """
        Index the next slice of the owner's Drive listing

        Args:
            owner_id: Owner id

        Returns:
            Run summary; done is True once the last page has been fully consumed
        """
        require_owner(owner_id)
        state = self._get_state(owner_id)
        previous_cursor = state.cursor if state else None

        listing = await self.drive.list_files(owner_id, previous_cursor, self.page_size)
        files = listing.files

        start_index = 0
        if state and state.last_file_id:
            positions = [i for i, f in enumerate(files) if f.id == state.last_file_id]
            start_index = positions[0] + 1 if positions else 0

        selected, bytes_listed = self._select_files(files, start_index)

        existing_by_id: Dict[str, DriveFileRef] = {}
        if selected:
            rows = self.db.query(DriveFileRef).filter(
                DriveFileRef.owner_id == owner_id,
                DriveFileRef.drive_file_id.in_([f.id for f in selected])
            ).all()
            existing_by_id = {row.drive_file_id: row for row in rows}

        processed = len(selected)
        finished_page = start_index + processed >= len(files)
        cursor = listing.next_page_token if finished_page else previous_cursor
        done = finished_page and not listing.next_page_token
        # At least one file is selected whenever the page has files left
        last_file_id = None if finished_page else selected[-1].id

        try:
            for drive_file in selected:
                self._apply(owner_id, drive_file, existing_by_id.get(drive_file.id))

            if state is None:
                state = IndexState(owner_id=owner_id)
                self.db.add(state)
            state.cursor = cursor
            state.last_file_id = last_file_id
            state.last_run_at = datetime.utcnow()
            state.stats_json = {
                "processed": processed,
                "new_or_updated": processed,
                "bytes_processed": bytes_listed,
                "done": done,
            }
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Index run for owner {owner_id}: processed={processed} bytes={bytes_listed} "
            f"finished_page={finished_page} done={done}"
        )
        return IndexRunSummary(
            processed=processed,
            new_or_updated=processed,
            bytes_listed=bytes_listed,
            cursor=cursor,
            done=done
        )

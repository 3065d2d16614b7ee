"""Drive connection and status endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from timeline.database.session import get_db
from timeline.drive.credentials import upsert_connection
from timeline.schemas.drive import DriveConnectionRequest, DriveStatusResponse
from timeline.security.auth import get_current_owner
from timeline.services.file_service import file_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.put("/drive/connection", response_model=DriveStatusResponse)
async def put_drive_connection(
    body: DriveConnectionRequest,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_current_owner)
):
    """Store the Drive access token obtained by the OAuth layer"""
    upsert_connection(
        db,
        owner_id,
        access_token=body.access_token,
        expires_at=body.expires_at,
        account_email=body.account_email
    )
    return file_service.drive_status(db, owner_id)


@router.get("/drive/status", response_model=DriveStatusResponse)
async def get_drive_status(
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_current_owner)
):
    return file_service.drive_status(db, owner_id)

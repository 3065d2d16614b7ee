"""Drive access token lookup"""

from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy.orm import Session

from timeline.exceptions import DriveNotConnectedException
from timeline.models.drive_connection import DriveConnection

logger = logging.getLogger(__name__)


class DriveConnectionTokenProvider:
    """Reads the owner's access token written by the OAuth layer"""

    def __init__(self, db: Session):
        self.db = db

    async def __call__(self, owner_id: str) -> Optional[str]:
        connection = self.db.query(DriveConnection).filter(
            DriveConnection.owner_id == owner_id
        ).first()

        if connection is None or not connection.access_token:
            return None

        if connection.expires_at is not None and connection.expires_at <= datetime.utcnow():
            logger.warning(f"Drive access token for owner {owner_id} expired at {connection.expires_at}")
            raise DriveNotConnectedException("Google Drive access token expired.")

        return connection.access_token


def upsert_connection(
    db: Session,
    owner_id: str,
    access_token: str,
    expires_at: Optional[datetime] = None,
    account_email: Optional[str] = None
) -> DriveConnection:
    """Store or replace the owner's Drive connection"""
    connection = db.query(DriveConnection).filter(DriveConnection.owner_id == owner_id).first()
    if connection is None:
        connection = DriveConnection(owner_id=owner_id, access_token=access_token)
        db.add(connection)

    if expires_at is not None and expires_at.tzinfo is not None:
        expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)

    connection.access_token = access_token
    connection.expires_at = expires_at
    connection.account_email = account_email
    db.commit()
    db.refresh(connection)

    logger.info(f"Drive connection stored for owner {owner_id}")
    return connection

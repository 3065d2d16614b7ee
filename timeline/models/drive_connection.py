"""Drive connection model"""

from sqlalchemy import Column, Integer, String, Text, DateTime
from datetime import datetime
from timeline.database.base import Base


class DriveConnection(Base):
    """Google Drive access token handed over by the OAuth layer"""

    __tablename__ = "drive_connections"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), unique=True, nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    account_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<DriveConnection(owner_id={self.owner_id}, email={self.account_email})>"

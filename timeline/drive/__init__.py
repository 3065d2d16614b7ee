"""Google Drive adapter"""

from timeline.drive.client import (
    DriveClient,
    DriveFile,
    DriveFileListing,
    ExtractedText,
    SkippedContent,
    is_supported_mime_type
)
from timeline.drive.credentials import DriveConnectionTokenProvider

__all__ = [
    'DriveClient',
    'DriveFile',
    'DriveFileListing',
    'ExtractedText',
    'SkippedContent',
    'is_supported_mime_type',
    'DriveConnectionTokenProvider'
]

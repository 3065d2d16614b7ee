"""Google Drive v3 REST client"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import asyncio
import logging
import time

import httpx

from timeline.drive import extractors
from timeline.exceptions import DriveNotConnectedException, ExternalAPIException

logger = logging.getLogger(__name__)

GOOGLE_DOC = "application/vnd.google-apps.document"
GOOGLE_SHEET = "application/vnd.google-apps.spreadsheet"
GOOGLE_SLIDES = "application/vnd.google-apps.presentation"
PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Google-native files are exported, everything else is downloaded as-is
EXPORT_MIME_TYPES = {
    GOOGLE_DOC: "text/plain",
    GOOGLE_SHEET: "text/csv",
    GOOGLE_SLIDES: "text/plain",
}
DOWNLOAD_MIME_TYPES = {PDF, DOCX, "text/plain", "text/markdown", "text/csv"}

DRIVE_FIELDS = "nextPageToken,files(id,name,mimeType,modifiedTime,size,md5Checksum)"

NO_TEXT_LAYER_REASON = "PDF has no extractable text layer."


def is_supported_mime_type(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    return mime_type in EXPORT_MIME_TYPES or mime_type in DOWNLOAD_MIME_TYPES


def unsupported_reason(mime_type: Optional[str]) -> str:
    return f"Unsupported mime type: {mime_type}"


def parse_drive_time(value: Optional[str]) -> Optional[datetime]:
    """RFC 3339 timestamp from Drive as naive UTC"""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass
class DriveFile:
    """One entry of a Drive file listing"""
    id: str
    name: str
    mime_type: str
    modified_time: Optional[datetime] = None
    size_bytes: Optional[int] = None
    checksum: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DriveFile":
        size = data.get("size")
        return cls(
            id=data["id"],
            name=data.get("name") or "Untitled",
            mime_type=data.get("mimeType") or "application/octet-stream",
            modified_time=parse_drive_time(data.get("modifiedTime")),
            size_bytes=int(size) if size is not None else None,
            checksum=data.get("md5Checksum")
        )

    @property
    def content_version(self) -> Optional[str]:
        """Modified time, falling back to checksum"""
        if self.modified_time is not None:
            return self.modified_time.isoformat()
        return self.checksum


@dataclass
class DriveFileListing:
    files: List[DriveFile] = field(default_factory=list)
    next_page_token: Optional[str] = None


@dataclass
class ExtractedText:
    text: str
    byte_length: int
    status: str = "ok"


@dataclass
class SkippedContent:
    reason: str
    status: str = "skipped"


FetchResult = Union[ExtractedText, SkippedContent]
TokenProvider = Callable[[str], Awaitable[Optional[str]]]


class DriveClient:
    """Lists Drive files and extracts their text"""

    def __init__(
        self,
        token_provider: TokenProvider,
        http_client: httpx.AsyncClient,
        base_url: str = "https://www.googleapis.com/drive/v3",
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.token_provider = token_provider
        self.http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.max_retries = max(0, max_retries)
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    async def _headers(self, owner_id: str) -> Dict[str, str]:
        access_token = await self.token_provider(owner_id)
        if not access_token:
            raise DriveNotConnectedException()
        return {"Authorization": f"Bearer {access_token}"}

    async def _get(self, owner_id: str, path: str, params: Dict[str, str], operation: str) -> httpx.Response:
        """GET with bounded exponential backoff on 429, 5xx and transport errors"""
        headers = await self._headers(owner_id)
        url = f"{self.base_url}{path}"
        attempt = 0

        while True:
            started = time.perf_counter()
            try:
                response = await self.http_client.get(url, params=params, headers=headers)
            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    await self._backoff(operation, attempt, str(e))
                    attempt += 1
                    continue
                logger.error(f"Drive {operation} failed: {e}")
                raise ExternalAPIException(f"Google Drive {operation} failed: {e}") from e

            status = response.status_code
            if status == 429 or status >= 500:
                if attempt < self.max_retries:
                    await self._backoff(operation, attempt, f"status {status}")
                    attempt += 1
                    continue
            if status >= 400:
                logger.error(f"Drive {operation} failed with status {status}: {response.text[:200]}")
                raise ExternalAPIException(f"Google Drive {operation} failed ({status}).", status=status)

            logger.info(f"Drive {operation} took {(time.perf_counter() - started) * 1000:.0f}ms")
            return response

    async def _backoff(self, operation: str, attempt: int, cause: str):
        delay = self.retry_base_delay * (2 ** attempt)
        logger.warning(
            f"Drive {operation} {cause}, retrying in {delay:.2f}s (attempt {attempt + 1}/{self.max_retries})"
        )
        await self.sleep(delay)

    async def list_files(self, owner_id: str, page_token: Optional[str], page_size: int) -> DriveFileListing:
        """
        List one page of the owner's non-trashed files

        Args:
            owner_id: Owner whose connection is used
            page_token: Cursor from the previous page (None for the first page)
            page_size: Files per page

        Returns:
            Files in listing order and the next page token
        """
        params = {
            "pageSize": str(page_size),
            "fields": DRIVE_FIELDS,
            "q": "trashed = false",
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if page_token:
            params["pageToken"] = page_token

        response = await self._get(owner_id, "/files", params, "list")
        data = response.json()
        files = [DriveFile.from_api(item) for item in data.get("files") or []]
        return DriveFileListing(files=files, next_page_token=data.get("nextPageToken") or None)

    async def fetch_text(self, owner_id: str, file_id: str, mime_type: str) -> FetchResult:
        """
        Extract plain text from a file

        Args:
            owner_id: Owner whose connection is used
            file_id: Drive file id
            mime_type: Drive mime type of the file

        Returns:
            ExtractedText with the downloaded byte length, or SkippedContent with a reason
        """
        if not is_supported_mime_type(mime_type):
            return SkippedContent(reason=unsupported_reason(mime_type))

        if mime_type in EXPORT_MIME_TYPES:
            response = await self._get(
                owner_id,
                f"/files/{file_id}/export",
                {"mimeType": EXPORT_MIME_TYPES[mime_type], "supportsAllDrives": "true"},
                "export"
            )
            data = response.content
            return ExtractedText(text=extractors.read_text(data), byte_length=len(data))

        response = await self._get(
            owner_id,
            f"/files/{file_id}",
            {"alt": "media", "supportsAllDrives": "true"},
            "download"
        )
        data = response.content

        if mime_type == PDF:
            text = extractors.read_pdf(data)
            if not text.strip():
                return SkippedContent(reason=NO_TEXT_LAYER_REASON)
        elif mime_type == DOCX:
            text = extractors.read_docx(data)
        else:
            text = extractors.read_text(data)

        return ExtractedText(text=text, byte_length=len(data))

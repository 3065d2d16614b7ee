"""Custom exception classes"""

from typing import Any, Dict, Optional


class TimelineException(Exception):
    """Base exception carrying a stable error code for API consumers"""

    code = "internal_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_response_body(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            **self.details
        }


class AuthException(TimelineException):
    """Missing or invalid principal"""
    code = "auth_required"
    status_code = 401

    def __init__(self, message: str = "Unauthorized."):
        super().__init__(message)


class NotFoundException(TimelineException):
    """Requested row does not exist for this owner"""
    code = "not_found"
    status_code = 404

    def __init__(self, message: str = "Not found."):
        super().__init__(message)


class ValidationException(TimelineException):
    """Invalid request input"""
    code = "validation_error"
    status_code = 400

    def __init__(self, message: str = "Invalid request."):
        super().__init__(message)


class QuotaExceededException(TimelineException):
    """Daily usage quota exhausted"""
    code = "quota_exceeded"
    status_code = 429

    def __init__(self, limit: int, remaining: int, kind: Optional[str] = None):
        details = {"limit": limit, "remaining": remaining}
        if kind:
            details["kind"] = kind
        super().__init__("Quota exceeded.", details=details)
        self.limit = limit
        self.remaining = remaining
        self.kind = kind


class ExternalAPIException(TimelineException):
    """External API errors (Google Drive, OpenAI)"""
    code = "external_api_error"
    status_code = 502

    def __init__(self, message: str = "External API error.", status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = status


class DriveNotConnectedException(TimelineException):
    """Owner has no usable Google Drive connection"""
    code = "drive_not_connected"
    status_code = 409

    def __init__(self, message: str = "Missing Google Drive connection."):
        super().__init__(message)


class FeatureDisabledException(TimelineException):
    """Feature switched off by configuration"""
    code = "feature_disabled"
    status_code = 503

    def __init__(self, feature: str):
        super().__init__(f'Feature "{feature}" is disabled.', details={"feature": feature})
        self.feature = feature


class DataIntegrityException(TimelineException):
    """Internal consistency violation (e.g. misaligned embedding batch)"""
    code = "data_integrity_error"
    status_code = 500


class ArtifactPayloadException(TimelineException):
    """Stored artifact payload does not match its schema"""
    code = "invalid_artifact_payload"
    status_code = 500

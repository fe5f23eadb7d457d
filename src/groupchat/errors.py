"""
groupchat error types.
"""

from typing import Any, Optional


class GroupChatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class Unauthorized(GroupChatError):
    """No active session where one is required."""

    def __init__(self, message: str = "Not authenticated", code: str = "unauthorized"):
        super().__init__(code, message)


class ValidationError(GroupChatError):
    """Rejected locally before any network call (or by a uniqueness check)."""

    def __init__(self, message: str, code: str = "validation_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class StoreUnavailable(GroupChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("store_unavailable", message, details)


class UploadFailed(GroupChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("upload_failed", message, details)


class ConnectionError(GroupChatError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)

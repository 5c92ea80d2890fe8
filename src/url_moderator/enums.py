"""
Enumeration types for the URL moderator.

String-valued enums: the values are what gets written to the document store
and into error codes.
"""

from enum import Enum


class UrlStatus(Enum):
    """Moderation status of a submitted URL."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class StoreErrorCode(Enum):
    """Error codes for document store operations."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    PARSE_ERROR = "parse_error"
    INVALID_ARGUMENT = "invalid_argument"


class UploadErrorCode(Enum):
    """Error codes for image upload operations."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    PARSE_ERROR = "parse_error"
    MISSING_URL = "missing_url"

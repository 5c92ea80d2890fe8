"""
URL Moderator - moderation console for submitted URLs.

This package keeps a moderation queue of submitted URLs in a remote document
store: approval and rejection with annotated reasons (optionally with
uploaded screenshots), a persisted display order of hostnames, per-URL visit
analytics and a user colour theme.
"""

__version__ = "0.1.0"
__author__ = "URL Moderator Team"

from url_moderator.exceptions import (
    UrlModeratorError,
    RemoteUnavailableError,
    NotFoundError,
    ValidationError,
    PartialUploadError,
    ConfigurationError,
)
from url_moderator.enums import (
    UrlStatus,
    LogLevel,
    StoreErrorCode,
    UploadErrorCode,
)
from url_moderator.config import (
    FirestoreConfig,
    CloudinaryConfig,
    RetryConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
)
from url_moderator.models import (
    ErrorEntry,
    VisitorInfo,
    VisitEntry,
    UrlRecord,
    DomainOrder,
    ImageFile,
    TextOnly,
    WithImageUrl,
    WithRawImage,
    ErrorInput,
    Theme,
    AuthUser,
)
from url_moderator.hostnames import (
    extract_hostname,
    normalize_hostname,
    unique_hostnames,
)
from url_moderator.document_store import (
    DocumentStore,
    MemoryDocumentStore,
    StoredDocument,
)
from url_moderator.firestore_client import FirestoreClient
from url_moderator.image_uploader import (
    ImageUploader,
    CloudinaryUploader,
    UploadBatchResult,
    display_image_url,
)
from url_moderator.retry_manager import (
    RetryManager,
    RetryResult,
)
from url_moderator.audit_logger import (
    AuditLogger,
    LogEntry,
)
from url_moderator.i18n import (
    get_message,
    get_missing_translations,
    validate_translations,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from url_moderator.cache import ModerationCache
from url_moderator.domain_order import DomainOrderManager
from url_moderator.url_records import UrlRecordManager
from url_moderator.visits import VisitRecorder
from url_moderator.annotation import (
    ErrorAnnotationSession,
    error_input_from_payload,
)
from url_moderator.auth import AuthSession
from url_moderator.theme import ThemeStore
from url_moderator.console import ModerationConsole
from url_moderator.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "UrlModeratorError",
    "RemoteUnavailableError",
    "NotFoundError",
    "ValidationError",
    "PartialUploadError",
    "ConfigurationError",
    # Enums
    "UrlStatus",
    "LogLevel",
    "StoreErrorCode",
    "UploadErrorCode",
    # Configuration
    "FirestoreConfig",
    "CloudinaryConfig",
    "RetryConfig",
    "LoggingConfig",
    "SystemConfig",
    "load_config_from_env",
    # Models
    "ErrorEntry",
    "VisitorInfo",
    "VisitEntry",
    "UrlRecord",
    "DomainOrder",
    "ImageFile",
    "TextOnly",
    "WithImageUrl",
    "WithRawImage",
    "ErrorInput",
    "Theme",
    "AuthUser",
    # Hostnames
    "extract_hostname",
    "normalize_hostname",
    "unique_hostnames",
    # Document store
    "DocumentStore",
    "MemoryDocumentStore",
    "StoredDocument",
    "FirestoreClient",
    # Image upload
    "ImageUploader",
    "CloudinaryUploader",
    "UploadBatchResult",
    "display_image_url",
    # Retry Manager
    "RetryManager",
    "RetryResult",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # I18n
    "get_message",
    "get_missing_translations",
    "validate_translations",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Moderation core
    "ModerationCache",
    "DomainOrderManager",
    "UrlRecordManager",
    "VisitRecorder",
    "ErrorAnnotationSession",
    "error_input_from_payload",
    # Theme and auth
    "AuthSession",
    "ThemeStore",
    # Console and CLI
    "ModerationConsole",
    "cli_main",
    "create_parser",
]

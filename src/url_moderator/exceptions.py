"""
Exception classes for the URL moderator.

All exceptions inherit from UrlModeratorError and carry a machine-readable
code, a human-readable message and optional details. Collaborators (document
store, image uploader) raise them; the moderation managers catch them at
their boundary and report failure through return values.
"""

from typing import Optional


class UrlModeratorError(Exception):
    """Base exception for all URL moderator errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class RemoteUnavailableError(UrlModeratorError):
    """Raised when a call to the document store or image host fails."""

    pass


class NotFoundError(UrlModeratorError):
    """Raised when a referenced document is absent at operation time."""

    pass


class ValidationError(UrlModeratorError):
    """Raised when a value cannot be stored."""

    pass


class PartialUploadError(UrlModeratorError):
    """Raised when one or more image uploads of a batch failed."""

    pass


class ConfigurationError(UrlModeratorError):
    """Raised when the environment does not provide a usable configuration."""

    pass

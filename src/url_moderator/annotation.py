"""
Error Annotation Session.

Collects the rejection reasons for one URL before they are sent. Reasons
are staged one at a time (uploading their screenshot if needed) and
committed together as a single rejection.
"""

from datetime import datetime
from typing import Callable, Optional, Union

from .audit_logger import AuditLogger
from .cache import ModerationCache
from .enums import LogLevel
from .exceptions import UrlModeratorError
from .image_uploader import ImageUploader, display_image_url
from .models import (
    ErrorEntry,
    ErrorInput,
    ImageFile,
    TextOnly,
    UrlRecord,
    WithImageUrl,
    WithRawImage,
)
from .url_records import UrlRecordManager, utc_now


def error_input_from_payload(payload: Union[str, dict, None]) -> Optional[ErrorInput]:
    """
    Turn a raw form payload into a tagged error input.

    Accepts a plain string or a mapping with ``text`` and optionally
    ``imageUrl``, ``image`` (an ImageFile) and ``imagePreview``.

    Returns:
        The matching variant, or None when there is no usable text
    """
    if isinstance(payload, str):
        return TextOnly(text=payload) if payload.strip() else None

    if not isinstance(payload, dict):
        return None

    text = payload.get("text")
    if not isinstance(text, str) or not text.strip():
        return None

    preview = payload.get("imagePreview")
    if payload.get("imageUrl"):
        return WithImageUrl(text=text, image_url=payload["imageUrl"], image_preview=preview)
    if isinstance(payload.get("image"), ImageFile):
        return WithRawImage(text=text, image=payload["image"], image_preview=preview)
    return TextOnly(text=text)


class ErrorAnnotationSession:
    """In-memory batch of rejection reasons for a single URL record."""

    def __init__(
        self,
        records: UrlRecordManager,
        uploader: ImageUploader,
        cache: ModerationCache,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._records = records
        self._uploader = uploader
        self._cache = cache
        self._logger = logger
        self._clock = clock
        self._target_id: Optional[str] = None
        self._staged: list[ErrorEntry] = []

    @property
    def target_id(self) -> Optional[str]:
        return self._target_id

    @property
    def is_open(self) -> bool:
        return self._target_id is not None

    @property
    def staged(self) -> list[ErrorEntry]:
        return list(self._staged)

    @property
    def current_record(self) -> Optional[UrlRecord]:
        """Cached record the session is annotating."""
        return self._cache.find(self._target_id)

    def open(self, record_id: str) -> None:
        self._target_id = record_id
        self._staged = []

    def close(self) -> None:
        """Discard the target and every staged reason without sending."""
        self._target_id = None
        self._staged = []

    async def stage(self, error_input: ErrorInput) -> bool:
        """
        Stage one rejection reason.

        - WithImageUrl: staged as given.
        - WithRawImage: the image is uploaded first; if the upload yields
          no URL the reason is still staged, with no image URL and the
          preview kept as fallback.
        - TextOnly: staged without image.

        Returns:
            False when the text is empty or whitespace (nothing staged)
        """
        text = error_input.text.strip() if isinstance(error_input.text, str) else ""
        if not text:
            return False

        if isinstance(error_input, WithImageUrl):
            entry = ErrorEntry(
                text=text,
                image_url=error_input.image_url,
                image_preview=error_input.image_preview,
                timestamp=self._clock(),
            )
        elif isinstance(error_input, WithRawImage):
            entry = ErrorEntry(
                text=text,
                image_url=await self._upload(error_input.image),
                image_preview=error_input.image_preview,
                timestamp=self._clock(),
            )
        else:
            entry = ErrorEntry(text=text, image_url=None, timestamp=self._clock())

        self._staged.append(entry)
        return True

    def unstage(self, index: int) -> bool:
        """Remove a staged reason by position; out-of-range is a no-op."""
        if 0 <= index < len(self._staged):
            del self._staged[index]
            return True
        return False

    async def commit(self) -> bool:
        """
        Send every staged reason as one rejection.

        On success the records are reloaded and the session closes; on
        failure the session stays open with its reasons for a retry.
        """
        if self._target_id is None:
            self._cache.set_error("annotation.no_target")
            return False
        if not self._staged:
            self._cache.set_error("annotation.nothing_staged")
            return False

        target_id = self._target_id
        if not await self._records.reject(target_id, list(self._staged)):
            return False

        if self._logger:
            self._logger.log(
                LogLevel.INFO,
                "ErrorAnnotationSession",
                "Error messages submitted",
                {"id": target_id, "count": len(self._staged)},
            )

        await self._records.fetch_all()
        self.close()
        return True

    @staticmethod
    def display_image_url(entry: ErrorEntry) -> Optional[str]:
        """Image to show for a reason: hosted URL, else the local preview."""
        return display_image_url(entry.image_url, entry.image_preview)

    async def _upload(self, image: ImageFile) -> Optional[str]:
        try:
            result = await self._uploader.upload_images([image])
        except UrlModeratorError as e:
            self._cache.set_error("upload.failed", error=e.message)
            return None

        if result.error is not None:
            self._cache.set_error("upload.failed", error=result.error.message)
            if self._logger:
                self._logger.log_error(
                    "ErrorAnnotationSession",
                    "Image upload failed, staging reason without image",
                    result.error,
                )
            return None

        return result.urls[0] if result.urls else None

"""
Image upload client for error screenshots.

Uploads images to Cloudinary with an unsigned upload preset. A batch of
files is sent as independent concurrent requests and succeeds only if every
upload succeeds; a failed batch reports no URLs, although the URLs of the
uploads that did finish stay recorded in ``image_urls``.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence, runtime_checkable

import httpx

from .audit_logger import AuditLogger
from .config import CloudinaryConfig
from .enums import LogLevel, UploadErrorCode
from .exceptions import PartialUploadError
from .models import ImageFile


LOCAL_IMAGE_PREFIXES = ("blob:", "data:")


@dataclass
class UploadBatchResult:
    """Outcome of uploading a batch of images."""

    urls: list[str] = field(default_factory=list)
    error: Optional[PartialUploadError] = None

    @property
    def success(self) -> bool:
        return self.error is None


@runtime_checkable
class ImageUploader(Protocol):
    """Anything that can turn image payloads into public URLs."""

    async def upload_images(self, files: Sequence[Optional[ImageFile]]) -> UploadBatchResult:
        ...


def is_local_image(url: Optional[str]) -> bool:
    """True for preview references that only exist in the submitting client."""
    return bool(url) and url.startswith(LOCAL_IMAGE_PREFIXES)


def display_image_url(url: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
    """
    URL to show for an error image.

    The hosted URL wins; the local preview is used when the hosted URL is
    missing or itself only a local reference.
    """
    if (url is None or is_local_image(url)) and fallback:
        return fallback
    return url


class CloudinaryUploader:
    """Async Cloudinary uploader using an unsigned upload preset."""

    def __init__(
        self,
        config: CloudinaryConfig,
        logger: Optional[AuditLogger] = None,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the uploader.

        Args:
            config: Cloud name, credentials, preset and destination folder
            logger: Optional audit logger
            simulation_mode: If True, no request is sent and a URL is derived
                from the generated public id
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._config = config
        self._logger = logger
        self._simulation_mode = simulation_mode
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._uploading = False
        self._last_error: Optional[str] = None
        self._image_urls: list[str] = []

    async def __aenter__(self) -> "CloudinaryUploader":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def uploading(self) -> bool:
        """True while a batch is in flight."""
        return self._uploading

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def image_urls(self) -> list[str]:
        """Every URL produced so far, including those of failed batches."""
        return list(self._image_urls)

    def reset(self) -> None:
        self._image_urls = []
        self._last_error = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def upload_images(self, files: Sequence[Optional[ImageFile]]) -> UploadBatchResult:
        """
        Upload a batch of images concurrently.

        Empty entries are skipped. The first failure in submission order is
        reported as the batch error.
        """
        self._uploading = True
        self._last_error = None
        try:
            pending = [image for image in files if image is not None]
            results = await asyncio.gather(
                *(self._upload_one(image) for image in pending),
                return_exceptions=True,
            )

            for result in results:
                if isinstance(result, PartialUploadError):
                    self._last_error = result.message
                    self._log_error("Image upload batch failed", result)
                    return UploadBatchResult(urls=[], error=result)
                if isinstance(result, BaseException):
                    raise result

            self._log_info(
                "Image upload batch completed",
                {"count": len(results), "folder": self._config.folder},
            )
            return UploadBatchResult(urls=list(results))
        finally:
            self._uploading = False

    async def _upload_one(self, image: ImageFile) -> str:
        public_id = f"{int(time.time() * 1000)}_{secrets.token_hex(6)[:11]}"

        if self._simulation_mode:
            url = (
                f"https://res.cloudinary.com/{self._config.cloud_name or 'simulated'}"
                f"/image/upload/{self._config.folder}/{public_id}"
            )
            self._image_urls.append(url)
            return url

        client = self._ensure_client()
        data = {
            "upload_preset": self._config.upload_preset,
            "api_key": self._config.api_key,
            "folder": self._config.folder,
            "public_id": public_id,
        }
        files = {"file": (image.filename, image.content, image.content_type)}

        try:
            response = await client.post(self._config.upload_url, data=data, files=files)
        except httpx.TimeoutException:
            raise PartialUploadError(
                code=UploadErrorCode.TIMEOUT.value,
                message=f"Upload of {image.filename} timed out",
                details={"filename": image.filename},
            )
        except httpx.HTTPError as e:
            raise PartialUploadError(
                code=UploadErrorCode.NETWORK_ERROR.value,
                message=f"Upload of {image.filename} failed: {e}",
                details={"filename": image.filename},
            )

        if response.status_code >= 400:
            raise PartialUploadError(
                code=UploadErrorCode.REJECTED.value,
                message=f"Upload failed: {response.status_code} {response.reason_phrase}",
                details={
                    "filename": image.filename,
                    "http_status_code": response.status_code,
                    "body": response.text[:200],
                },
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise PartialUploadError(
                code=UploadErrorCode.PARSE_ERROR.value,
                message=f"Failed to parse upload response: {e}",
                details={"filename": image.filename},
            )

        url = payload.get("secure_url") if isinstance(payload, dict) else None
        if not url:
            raise PartialUploadError(
                code=UploadErrorCode.MISSING_URL.value,
                message="Upload response carries no secure_url",
                details={"filename": image.filename},
            )

        self._image_urls.append(url)
        return url

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "ImageUploader", message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error("ImageUploader", message, error)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

"""
Configuration dataclasses for the URL moderator.

This module defines the configuration structures for the document store,
the image host, retry behaviour and logging, and loads them from the
environment (optionally seeded from a ``.env`` file).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


@dataclass
class FirestoreConfig:
    """Document store (Firestore REST) configuration."""

    project_id: str = ""
    api_key: str = ""
    database: str = "(default)"
    id_token: Optional[str] = None
    timeout_seconds: float = 15.0
    base_url: str = "https://firestore.googleapis.com/v1"

    @property
    def documents_path(self) -> str:
        """Resource path of the documents root of the database."""
        return f"projects/{self.project_id}/databases/{self.database}/documents"


@dataclass
class CloudinaryConfig:
    """Image host (Cloudinary unsigned upload) configuration."""

    cloud_name: str = ""
    api_key: str = ""
    upload_preset: str = ""
    folder: str = "error-images"
    timeout_seconds: float = 30.0

    @property
    def upload_url(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.cloud_name}/auto/upload"


@dataclass
class RetryConfig:
    """Retry behaviour for idempotent store reads."""

    max_retries: int = 2
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    retryable_errors: list[str] = field(
        default_factory=lambda: ["timeout", "server_error", "rate_limited", "network_error"]
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main configuration combining all sub-configurations."""

    firestore: FirestoreConfig = field(default_factory=FirestoreConfig)
    cloudinary: CloudinaryConfig = field(default_factory=CloudinaryConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    language: str = "es"  # 'es' or 'en'
    simulation_mode: bool = False

    def validate(self) -> None:
        """
        Check that every value needed to reach the remote services is set.

        Simulation mode runs against the in-memory store and never uploads,
        so nothing is required there.

        Raises:
            ConfigurationError: If required values are missing
        """
        if self.simulation_mode:
            return

        missing = []
        if not self.firestore.project_id:
            missing.append("FIREBASE_PROJECT_ID")
        if not self.firestore.api_key:
            missing.append("FIREBASE_API_KEY")
        if not self.cloudinary.cloud_name:
            missing.append("CLOUDINARY_CLOUD_NAME")
        if not self.cloudinary.upload_preset:
            missing.append("CLOUDINARY_UPLOAD_PRESET")

        if missing:
            raise ConfigurationError(
                code="missing_settings",
                message=f"Missing required settings: {', '.join(missing)}",
                details={"missing": missing},
            )


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _str_env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or default).strip()


def load_config_from_env(env_file: Optional[Path] = None) -> SystemConfig:
    """
    Build a SystemConfig from environment variables.

    Values already present in the process environment win over the ones in
    the dotenv file.

    Args:
        env_file: Optional path to a dotenv file; defaults to ``.env`` lookup

    Returns:
        SystemConfig populated from the environment
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    http_timeout = _float_env("HTTP_TIMEOUT", 15.0)

    language = _str_env("LANGUAGE", "es").lower()
    if language not in ("es", "en"):
        language = "es"

    output_format = _str_env("LOG_FORMAT", "text").lower()
    if output_format not in ("json", "text", "both"):
        output_format = "text"

    return SystemConfig(
        firestore=FirestoreConfig(
            project_id=_str_env("FIREBASE_PROJECT_ID"),
            api_key=_str_env("FIREBASE_API_KEY"),
            database=_str_env("FIREBASE_DATABASE", "(default)"),
            id_token=_str_env("FIREBASE_ID_TOKEN") or None,
            timeout_seconds=http_timeout,
        ),
        cloudinary=CloudinaryConfig(
            cloud_name=_str_env("CLOUDINARY_CLOUD_NAME"),
            api_key=_str_env("CLOUDINARY_API_KEY"),
            upload_preset=_str_env("CLOUDINARY_UPLOAD_PRESET"),
            folder=_str_env("ERROR_IMAGES_FOLDER", "error-images"),
            timeout_seconds=_float_env("UPLOAD_TIMEOUT", 30.0),
        ),
        retry=RetryConfig(max_retries=_int_env("RETRY_COUNT", 2)),
        logging=LoggingConfig(
            level=_str_env("LOG_LEVEL", "info").lower(),
            output_format=output_format,
        ),
        language=language,
        simulation_mode=_str_env("SIMULATION_MODE", "0") in ("1", "true", "yes"),
    )

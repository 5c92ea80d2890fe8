"""
Moderation console.

Wires the moderation components together from a SystemConfig:

- the remote document store (Firestore REST, or the in-memory store in
  simulation mode) with retried reads;
- the image uploader;
- one shared ModerationCache and the managers working on it;
- the auth session and the theme store following it.

The console owns the HTTP clients and closes them on exit.
"""

from typing import Optional

from .annotation import ErrorAnnotationSession
from .audit_logger import AuditLogger
from .auth import AuthSession
from .cache import ModerationCache
from .config import SystemConfig
from .document_store import DocumentStore, MemoryDocumentStore
from .domain_order import DomainOrderManager
from .enums import LogLevel
from .firestore_client import FirestoreClient
from .image_uploader import CloudinaryUploader, ImageUploader
from .retry_manager import RetryManager
from .theme import ThemeStore
from .url_records import UrlRecordManager
from .visits import VisitRecorder


class ModerationConsole:
    """
    Entry point to the moderation workflow.

    Use as an async context manager so the HTTP clients get closed.
    """

    def __init__(
        self,
        config: SystemConfig,
        store: Optional[DocumentStore] = None,
        uploader: Optional[ImageUploader] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the console.

        Args:
            config: System configuration
            store: Optional document store overriding the configured one
            uploader: Optional image uploader overriding the configured one
            logger: Optional audit logger
        """
        self._config = config
        self._logger = logger
        self._owned: list = []

        if store is None:
            if config.simulation_mode:
                store = MemoryDocumentStore()
            else:
                store = FirestoreClient(config.firestore, RetryManager(config.retry))
                self._owned.append(store)
        self.store = store

        if uploader is None:
            uploader = CloudinaryUploader(
                config.cloudinary,
                logger=logger,
                simulation_mode=config.simulation_mode,
            )
            self._owned.append(uploader)
        self.uploader = uploader

        self.cache = ModerationCache(language=config.language)
        self.domain_order = DomainOrderManager(store, self.cache, logger)
        self.urls = UrlRecordManager(store, self.cache, self.domain_order, logger)
        self.visits = VisitRecorder(store, self.cache, logger)
        self.annotation = ErrorAnnotationSession(self.urls, uploader, self.cache, logger)
        self.auth = AuthSession(language=config.language, logger=logger)
        self.themes = ThemeStore(store, self.auth, language=config.language, logger=logger)

        if logger:
            logger.log(
                LogLevel.DEBUG,
                "ModerationConsole",
                "Console initialized",
                {
                    "simulation_mode": config.simulation_mode,
                    "store": type(store).__name__,
                    "language": config.language,
                },
            )

    async def __aenter__(self) -> "ModerationConsole":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def config(self) -> SystemConfig:
        return self._config

    @property
    def error(self) -> Optional[str]:
        """Last error of the moderation operations."""
        return self.cache.error

    async def close(self) -> None:
        self.themes.detach()
        for resource in self._owned:
            await resource.close()
        self._owned = []

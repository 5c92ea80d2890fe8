"""
Domain Order Manager.

Keeps the display order of hostnames in the singleton ``settings/domainOrder``
document. The order is advisory UI state: when the document is missing it is
rebuilt from the cached URL records, and when it cannot be read the rebuilt
order is used in memory only.
"""

from typing import Iterable, Optional

from .audit_logger import AuditLogger
from .cache import ModerationCache
from .document_store import DocumentStore
from .enums import LogLevel
from .exceptions import UrlModeratorError
from .hostnames import unique_hostnames
from .models import DomainOrder


SETTINGS_COLLECTION = "settings"
DOMAIN_ORDER_ID = "domainOrder"


def sanitize_order(order: Iterable[Optional[str]]) -> list[str]:
    """
    Drop null, empty and non-string entries and repeated hostnames.

    The first occurrence of a hostname keeps its position.
    """
    seen: set[str] = set()
    result: list[str] = []
    for item in order:
        if not isinstance(item, str) or not item or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


class DomainOrderManager:
    """Loads, self-heals and saves the persisted domain order."""

    def __init__(
        self,
        store: DocumentStore,
        cache: ModerationCache,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._logger = logger

    @property
    def order(self) -> list[str]:
        """The cached domain order."""
        return list(self._cache.domain_order)

    def default_order(self) -> list[str]:
        """Unique hostnames of the cached records, in cache order."""
        return unique_hostnames(record.original for record in self._cache.records)

    async def ensure_loaded(self) -> list[str]:
        """
        Load the persisted order, rebuilding it when absent.

        - Document present with entries: sanitized and cached.
        - Document absent or empty: default order cached and persisted.
        - Read failure: default order cached, nothing persisted.

        Returns:
            The order now in the cache
        """
        default = self.default_order()

        try:
            data = await self._store.get(SETTINGS_COLLECTION, DOMAIN_ORDER_ID)
        except UrlModeratorError as e:
            self._cache.set_error("domain_order.load_failed", error=e.message)
            self._log_error("Domain order unavailable, using derived order", e)
            self._cache.domain_order = default
            return list(default)

        if data is not None:
            order = sanitize_order(DomainOrder.from_document(data).order)
            if order:
                self._cache.domain_order = order
                return list(order)

        self._cache.domain_order = default
        if default:
            try:
                await self._store.set(
                    SETTINGS_COLLECTION,
                    DOMAIN_ORDER_ID,
                    DomainOrder(order=default).to_document(),
                )
                self._log_info("Domain order initialized", {"domains": len(default)})
            except UrlModeratorError as e:
                self._cache.set_error("domain_order.save_failed", error=e.message)
                self._log_error("Failed to persist initial domain order", e)

        return list(default)

    async def save(self, new_order: Iterable[Optional[str]]) -> bool:
        """
        Persist a new order.

        Args:
            new_order: Hostnames in display order; null entries are dropped

        Returns:
            True if saved; False if nothing remains after sanitizing or the
            store call failed (the previous order is kept)
        """
        sanitized = sanitize_order(new_order)
        if not sanitized:
            self._cache.set_error("domain_order.empty")
            return False

        try:
            await self._store.set(
                SETTINGS_COLLECTION,
                DOMAIN_ORDER_ID,
                DomainOrder(order=sanitized).to_document(),
            )
        except UrlModeratorError as e:
            self._cache.set_error("domain_order.save_failed", error=e.message)
            self._log_error("Failed to save domain order", e)
            return False

        self._cache.domain_order = sanitized
        return True

    async def add_domain(self, hostname: str) -> bool:
        """
        Prepend a hostname that is not in the order yet.

        Returns:
            True if the hostname is (now) part of the order
        """
        if hostname in self._cache.domain_order:
            return True
        return await self.save([hostname, *self._cache.domain_order])

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "DomainOrderManager", message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error("DomainOrderManager", message, error)

"""
URL Record Manager.

CRUD and moderation workflow for submitted URLs:

- submission creates a pending record with empty error and visit logs;
- approval sets the status to approved and clears the error log;
- rejection appends rejection reasons to the persisted error log
  (read-modify-write) and sets the status to rejected;
- removing the last reason of a rejected record puts it back to pending.

Every operation catches store failures at its boundary, writes a message
into the cache's error slot and returns False/None; the cache only changes
after the remote write succeeded.

Read-modify-write sequences carry no version check. Two consoles rejecting
the same record at the same time can lose one of the updates.
"""

from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .audit_logger import AuditLogger
from .cache import ModerationCache
from .document_store import DocumentStore
from .domain_order import DomainOrderManager
from .enums import LogLevel, UrlStatus
from .exceptions import NotFoundError, UrlModeratorError
from .hostnames import extract_hostname, unique_hostnames
from .models import ErrorEntry, UrlRecord


URLS_COLLECTION = "urls"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UrlRecordManager:
    """Moderation operations on URL records, mirrored into the local cache."""

    def __init__(
        self,
        store: DocumentStore,
        cache: ModerationCache,
        domain_order: DomainOrderManager,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the manager.

        Args:
            store: Remote document store
            cache: Local cache this manager writes to
            domain_order: Domain order kept in step with submissions
            logger: Optional audit logger
            clock: Source of creation timestamps
        """
        self._store = store
        self._cache = cache
        self._domain_order = domain_order
        self._logger = logger
        self._clock = clock

    @property
    def records(self) -> list[UrlRecord]:
        return list(self._cache.records)

    @property
    def count(self) -> int:
        return self._cache.count

    @property
    def loading(self) -> bool:
        return self._cache.loading

    @property
    def error(self) -> Optional[str]:
        return self._cache.error

    def get(self, record_id: str) -> Optional[UrlRecord]:
        """Cached record by id."""
        return self._cache.find(record_id)

    async def fetch_all(self) -> list[UrlRecord]:
        """
        Reload every record, replacing the cache, then load the domain order.

        Returns:
            The cached records (unchanged ones if the store call failed)
        """
        with self._cache.busy():
            try:
                documents = await self._store.list_all(URLS_COLLECTION)
            except UrlModeratorError as e:
                self._fail("url.fetch_failed", e)
                return self.records

            records = [UrlRecord.from_document(doc.id, doc.data) for doc in documents]
            self._cache.replace_records(records)
            self._log_info("URLs fetched", {"count": len(records)})

            await self._domain_order.ensure_loaded()
            return self.records

    async def add(
        self,
        name: str,
        original: str,
        site_name: Optional[str] = None,
    ) -> Optional[str]:
        """
        Submit a new URL.

        The record is created pending and put first in the cache. A hostname
        not yet in the domain order is prepended to it; a URL without a
        parseable hostname is still created.

        Returns:
            The new record id, or None if the store call failed
        """
        with self._cache.busy():
            record = UrlRecord(
                id="",
                name=name,
                original=original,
                created_at=self._clock(),
                status=UrlStatus.PENDING,
                site_name=site_name,
            )

            try:
                record.id = await self._store.create(URLS_COLLECTION, record.to_document())
            except UrlModeratorError as e:
                self._fail("url.add_failed", e)
                return None

            self._cache.prepend(record)
            self._log_info("URL added", {"id": record.id, "original": original})

            hostname = extract_hostname(original)
            if hostname is not None:
                if not self._cache.domain_order:
                    await self._domain_order.ensure_loaded()
                await self._domain_order.add_domain(hostname)

            return record.id

    async def approve(self, record_id: str) -> bool:
        """Mark a record approved and clear its error log."""
        with self._cache.busy():
            try:
                await self._store.update(
                    URLS_COLLECTION,
                    record_id,
                    {"status": UrlStatus.APPROVED.value, "errorMessages": []},
                )
            except UrlModeratorError as e:
                self._fail("url.approve_failed", e)
                return False

            record = self._cache.find(record_id)
            if record is not None:
                record.status = UrlStatus.APPROVED
                record.error_messages = []

            self._log_info("URL approved", {"id": record_id})
            return True

    async def reject(self, record_id: str, new_entries: Sequence[ErrorEntry]) -> bool:
        """
        Append rejection reasons and mark the record rejected.

        Existing persisted reasons are kept, the new ones follow them.

        Args:
            record_id: Record to reject
            new_entries: At least one reason

        Returns:
            True on success; False if there is nothing to add, the record
            does not exist or a store call failed
        """
        with self._cache.busy():
            if not new_entries:
                self._cache.set_error("annotation.nothing_staged")
                return False

            try:
                data = await self._store.get(URLS_COLLECTION, record_id)
                if data is None:
                    self._cache.set_error("url.not_found")
                    self._log_error("URL to reject not found", None, {"id": record_id})
                    return False

                combined = self._raw_entries(data) + [entry.to_document() for entry in new_entries]
                await self._store.update(
                    URLS_COLLECTION,
                    record_id,
                    {"status": UrlStatus.REJECTED.value, "errorMessages": combined},
                )
            except UrlModeratorError as e:
                self._fail("url.reject_failed", e)
                return False

            record = self._cache.find(record_id)
            if record is not None:
                record.status = UrlStatus.REJECTED
                record.error_messages = self._parse_entries(combined)

            self._log_info(
                "URL rejected",
                {"id": record_id, "added": len(new_entries), "total": len(combined)},
            )
            return True

    async def remove_error(self, record_id: str, index: int) -> bool:
        """
        Remove one persisted rejection reason.

        When the last reason of a rejected record goes, the record returns
        to pending.

        Returns:
            True on success; False if the record is missing, the index is
            out of range or a store call failed
        """
        with self._cache.busy():
            try:
                data = await self._store.get(URLS_COLLECTION, record_id)
                if data is None:
                    self._cache.set_error("url.not_found")
                    return False

                entries = self._raw_entries(data)
                if index < 0 or index >= len(entries):
                    self._cache.set_error("url.error_index_out_of_range", index=index)
                    return False

                del entries[index]
                fields: dict = {"errorMessages": entries}
                reset_status = not entries and data.get("status") == UrlStatus.REJECTED.value
                if reset_status:
                    fields["status"] = UrlStatus.PENDING.value

                await self._store.update(URLS_COLLECTION, record_id, fields)
            except UrlModeratorError as e:
                self._fail("url.remove_error_failed", e)
                return False

            record = self._cache.find(record_id)
            if record is not None:
                record.error_messages = self._parse_entries(entries)
                if reset_status:
                    record.status = UrlStatus.PENDING

            self._log_info(
                "Error message removed",
                {"id": record_id, "index": index, "status_reset": reset_status},
            )
            return True

    async def fetch_by_status(self, status: UrlStatus) -> list[UrlRecord]:
        """
        Query the store for records in one status.

        The cache is not touched.
        """
        try:
            documents = await self._store.query_equal(URLS_COLLECTION, "status", status.value)
        except UrlModeratorError as e:
            self._fail("url.query_failed", e)
            return []
        return [UrlRecord.from_document(doc.id, doc.data) for doc in documents]

    def get_unique_domains(self) -> list[str]:
        """Distinct hostnames of the cached records; unparseable URLs skipped."""
        return unique_hostnames(record.original for record in self._cache.records)

    def get_by_domain(self, domain: str) -> list[UrlRecord]:
        """Cached records whose hostname is exactly ``domain``."""
        return [
            record
            for record in self._cache.records
            if extract_hostname(record.original) == domain
        ]

    @staticmethod
    def _raw_entries(data: dict) -> list:
        entries = data.get("errorMessages")
        return list(entries) if isinstance(entries, list) else []

    @staticmethod
    def _parse_entries(raw: list) -> list[ErrorEntry]:
        return [ErrorEntry.from_document(entry) for entry in raw if isinstance(entry, dict)]

    def _fail(self, key: str, error: UrlModeratorError) -> None:
        if isinstance(error, NotFoundError):
            self._cache.set_error("url.not_found")
        else:
            self._cache.set_error(key, error=error.message)
        self._log_error(self._cache.error or key, error)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "UrlRecordManager", message, data)

    def _log_error(
        self,
        message: str,
        error: Optional[Exception],
        data: Optional[dict] = None,
    ) -> None:
        if self._logger:
            self._logger.log_error("UrlRecordManager", message, error, data)

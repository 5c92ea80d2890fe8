"""
Visit Recorder.

Records one visit of a URL: reads the record for its current counter, builds
a sanitized visit entry and sends a single store write that sets the counter
to the read value plus one and appends the entry to ``visitDetails``.

The append is atomic on the store side, so concurrent visits never lose log
entries. The counter is computed client-side and can still under-count when
two visits of the same record race.
"""

import math
import warnings
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from .audit_logger import AuditLogger
from .cache import ModerationCache
from .document_store import DocumentStore
from .enums import LogLevel
from .exceptions import NotFoundError, UrlModeratorError
from .models import VISIT_FIELDS, VisitEntry, VisitorInfo
from .url_records import URLS_COLLECTION, utc_now


# Placeholders used when visitor metadata is given without location
GEO_DEFAULTS = {
    "country": "Unknown",
    "region": "Unknown",
    "city": "Unknown",
    "ip": "0.0.0.0",
}


def sanitize_value(value: Any) -> Any:
    """
    Make a metadata value storable.

    Maps and lists are sanitized element-wise and keep every key; None stays
    an explicit null; values the store cannot hold (NaN, infinities,
    arbitrary objects) become null. Datetimes become ISO strings.
    """
    if value is None:
        return None
    if isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): sanitize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(item) for item in value]
    return None


def _parse_iso(timestamp: Any) -> Optional[datetime]:
    if not isinstance(timestamp, str) or not timestamp:
        return None
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class VisitRecorder:
    """Appends visit entries and keeps the visit counter in step."""

    def __init__(
        self,
        store: DocumentStore,
        cache: ModerationCache,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._logger = logger
        self._clock = clock

    async def record(
        self,
        record_id: str,
        visitor_info: Optional[Union[VisitorInfo, dict]] = None,
    ) -> bool:
        """
        Record a visit.

        Args:
            record_id: Visited record; it is never created here
            visitor_info: Optional visitor metadata (VisitorInfo or a
                camelCase mapping)

        Returns:
            True on success; False if the record does not exist or a store
            call failed
        """
        with self._cache.busy():
            try:
                data = await self._store.get(URLS_COLLECTION, record_id)
                if data is None:
                    self._cache.set_error("url.not_found")
                    return False

                prior = self._visit_count(data)
                entry = self.build_entry(visitor_info, self._last_timestamp(data))
                document = entry.to_document()

                await self._store.update_with_append(
                    URLS_COLLECTION,
                    record_id,
                    {"visits": prior + 1},
                    {"visitDetails": [document]},
                )
            except UrlModeratorError as e:
                if isinstance(e, NotFoundError):
                    self._cache.set_error("url.not_found")
                else:
                    self._cache.set_error("visit.record_failed", error=e.message)
                if self._logger:
                    self._logger.log_error("VisitRecorder", "Failed to record visit", e, {"id": record_id})
                return False

            record = self._cache.find(record_id)
            if record is not None:
                record.visits = prior + 1
                record.visit_details.append(VisitEntry.from_document(document))

            if self._logger:
                self._logger.log(
                    LogLevel.DEBUG,
                    "VisitRecorder",
                    "Visit recorded",
                    {"id": record_id, "visits": prior + 1},
                )
            return True

    async def increment_only(
        self,
        record_id: str,
        visitor_info: Optional[Union[VisitorInfo, dict]] = None,
    ) -> bool:
        """
        Deprecated visit entry point, kept for existing callers.

        Delegates to :meth:`record`, so both entry points count and sanitize
        the same way.
        """
        warnings.warn(
            "increment_only() is deprecated, use record()",
            DeprecationWarning,
            stacklevel=2,
        )
        return await self.record(record_id, visitor_info)

    def build_entry(
        self,
        visitor_info: Optional[Union[VisitorInfo, dict]] = None,
        previous_timestamp: Optional[str] = None,
    ) -> VisitEntry:
        """
        Build a sanitized visit entry.

        Without visitor metadata the entry holds only a timestamp. With it,
        missing location fields get placeholders and every value is
        sanitized. A field the caller supplied is always written, as an
        explicit null when it holds nothing storable. The timestamp is
        strictly later than ``previous_timestamp``.
        """
        timestamp = self._next_timestamp(previous_timestamp)

        if visitor_info is None:
            return VisitEntry(timestamp=timestamp)

        if isinstance(visitor_info, dict):
            visitor_info = VisitorInfo.from_mapping(visitor_info)

        raw = {attr: getattr(visitor_info, attr) for attr in VISIT_FIELDS}
        raw["browser_info"] = visitor_info.browser_info
        for attr, placeholder in GEO_DEFAULTS.items():
            if raw[attr] is None:
                raw[attr] = placeholder

        values = {attr: sanitize_value(value) for attr, value in raw.items()}
        null_fields = {
            attr
            for attr, value in values.items()
            if value is None and (attr in visitor_info.supplied or raw[attr] is not None)
        }

        return VisitEntry(
            timestamp=timestamp,
            extra=sanitize_value(visitor_info.extra),
            null_fields=null_fields,
            **values,
        )

    def _next_timestamp(self, previous: Optional[str]) -> str:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        last = _parse_iso(previous)
        if last is not None and now <= last:
            now = last + timedelta(microseconds=1)
        return now.isoformat()

    @staticmethod
    def _visit_count(data: dict) -> int:
        visits = data.get("visits")
        if isinstance(visits, bool) or not isinstance(visits, (int, float)):
            return 0
        return max(int(visits), 0)

    @staticmethod
    def _last_timestamp(data: dict) -> Optional[str]:
        details = data.get("visitDetails")
        if isinstance(details, list) and details and isinstance(details[-1], dict):
            return details[-1].get("timestamp")
        return None

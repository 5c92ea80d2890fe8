"""
Local read cache shared by the moderation managers.

One ModerationCache instance owns the cached URL records, the cached domain
order, the loading flag and the shared last-error slot. Managers receive the
instance they work on; nothing is module-global, so independent consoles
(or tests) never see each other's state.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from .i18n import get_message
from .models import UrlRecord


class ModerationCache:
    """
    Last-known-good copy of the remote moderation state.

    The cache is a single-writer structure: it is synchronized after each
    mutating operation and never reconciled with other writers.
    """

    def __init__(self, language: str = "es") -> None:
        """
        Initialize an empty cache.

        Args:
            language: Language of the messages put into the error slot
        """
        self._language = language
        self.records: list[UrlRecord] = []
        self.domain_order: list[str] = []
        self.loading = False
        self.error: Optional[str] = None

    @property
    def language(self) -> str:
        return self._language

    @property
    def count(self) -> int:
        return len(self.records)

    def find(self, record_id: Optional[str]) -> Optional[UrlRecord]:
        """Cached record with the given id, if any."""
        if record_id is None:
            return None
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def replace_records(self, records: list[UrlRecord]) -> None:
        self.records = list(records)

    def prepend(self, record: UrlRecord) -> None:
        self.records.insert(0, record)

    def set_error(self, key: str, **kwargs) -> str:
        """Put a catalogue message into the error slot and return it."""
        self.error = get_message(key, self._language, **kwargs)
        return self.error

    @contextmanager
    def busy(self) -> Iterator[None]:
        """Mark an operation in flight: clears the error, toggles loading."""
        self.loading = True
        self.error = None
        try:
            yield
        finally:
            self.loading = False

"""
Audit Logger module for the URL moderator.

Writes structured entries as JSON lines, human-readable text lines or both,
drops entries under a minimum severity, and masks credentials and visitor
personal data before anything reaches the stream.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from url_moderator.enums import LogLevel
from url_moderator.exceptions import UrlModeratorError


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}

OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LogEntry:
    """One audit record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "level": self.level.value,
                "component": self.component,
                "message": self.message,
                "data": self.data,
            },
            ensure_ascii=False,
            default=str,
        )

    def to_text(self) -> str:
        # [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        line = f"[{self.timestamp}] {self.level.value.upper()} [{self.component}] {self.message}"
        if self.data:
            line += " " + json.dumps(self.data, ensure_ascii=False, default=str)
        return line


class AuditLogger:
    """
    Structured logger shared by the moderation components.

    Masking applies at any nesting depth, inside maps and lists alike. A key
    is sensitive when it contains one of SENSITIVE_KEYS, except ``ip`` which
    only matches the whole key.
    """

    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'apikey',
        'upload_preset', 'id_token', 'authorization', 'credential',
        'email', 'ip',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.INFO,
    ):
        """
        Args:
            output_format: One of 'json', 'text', 'both'
            output_stream: Where lines go; sys.stderr when omitted
            min_level: Lower levels are neither kept nor written

        Raises:
            ValueError: On an unknown output format
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format {output_format!r}, expected one of {OUTPUT_FORMATS}")

        self._format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._entries: list[LogEntry] = []

    @classmethod
    def from_level_name(
        cls,
        level: str,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
    ) -> "AuditLogger":
        """Build a logger from a level name such as 'debug'; unknown names mean info."""
        try:
            min_level = LogLevel(level.lower())
        except ValueError:
            min_level = LogLevel.INFO
        return cls(output_format, output_stream, min_level)

    @property
    def output_format(self) -> str:
        return self._format

    @property
    def entries(self) -> list[LogEntry]:
        """Copy of the entries kept so far."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record an entry and write it in the configured format.

        Returns:
            The masked entry, or None when ``level`` is under the minimum
        """
        if _LEVEL_ORDER[level] < _LEVEL_ORDER[self._min_level]:
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._entries.append(entry)
        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log at ERROR level with the exception's type and message.

        Package errors also contribute their code and, when present, their
        details.
        """
        data = dict(additional_data or {})

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            if isinstance(error, UrlModeratorError):
                info = error.to_dict()
                data["error_code"] = info["code"]
                if info["details"]:
                    data["error_details"] = info["details"]

        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Return a copy of ``data`` with every sensitive value replaced."""
        if not isinstance(data, dict):
            return data
        return self._mask(data)

    def _mask(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: self.MASK_VALUE if self._is_sensitive(str(key)) else self._mask(item)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [self._mask(item) for item in value]
        return value

    def _is_sensitive(self, key: str) -> bool:
        # 'ip' only as a whole key, it is a substring of too many names
        lowered = key.lower()
        if lowered == "ip":
            return True
        return any(pattern in lowered for pattern in self.SENSITIVE_KEYS if pattern != "ip")

    def _write(self, entry: LogEntry) -> None:
        if self._format != "text":
            self._stream.write(entry.to_json() + "\n")
        if self._format != "json":
            self._stream.write(entry.to_text() + "\n")
        self._stream.flush()

    def clear_entries(self) -> None:
        self._entries.clear()

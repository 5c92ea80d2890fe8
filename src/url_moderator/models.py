"""
Data models for the URL moderator.

This module defines the documents kept in the remote store (URL records with
their error and visit logs, the domain order, themes), the visitor metadata
accepted by the visit recorder, and the tagged error inputs staged by the
error annotation session.

Document field names are camelCase on the wire; every persisted model has a
``to_document()`` / ``from_document()`` pair converting to and from plain
mappings.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from .enums import UrlStatus


@dataclass
class ErrorEntry:
    """A single rejection reason attached to a URL record."""

    text: str
    image_url: Optional[str] = None
    image_preview: Optional[str] = None  # local-only fallback, may not persist
    timestamp: Optional[datetime] = None

    def to_document(self) -> dict:
        return {
            "text": self.text,
            "imageUrl": self.image_url,
            "imagePreview": self.image_preview,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_document(cls, data: dict) -> "ErrorEntry":
        return cls(
            text=data.get("text", ""),
            image_url=data.get("imageUrl"),
            image_preview=data.get("imagePreview"),
            timestamp=data.get("timestamp"),
        )


# Wire names of the optional visit fields, in document order
VISIT_FIELDS: dict[str, str] = {
    "user_agent": "userAgent",
    "referrer": "referrer",
    "screen_size": "screenSize",
    "country": "country",
    "region": "region",
    "city": "city",
    "ip": "ip",
    "latitude": "latitude",
    "longitude": "longitude",
    "isp": "isp",
    "email": "email",
    "consent_timestamp": "consentTimestamp",
    "accepted_terms": "acceptedTerms",
}


@dataclass
class VisitorInfo:
    """Metadata a caller may supply about one visit."""

    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    screen_size: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    ip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    isp: Optional[str] = None
    email: Optional[str] = None
    consent_timestamp: Optional[str] = None
    accepted_terms: Optional[bool] = None
    browser_info: Optional[dict] = None
    extra: dict = field(default_factory=dict)
    # Known fields present in the source mapping, even when null
    supplied: set[str] = field(default_factory=set, compare=False)

    @classmethod
    def from_mapping(cls, data: dict) -> "VisitorInfo":
        """
        Build visitor info from a camelCase mapping.

        Keys that are not known visit fields are kept in ``extra``.
        """
        wire_to_attr = {wire: attr for attr, wire in VISIT_FIELDS.items()}
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in wire_to_attr:
                known[wire_to_attr[key]] = value
            elif key == "browserInfo":
                known["browser_info"] = value
            elif key != "timestamp":
                extra[key] = value
        return cls(**known, extra=extra, supplied=set(known))


@dataclass
class VisitEntry:
    """
    A single recorded visit.

    Fields left as None are not persisted, except those named in
    ``null_fields``, which are written as explicit nulls.
    """

    timestamp: str
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    screen_size: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    ip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    isp: Optional[str] = None
    email: Optional[str] = None
    consent_timestamp: Optional[str] = None
    accepted_terms: Optional[bool] = None
    browser_info: Optional[dict] = None
    extra: dict = field(default_factory=dict)
    null_fields: set[str] = field(default_factory=set)

    def to_document(self) -> dict:
        doc: dict[str, Any] = {}
        for key, value in self.extra.items():
            doc[key] = value
        doc["timestamp"] = self.timestamp
        for attr, wire in VISIT_FIELDS.items():
            value = getattr(self, attr)
            if value is not None or attr in self.null_fields:
                doc[wire] = value
        if self.browser_info is not None or "browser_info" in self.null_fields:
            doc["browserInfo"] = self.browser_info
        return doc

    @classmethod
    def from_document(cls, data: dict) -> "VisitEntry":
        info = VisitorInfo.from_mapping(data)
        return cls(
            timestamp=str(data.get("timestamp", "")),
            browser_info=info.browser_info,
            extra=info.extra,
            null_fields={attr for attr in info.supplied if getattr(info, attr) is None},
            **{attr: getattr(info, attr) for attr in VISIT_FIELDS},
        )


@dataclass
class UrlRecord:
    """A submitted URL and its moderation state."""

    id: str
    name: str
    original: str
    created_at: Optional[datetime] = None
    status: UrlStatus = UrlStatus.PENDING
    site_name: Optional[str] = None
    error_messages: list[ErrorEntry] = field(default_factory=list)
    visits: int = 0
    visit_details: list[VisitEntry] = field(default_factory=list)

    def to_document(self) -> dict:
        """Document body, without the store-assigned id."""
        doc = {
            "name": self.name,
            "original": self.original,
            "createdAt": self.created_at,
            "status": self.status.value,
            "errorMessages": [entry.to_document() for entry in self.error_messages],
            "visits": self.visits,
            "visitDetails": [visit.to_document() for visit in self.visit_details],
        }
        if self.site_name is not None:
            doc["siteName"] = self.site_name
        return doc

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "UrlRecord":
        try:
            status = UrlStatus(data.get("status", UrlStatus.PENDING.value))
        except ValueError:
            status = UrlStatus.PENDING
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            original=data.get("original", ""),
            created_at=data.get("createdAt"),
            status=status,
            site_name=data.get("siteName"),
            error_messages=[
                ErrorEntry.from_document(entry)
                for entry in data.get("errorMessages") or []
                if isinstance(entry, dict)
            ],
            visits=int(data.get("visits") or 0),
            visit_details=[
                VisitEntry.from_document(visit)
                for visit in data.get("visitDetails") or []
                if isinstance(visit, dict)
            ],
        )


@dataclass
class DomainOrder:
    """The persisted display order of hostnames."""

    order: list[str] = field(default_factory=list)

    def to_document(self) -> dict:
        return {"order": list(self.order)}

    @classmethod
    def from_document(cls, data: dict) -> "DomainOrder":
        raw = data.get("order")
        if not isinstance(raw, list):
            return cls(order=[])
        return cls(order=[item for item in raw if isinstance(item, str)])


@dataclass
class ImageFile:
    """A binary image payload waiting to be uploaded."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


# Tagged error inputs accepted by the annotation session


@dataclass
class TextOnly:
    """A rejection reason without an image."""

    text: str


@dataclass
class WithImageUrl:
    """A rejection reason whose image is already hosted."""

    text: str
    image_url: str
    image_preview: Optional[str] = None


@dataclass
class WithRawImage:
    """A rejection reason whose image still has to be uploaded."""

    text: str
    image: ImageFile
    image_preview: Optional[str] = None


ErrorInput = Union[TextOnly, WithImageUrl, WithRawImage]


THEME_COLOR_FIELDS = (
    "primary",
    "secondary",
    "primary2",
    "secondary2",
    "accent",
    "accent2",
    "background",
    "background2",
    "text",
    "text2",
)


@dataclass
class Theme:
    """A named colour theme."""

    primary: str = "#EC4899"
    secondary: str = "#9333EA"
    primary2: str = "#EC4899"
    secondary2: str = "#9333EA"
    accent: str = "#BBF33A"
    accent2: str = "#BBF33A"
    background: str = "#F3F4F6"
    background2: str = "#F3F4F6"
    text: str = "#111827"
    text2: str = "#111827"
    name: str = "Default"
    id: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_user_theme: bool = False

    def to_document(self) -> dict:
        doc: dict[str, Any] = {name: getattr(self, name) for name in THEME_COLOR_FIELDS}
        doc["name"] = self.name
        if self.user_id is not None:
            doc["userId"] = self.user_id
            doc["userEmail"] = self.user_email
        if self.created_at is not None:
            doc["createdAt"] = self.created_at
        if self.updated_at is not None:
            doc["updatedAt"] = self.updated_at
        return doc

    @classmethod
    def from_document(
        cls,
        data: dict,
        doc_id: Optional[str] = None,
        is_user_theme: bool = False,
    ) -> "Theme":
        defaults = cls()
        colors = {
            name: data.get(name) or getattr(defaults, name)
            for name in THEME_COLOR_FIELDS
        }
        return cls(
            **colors,
            name=data.get("name") or "",
            id=doc_id,
            user_id=data.get("userId"),
            user_email=data.get("userEmail"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            is_user_theme=is_user_theme,
        )


@dataclass
class AuthUser:
    """The signed-in user as reported by the identity provider."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    claims: dict = field(default_factory=dict)

    @property
    def has_access(self) -> bool:
        return self.claims.get("access") is True

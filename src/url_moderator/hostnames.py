"""
Hostname extraction for submitted URLs.

URLs are opaque user input and may be malformed. The hostname is the
grouping key of the domain order, so it is normalized the way a browser
would report it: lowercase, international names converted to their IDNA
(punycode) form, IPv6 literals kept in brackets.
"""

import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

import idna


# Code points a browser refuses inside a host (WHATWG "forbidden host code points")
FORBIDDEN_HOST_PATTERN = re.compile(r'[\x00-\x20#%/:<>?@\[\\\]^|]')


def extract_hostname(url: Optional[str]) -> Optional[str]:
    """
    Return the hostname of an absolute URL, or None if it has none.

    Args:
        url: The URL string as submitted

    Returns:
        The normalized hostname, or None for relative, malformed or
        host-less URLs (e.g. ``mailto:``)

    Examples:
        >>> extract_hostname("https://Shop.Example.com:8443/x?y=1")
        'shop.example.com'
        >>> extract_hostname("shop.example.com/x") is None
        True
    """
    if not isinstance(url, str) or not url.strip():
        return None

    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        # Accessing the port validates it
        parts.port
    except ValueError:
        return None

    if not parts.scheme or not hostname:
        return None

    if parts.netloc.find("[") != -1:
        # IPv6 literal
        return f"[{hostname}]"

    if FORBIDDEN_HOST_PATTERN.search(hostname):
        return None

    return normalize_hostname(hostname)


def normalize_hostname(hostname: str) -> Optional[str]:
    """
    Convert a hostname to its lowercase ASCII form.

    Args:
        hostname: Hostname that may contain international characters

    Returns:
        The ASCII hostname, or None if IDNA encoding fails
    """
    hostname_lower = hostname.lower()

    if all(ord(c) < 128 for c in hostname_lower):
        return hostname_lower

    try:
        return idna.encode(hostname_lower, uts46=True).decode("ascii")
    except idna.IDNAError:
        return None


def unique_hostnames(urls: Iterable[Optional[str]]) -> list[str]:
    """
    Distinct hostnames of the given URLs, in first-seen order.

    Unparseable URLs are skipped.
    """
    seen: set[str] = set()
    result: list[str] = []
    for url in urls:
        hostname = extract_hostname(url)
        if hostname is not None and hostname not in seen:
            seen.add(hostname)
            result.append(hostname)
    return result

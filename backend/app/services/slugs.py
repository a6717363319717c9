"""Validation and normalization of public URL path segments."""

from __future__ import annotations

import re
import unicodedata

SLUG_RE = re.compile(r"[a-z0-9-]+")
ZIP_RE = re.compile(r"[0-9]{5}")
STORAGE_KEY_RE = re.compile(r"[a-z0-9_-]{1,255}")

RESERVED_TOP_SEGMENTS = frozenset(
    {
        "favicon.ico",
        "robots.txt",
        "sitemap.xml",
        "sitemap-index.xml",
        "manifest.json",
        "openapi.json",
    }
)
RESERVED_PREFIXES = ("api", "admin", "_next", "sitemaps")

_SANITIZE_RE = re.compile(r"[^\w-]", re.UNICODE)


def is_valid_slug(value: object) -> bool:
    return isinstance(value, str) and SLUG_RE.fullmatch(value) is not None


def is_valid_zip(value: object) -> bool:
    return isinstance(value, str) and ZIP_RE.fullmatch(value) is not None


def is_valid_storage_key(value: object) -> bool:
    return isinstance(value, str) and STORAGE_KEY_RE.fullmatch(value) is not None


def is_reserved_top_segment(value: object) -> bool:
    """True for paths that belong to files or internal areas, never to a county."""
    if not isinstance(value, str):
        return False
    candidate = value.lstrip("/")
    if candidate in RESERVED_TOP_SEGMENTS:
        return True
    first = candidate.split("/", 1)[0]
    return first in RESERVED_PREFIXES


def normalize_slug(value: str | None) -> str:
    """Turn free text into a slug: ``"  Winnetka Park "`` -> ``"winnetka-park"``."""
    text = (value or "").lower().strip()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def sanitize_segment(segment: str) -> str:
    """Lowercase and strip a raw path segment down to word characters and hyphens."""
    cleaned = unicodedata.normalize("NFKC", segment)
    return _SANITIZE_RE.sub("", cleaned).lower()

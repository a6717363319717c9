"""Canonical URL path for a landing page.

A page may be addressed by several URL shapes over its lifetime. This module
picks exactly one of them from the page's location and service fields, walking
``CANONICAL_RULES`` in order. The stored ``slug_path`` is a cache of the last
computed value and is only consulted by ``resolve_view_path`` when no rule
applies.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from app.models.page import DOC_ID_JOINER, PlaceKind
from app.services.slugs import is_reserved_top_segment, is_valid_slug, is_valid_zip
from app.services.urls import (
    Scheme,
    url_neighborhood,
    url_neighborhood_service,
    url_place,
    url_place_service,
)

_COUNTY_FIELDS = ("county_slug", "countySlug", "county", "market")
_ZIP_FIELDS = ("zip",)
_CITY_FIELDS = ("city_slug", "citySlug", "city")
_PLACE_FIELDS = ("place_slug", "placeSlug", "place")
_NEIGHBORHOOD_FIELDS = ("neighborhood_slug", "neighborhoodSlug", "neighborhood")
_PLACE_KIND_FIELDS = ("place_kind", "placeKind")
_SERVICE_FIELDS = ("service_key", "serviceKey", "service", "service_slug", "serviceSlug")
_SLUG_PATH_FIELDS = ("slug_path", "slugPath")


@dataclass(frozen=True)
class PathParts:
    """Validated path segments of a record. Invalid segments are ``None``."""

    county_slug: str | None = None
    zip: str | None = None
    city_slug: str | None = None
    neighborhood_slug: str | None = None
    service_key: str | None = None

    def has(self, *fields: str) -> bool:
        return all(getattr(self, name) for name in fields)


@dataclass(frozen=True)
class CanonicalRule:
    scheme: Scheme
    requires: tuple[str, ...]
    build: Callable[[PathParts], str]


@dataclass(frozen=True)
class CanonicalPath:
    scheme: Scheme
    path: str


# First satisfied rule wins. Zip-level pages are the current generation target,
# so they rank above the city-level routes kept for already indexed URLs.
CANONICAL_RULES: tuple[CanonicalRule, ...] = (
    CanonicalRule(
        Scheme.zip_neighborhood_service,
        ("county_slug", "zip", "neighborhood_slug", "service_key"),
        lambda p: url_neighborhood_service(p.county_slug, p.zip, p.neighborhood_slug, p.service_key),
    ),
    CanonicalRule(
        Scheme.zip_service,
        ("county_slug", "zip", "service_key"),
        lambda p: url_place_service(p.county_slug, p.zip, p.service_key),
    ),
    CanonicalRule(
        Scheme.zip,
        ("county_slug", "zip"),
        lambda p: url_place(p.county_slug, p.zip),
    ),
    CanonicalRule(
        Scheme.city_service,
        ("county_slug", "city_slug", "service_key"),
        lambda p: url_place_service(p.county_slug, p.city_slug, p.service_key),
    ),
    CanonicalRule(
        Scheme.city_neighborhood,
        ("county_slug", "city_slug", "neighborhood_slug"),
        lambda p: url_neighborhood(p.county_slug, p.city_slug, p.neighborhood_slug),
    ),
)


def _read(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _nested(value: Any, attr: str) -> Any:
    # Only reference objects are unwrapped; dates, numbers and enums pass through.
    if isinstance(value, Mapping) or (not isinstance(value, str) and hasattr(value, attr)):
        return _read(value, attr)
    return value


def _first(record: Any, names: tuple[str, ...], attr: str = "slug") -> Any:
    sources = [record]
    location = _read(record, "location")
    if location is not None and not isinstance(location, str):
        sources.append(location)
    for source in sources:
        for name in names:
            value = _nested(_read(source, name), attr)
            if value:
                return value
    return None


def record_value(record: Any, *names: str, attr: str = "slug") -> Any:
    """First truthy field among ``names`` on the record or its ``location``."""
    return _first(record, names, attr)


def _slug_or_none(value: Any) -> str | None:
    return value if is_valid_slug(value) else None


def _place_kind(record: Any) -> str | None:
    kind = _first(record, _PLACE_KIND_FIELDS)
    if kind is None:
        return None
    return str(getattr(kind, "value", kind))


def path_parts(record: Any) -> PathParts:
    """Extract validated segments from a page model, a ``LocationRef`` holder or a raw document."""
    county = _first(record, _COUNTY_FIELDS)
    if not is_valid_slug(county) or is_reserved_top_segment(county):
        county = None
    zip_code = _first(record, _ZIP_FIELDS)
    place = _first(record, _PLACE_FIELDS)
    is_city_place = _place_kind(record) == PlaceKind.city.value

    city = _first(record, _CITY_FIELDS)
    if not city and is_city_place:
        city = place
    neighborhood = _first(record, _NEIGHBORHOOD_FIELDS)
    if not neighborhood and not is_city_place:
        neighborhood = place

    return PathParts(
        county_slug=county,
        zip=zip_code if is_valid_zip(zip_code) else None,
        city_slug=_slug_or_none(city),
        neighborhood_slug=_slug_or_none(neighborhood),
        service_key=_slug_or_none(_first(record, _SERVICE_FIELDS, attr="key")),
    )


def resolve_canonical(record: Any) -> CanonicalPath | None:
    parts = path_parts(record)
    for rule in CANONICAL_RULES:
        if parts.has(*rule.requires):
            return CanonicalPath(scheme=rule.scheme, path=rule.build(parts))
    return None


def build_canonical_path(record: Any) -> str | None:
    """Single canonical path for ``record`` or ``None`` when its data cannot build one."""
    resolved = resolve_canonical(record)
    return resolved.path if resolved else None


def is_legacy_path(path: str) -> bool:
    return DOC_ID_JOINER in path


def resolve_view_path(record: Any) -> str | None:
    """Canonical path, falling back to a cached ``slug_path`` that is not legacy-shaped."""
    canonical = build_canonical_path(record)
    if canonical:
        return canonical
    cached = _first(record, _SLUG_PATH_FIELDS)
    if isinstance(cached, str) and cached.startswith("/") and not is_legacy_path(cached):
        return cached
    return None

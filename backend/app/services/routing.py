"""Inbound path to URL scheme matching.

Schemes are tried from the most specific shape to the least specific one; a
segment failing validation makes the scheme a non-match and matching continues
with the next scheme. ``opaque_id`` (storage key lookup) is the last resort.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.models.page import DOC_ID_JOINER, LocationRef, PlaceKind
from app.services.slugs import (
    is_reserved_top_segment,
    is_valid_slug,
    is_valid_storage_key,
    is_valid_zip,
)
from app.services.urls import Scheme, url_neighborhood_service


LEGACY_DOC_ID_PARTS = 4

# Pattern tokens: literals ("n", "s") must match exactly, the rest name a segment grammar.
_ZIP = "zip"
_CITY = "city"
_PLACE = "place"
_COUNTY = "county"
_NEIGHBORHOOD = "neighborhood"
_SERVICE = "service"
_LITERALS = frozenset({"n", "s"})


@dataclass(frozen=True)
class RouteScheme:
    scheme: Scheme
    pattern: tuple[str, ...]
    canonical: bool


@dataclass(frozen=True)
class RouteMatch:
    scheme: Scheme
    location: LocationRef = field(default_factory=LocationRef)
    service_key: str | None = None
    is_canonical: bool = True
    record_id: str | None = None

    @property
    def is_redirect(self) -> bool:
        return redirect_target(self) is not None


ROUTE_SCHEMES: tuple[RouteScheme, ...] = (
    RouteScheme(Scheme.zip_neighborhood_service, (_COUNTY, _ZIP, "n", _NEIGHBORHOOD, _SERVICE), canonical=True),
    RouteScheme(Scheme.zip_neighborhood, (_COUNTY, _ZIP, "n", _NEIGHBORHOOD), canonical=True),
    RouteScheme(Scheme.zip_service, (_COUNTY, _ZIP, "s", _SERVICE), canonical=True),
    RouteScheme(Scheme.city_neighborhood, (_COUNTY, _CITY, "n", _NEIGHBORHOOD), canonical=True),
    RouteScheme(Scheme.city_service, (_COUNTY, _CITY, "s", _SERVICE), canonical=False),
    RouteScheme(Scheme.legacy_place_service, (_COUNTY, _PLACE, _NEIGHBORHOOD, _SERVICE), canonical=False),
    RouteScheme(Scheme.zip, (_COUNTY, _ZIP), canonical=True),
)


def _segment_ok(token: str, segment: str) -> bool:
    if token in _LITERALS:
        return segment == token
    if token == _ZIP:
        return is_valid_zip(segment)
    if token == _COUNTY:
        return is_valid_slug(segment) and not is_reserved_top_segment(segment)
    if token == _PLACE:
        return is_valid_zip(segment) or is_valid_slug(segment)
    return is_valid_slug(segment)


def _place_location(county: str, place: str, neighborhood: str | None = None) -> LocationRef:
    zip_code = place if is_valid_zip(place) else None
    city = None if zip_code else place
    if neighborhood:
        return LocationRef(
            county_slug=county,
            place_slug=neighborhood,
            place_kind=PlaceKind.neighborhood,
            zip=zip_code,
            city_slug=city,
        )
    if zip_code:
        return LocationRef(county_slug=county, zip=zip_code)
    return LocationRef(county_slug=county, place_slug=city, place_kind=PlaceKind.city, city_slug=city)


def _build_match(route: RouteScheme, segments: list[str]) -> RouteMatch:
    values = dict(zip(route.pattern, segments))
    county = values[_COUNTY]
    place = values.get(_ZIP) or values.get(_CITY) or values.get(_PLACE) or ""
    return RouteMatch(
        scheme=route.scheme,
        location=_place_location(county, place, values.get(_NEIGHBORHOOD)),
        service_key=values.get(_SERVICE),
        is_canonical=route.canonical,
    )


def _match_structured(segments: list[str]) -> RouteMatch | None:
    for route in ROUTE_SCHEMES:
        if len(route.pattern) != len(segments):
            continue
        if all(_segment_ok(token, segment) for token, segment in zip(route.pattern, segments)):
            return _build_match(route, segments)
    return None


def _match_legacy_doc_id(segment: str) -> RouteMatch | None:
    parts = [part for part in segment.split(DOC_ID_JOINER) if part]
    if len(parts) != LEGACY_DOC_ID_PARTS:
        return None
    county, place, place_slug, service_key = parts
    if not _segment_ok(_COUNTY, county) or not _segment_ok(_PLACE, place):
        return None
    if not is_valid_slug(place_slug) or not is_valid_slug(service_key):
        return None
    return RouteMatch(
        scheme=Scheme.legacy_doc_id,
        location=_place_location(county, place, place_slug),
        service_key=service_key,
        is_canonical=False,
        record_id=segment,
    )


def split_path(path: str) -> list[str]:
    return [segment for segment in (path or "").split("/") if segment]


def match_route(path: str) -> RouteMatch | None:
    """Match an inbound path against the supported schemes, ``None`` meaning 404."""
    segments = split_path(path)
    if not segments or is_reserved_top_segment(segments[0]):
        return None

    structured = _match_structured(segments)
    if structured is not None or len(segments) != 1:
        return structured

    segment = segments[0]
    if DOC_ID_JOINER in segment:
        return _match_legacy_doc_id(segment)
    record_id = segment.strip().lower()
    if not is_valid_storage_key(record_id):
        return None
    return RouteMatch(scheme=Scheme.opaque_id, is_canonical=False, record_id=record_id)


def redirect_target(match: RouteMatch) -> str | None:
    """Permanent redirect location for deprecated shapes; canonical shapes never redirect."""
    if match.scheme not in (Scheme.legacy_doc_id, Scheme.legacy_place_service):
        return None
    location = match.location
    place = location.zip or location.city_slug
    if not (location.county_slug and place and location.neighborhood_slug and match.service_key):
        return None
    return url_neighborhood_service(location.county_slug, place, location.neighborhood_slug, match.service_key)

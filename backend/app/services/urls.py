import enum


class Scheme(str, enum.Enum):
    """URL shapes the public site answers to, current and legacy."""

    zip_neighborhood_service = "zip_neighborhood_service"
    zip_neighborhood = "zip_neighborhood"
    zip_service = "zip_service"
    zip = "zip"
    city_neighborhood = "city_neighborhood"
    city_service = "city_service"
    legacy_place_service = "legacy_place_service"
    legacy_doc_id = "legacy_doc_id"
    opaque_id = "opaque_id"


def url_place(county_slug: str, place: str) -> str:
    return f"/{county_slug}/{place}"


def url_place_service(county_slug: str, place: str, service_key: str) -> str:
    return f"/{county_slug}/{place}/s/{service_key}"


def url_neighborhood(county_slug: str, place: str, place_slug: str) -> str:
    return f"/{county_slug}/{place}/n/{place_slug}"


def url_neighborhood_service(county_slug: str, place: str, place_slug: str, service_key: str) -> str:
    return f"/{county_slug}/{place}/n/{place_slug}/{service_key}"

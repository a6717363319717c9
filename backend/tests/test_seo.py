from app.models.page import LandingPage, PageStatus, PlaceKind
from app.services.seo import apply_template, build_page_metadata
from app.services.site_settings import SiteConfig, default_site_config, merge_site_config


def _config(**overrides) -> SiteConfig:
    return merge_site_config(
        default_site_config(),
        {
            "site_name": "LA County Pros",
            "title_template": "{service} in {place}, {zip} | {siteName}",
            "meta_description_template": "Book {service} in {place}.",
            **overrides,
        },
    )


def _page(**overrides) -> LandingPage:
    values = {
        "id": "la-county__91306__winnetka__roof-repair",
        "county_slug": "la-county",
        "county_name": "Los Angeles County",
        "zip": "91306",
        "place_slug": "winnetka",
        "place_name": "Winnetka",
        "place_kind": PlaceKind.neighborhood,
        "service_key": "roof-repair",
        "service_name": "Roof Repair",
        "status": PageStatus.published,
    }
    values.update(overrides)
    return LandingPage(**values)


def test_apply_template_substitutes_known_tokens() -> None:
    rendered = apply_template("{service} in {place}, {zip}", {"service": "Roof Repair", "place": "Winnetka", "zip": "91306"})
    assert rendered == "Roof Repair in Winnetka, 91306"


def test_apply_template_blanks_unknown_tokens() -> None:
    assert apply_template("{service}{unknown}!", {"service": "Plumbing"}) == "Plumbing!"
    assert apply_template("", {"service": "Plumbing"}) == ""


def test_page_metadata_from_templates() -> None:
    meta = build_page_metadata(
        _page(), _config(), base_url="https://example.com", path="/la-county/91306/n/winnetka/roof-repair"
    )
    assert meta.title == "Roof Repair in Winnetka, 91306 | LA County Pros"
    assert meta.description == "Book Roof Repair in Winnetka."
    assert meta.canonical_url == "https://example.com/la-county/91306/n/winnetka/roof-repair"
    assert meta.robots is None


def test_explicit_seo_fields_win_over_templates() -> None:
    meta = build_page_metadata(
        _page(seo_title="Winnetka roofers", seo_description="Same-day quotes."),
        _config(),
        base_url="https://example.com",
        path="/x",
    )
    assert meta.title == "Winnetka roofers"
    assert meta.description == "Same-day quotes."


def test_hub_metadata_uses_fallbacks() -> None:
    meta = build_page_metadata(
        None, _config(), base_url="https://example.com", path="/la-county/91306", service="Home Services", place="Winnetka", zip="91306"
    )
    assert meta.title == "Home Services in Winnetka, 91306 | LA County Pros"


def test_noindex_when_indexing_is_disabled() -> None:
    meta = build_page_metadata(_page(), _config(allow_indexing=False), base_url="", path="/x")
    assert meta.robots == "noindex,nofollow"
    meta = build_page_metadata(_page(), _config(robots_policy="noindex"), base_url="", path="/x")
    assert meta.robots == "noindex,nofollow"

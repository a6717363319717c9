from __future__ import annotations

import re
from dataclasses import dataclass

from app.models.page import LandingPage
from app.services.site_settings import SiteConfig

_TOKEN_RE = re.compile(r"\{(\w+)\}")
NOINDEX = "noindex,nofollow"


@dataclass(frozen=True)
class PageMetadata:
    title: str
    description: str
    canonical_url: str
    robots: str | None = None


def apply_template(template: str, variables: dict[str, str]) -> str:
    """Replace ``{name}`` tokens; unknown names render as empty strings."""
    return _TOKEN_RE.sub(lambda m: variables.get(m.group(1)) or "", template or "")


def template_vars(page: LandingPage | None, config: SiteConfig, **fallbacks: str) -> dict[str, str]:
    values = {
        "service": fallbacks.get("service", ""),
        "place": fallbacks.get("place", ""),
        "zip": fallbacks.get("zip", ""),
        "county": fallbacks.get("county", ""),
        "siteName": config.site_name,
    }
    if page is None:
        return values
    values["service"] = page.service_name or page.service_key or values["service"]
    values["place"] = page.place_name or page.city_name or page.place_slug or page.city_slug or values["place"]
    values["zip"] = page.zip or values["zip"]
    values["county"] = page.county_name or page.county_slug or values["county"]
    return values


def build_page_metadata(
    page: LandingPage | None,
    config: SiteConfig,
    *,
    base_url: str,
    path: str,
    **fallbacks: str,
) -> PageMetadata:
    variables = template_vars(page, config, **fallbacks)
    title = (page.seo_title if page else None) or apply_template(config.title_template, variables)
    description = (page.seo_description if page else None) or apply_template(config.meta_description_template, variables)
    return PageMetadata(
        title=title.strip(),
        description=description.strip(),
        canonical_url=f"{base_url}{path}",
        robots=None if config.is_indexable else NOINDEX,
    )

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.models.page import PageStatus, PlaceKind
from app.services.urls import Scheme


class PageMetadataRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    description: str
    canonical_url: str
    robots: str | None = None


class PageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    county_slug: str | None = None
    county_name: str | None = None
    zip: str | None = None
    city_slug: str | None = None
    city_name: str | None = None
    place_slug: str | None = None
    place_name: str | None = None
    place_kind: PlaceKind | None = None
    service_key: str | None = None
    service_name: str | None = None
    status: PageStatus
    updated_at: datetime | None = None


class PageView(BaseModel):
    """Public payload of a single service page, handed to the renderer."""

    scheme: Scheme
    canonical_path: str
    page: PageRead
    metadata: PageMetadataRead


class HubServiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    name: str
    path: str


class HubView(BaseModel):
    """Public payload of a hub page listing the services offered for one place."""

    scheme: Scheme
    canonical_path: str
    county_slug: str
    place: str
    neighborhood_slug: str | None = None
    place_name: str | None = None
    services: list[HubServiceRead] = Field(default_factory=list)
    metadata: PageMetadataRead


class PageAdminRead(PageRead):
    slug_path: str | None = None
    view_path: str | None = None
    qa_score: int | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    created_at: datetime | None = None
    published_at: datetime | None = None


class PageListResponse(BaseModel):
    items: list[PageAdminRead]
    next_cursor: str | None = None


class PageStatusUpdate(BaseModel):
    status: PageStatus


class PublishByFilterRequest(BaseModel):
    action: Literal["publish", "unpublish"]
    service_key: str | None = Field(default=None, max_length=120)
    county_slug: str | None = Field(default=None, max_length=120)
    created_from: datetime | None = None
    created_to: datetime | None = None
    max: int = Field(default=1000, ge=1, le=5000)


class PublishByFilterResponse(BaseModel):
    updated: int
    capped: bool


class SlugPathRefreshResponse(BaseModel):
    changed: int

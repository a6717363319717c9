import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

DOC_ID_JOINER = "__"


class PageStatus(str, enum.Enum):
    draft = "draft"
    review = "review"
    published = "published"
    archived = "archived"


class PlaceKind(str, enum.Enum):
    city = "city"
    neighborhood = "neighborhood"


@dataclass(frozen=True)
class LocationRef:
    """Geographic target of a page. ``zip`` narrows ``place_slug`` when both are set."""

    county_slug: str | None = None
    place_slug: str | None = None
    place_kind: PlaceKind | None = None
    zip: str | None = None
    city_slug: str | None = None

    @property
    def neighborhood_slug(self) -> str | None:
        if self.place_kind == PlaceKind.city:
            return None
        return self.place_slug


@dataclass(frozen=True)
class ServiceRef:
    key: str
    name: str = ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def page_doc_id(county_slug: str, place: str, place_slug: str, service_key: str) -> str:
    """Storage key used for neighborhood+service pages generated by the bulk pipeline."""
    return DOC_ID_JOINER.join((county_slug, place, place_slug, service_key))


class LandingPage(Base):
    __tablename__ = "landing_pages"
    __table_args__ = (
        Index("ix_landing_pages_status_id", "status", "id"),
        Index("ix_landing_pages_geo_service", "county_slug", "zip", "service_key"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    county_slug: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    county_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(10), nullable=True)
    city_slug: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    city_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    place_slug: Mapped[str | None] = mapped_column(String(120), nullable=True)
    place_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    place_kind: Mapped[PlaceKind | None] = mapped_column(Enum(PlaceKind), nullable=True)
    service_key: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    service_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    status: Mapped[PageStatus] = mapped_column(Enum(PageStatus), nullable=False, default=PageStatus.draft)
    slug_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    qa_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    seo_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def location(self) -> LocationRef:
        return LocationRef(
            county_slug=self.county_slug,
            place_slug=self.place_slug,
            place_kind=self.place_kind,
            zip=self.zip,
            city_slug=self.city_slug,
        )

    @property
    def service(self) -> ServiceRef | None:
        if not self.service_key:
            return None
        return ServiceRef(key=self.service_key, name=self.service_name or "")

    @property
    def neighborhood_slug(self) -> str | None:
        return self.location.neighborhood_slug

    @property
    def is_published(self) -> bool:
        return self.status == PageStatus.published

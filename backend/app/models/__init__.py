from app.db.base import Base  # noqa: F401
from app.models.page import LandingPage, PageStatus, PlaceKind  # noqa: F401
from app.models.site_settings import SiteSettingsRow  # noqa: F401

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1 import admin_pages
from app.api.v1 import admin_settings
from app.db.session import get_session

api_router = APIRouter()

api_router.include_router(admin_pages.router)
api_router.include_router(admin_settings.router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@api_router.get("/health/ready", tags=["health"])
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, str]:
    # Store errors surface as 503 through the SQLAlchemyError handler.
    await session.execute(text("SELECT 1"))
    return {"status": "ready"}

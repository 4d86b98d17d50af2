"""API router composition for all route groups."""

from fastapi import APIRouter

from .routes import config, cron, search

api_router = APIRouter()
api_router.include_router(search.router, prefix="/search", tags=["search"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
api_router.include_router(config.router, prefix="/config", tags=["config"])

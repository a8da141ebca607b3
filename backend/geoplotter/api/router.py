from __future__ import annotations

from fastapi import APIRouter

from geoplotter.api.geohash import router as geohash_router
from geoplotter.api.health import router as health_router
from geoplotter.api.map import router as map_router
from geoplotter.api.views import router as views_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(geohash_router)
api_router.include_router(map_router)
api_router.include_router(views_router)

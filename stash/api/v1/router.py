"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from stash.api.v1.health import router as health_router
from stash.api.v1.jobs import router as jobs_router
from stash.api.v1.ai import router as ai_router
from stash.api.v1.imports import router as imports_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(jobs_router, tags=["jobs"])
v1_router.include_router(ai_router, tags=["ai"])
v1_router.include_router(imports_router, tags=["imports"])

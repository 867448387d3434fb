"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from orderflow.api.v1 import health, workflow
from orderflow.core.config import get_config

api_router = APIRouter(prefix=get_config().API_PREFIX)
api_router.include_router(health.router)
api_router.include_router(workflow.router)


def get_api_router() -> APIRouter:
    return api_router

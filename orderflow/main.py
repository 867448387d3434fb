"""Application entrypoint for the FastAPI service."""

from __future__ import annotations

from fastapi import FastAPI

from orderflow.api.v1.router import get_api_router
from orderflow.core.config import get_config


def create_app() -> FastAPI:
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION)
    app.include_router(get_api_router())

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Expose ASGI app for `uvicorn orderflow.main:app`.
app = create_app()

# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.log_config import configure_logging
from core.providers import init_providers
from core.settings import get_settings

# Routers
from files.router import router as files_router
from health.router import router as health_router

log = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.app.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    providers = init_providers(app)
    log.info(
        "storage gateway ready provider=%s bucket=%s",
        providers.storage.name,
        providers.storage.bucket,
    )
    yield


# ---------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------

app = FastAPI(
    title="Storage Gateway",
    lifespan=lifespan,
)

if settings.app.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------

app.include_router(files_router)
app.include_router(health_router)


# ---------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------

@app.get("/")
async def root():
    return {"status": "ok", "message": "storage gateway running"}


# ---------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.app.host,
        port=settings.app.port,
    )

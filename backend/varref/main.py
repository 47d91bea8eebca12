"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from varref.config import settings
from varref.api.v1.routes import content, variables
from varref.core.identifiers.translator import IdentifierTranslator
from varref.core.registry.cache import VariableRegistry
from varref.core.registry.catalog import HttpVariableCatalog
from varref.core.sync.channel import IdentifierSyncChannel

logger = logging.getLogger(__name__)


def build_registry() -> VariableRegistry:
    """Create the application-wide registry backed by the catalog service."""
    catalog = HttpVariableCatalog(
        base_url=settings.catalog_base_url,
        path=settings.catalog_path,
        timeout=settings.catalog_timeout,
        max_retries=settings.catalog_max_retries,
        retry_wait_min=settings.catalog_retry_wait_min,
        retry_wait_max=settings.catalog_retry_wait_max,
    )
    return VariableRegistry(catalog, short_id_length=settings.short_id_length)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: one registry and channel per process
    registry = build_registry()
    app.state.registry = registry
    app.state.channel = IdentifierSyncChannel()
    app.state.translator = IdentifierTranslator(registry, app.state.channel)
    logger.info(
        "Variable catalog: %s%s",
        settings.catalog_base_url,
        settings.catalog_path,
    )

    yield

    # Shutdown: release the catalog HTTP client
    try:
        await registry.catalog.close()
    except Exception as e:
        logger.error("Failed to close catalog client: %s", e)


app = FastAPI(
    title=settings.app_name,
    description="Variable reference resolution for rich-text editors",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(variables.router, prefix="/api/v1", tags=["variables"])
app.include_router(content.router, prefix="/api/v1", tags=["content"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Variable Reference Engine API", "version": "0.1.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}

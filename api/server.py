"""FastAPI server for the ledger interchange engine.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import data, health
from connectors.drive.session import DriveSession, session_from_settings
from connectors.store_base import Store, create_store
from core.config import Settings, load_settings
from core.models.records import BusinessProfile, TaxSettings
from core.observability.logging import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(
    store: Optional[Store] = None,
    settings: Optional[Settings] = None,
    session: Optional[DriveSession] = None,
    business: Optional[BusinessProfile] = None,
    tax: Optional[TaxSettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Store to serve; the REST store at ``settings.api_url`` when omitted
        settings: Runtime configuration; loaded from the environment when omitted
        session: Drive session for the cloud endpoints
        business: Shop details written into exports
        tax: Tax settings written into exports
    """
    settings = settings or load_settings()
    owns_store = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Ledger interchange API starting up", extra_fields={"dataset": settings.dataset_name})
        yield
        if owns_store:
            await app.state.store.close()
        logger.info("Ledger interchange API shutting down")

    app = FastAPI(
        title="Ledger Interchange API",
        description="Workbook export, import, restore and cloud backup for the jewellery ledger",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store or create_store(
        "rest", base_url=settings.api_url, timeout_seconds=settings.api_timeout
    )
    app.state.session = session if session is not None else session_from_settings(settings)
    app.state.business = business
    app.state.tax = tax

    app.include_router(health.router, tags=["Health"])
    app.include_router(data.router, prefix="/data", tags=["Data"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    configure_logging(level=settings.logging_level, json_format=settings.log_json)
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000)

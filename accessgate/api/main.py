import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from accessgate import __version__
from accessgate.api.routers import audit, authz, health
from accessgate.common.logger import configure_from_settings
from accessgate.core.authz.bindings import load_route_bindings, sync_route_bindings
from accessgate.core.config import get_settings
from accessgate.db.session import SessionLocal

logger = logging.getLogger(__name__)


def sync_bindings_from_file(bindings_file: str) -> None:
    """Sync the configured route binding file into storage."""
    specs = load_route_bindings(bindings_file)
    db = SessionLocal()
    try:
        report = sync_route_bindings(db, specs)
    finally:
        db.close()
    if report.conflicts or report.missing_capabilities:
        logger.warning(f"Route binding file {bindings_file} not fully applied: {report.to_dict()}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_from_settings(settings)
    if settings.route_bindings_file:
        sync_bindings_from_file(settings.route_bindings_file)
    logger.info(f"{settings.app_name} {__version__} started")
    yield


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Authorization decision engine with role and attribute based access control",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(authz.router, prefix="/api")
    app.include_router(audit.router, prefix="/api")

    return app


app = create_app()

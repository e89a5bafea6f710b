"""
FastAPI main application.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from yardplan import __version__
from yardplan.config import Settings, configure_logging
from yardplan.exceptions import InvalidInputError, NotFoundError, PersistenceError

from .dependencies import AppState
from .routers import context, plans, events


@asynccontextmanager
async def lifespan(application: FastAPI):
    yield
    await AppState.shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="Yardplan API",
        description="""
        Trailer cargo-placement engine.

        Assigns freight loads to trailer lanes and slots under capacity,
        legal weight, axle-balance and cargo-compatibility constraints.

        ## Features

        - **Context**: Load and trailer queries, trailer defaults, bulk import
        - **Plans**: Ranked plan suggestions and plan preview
        - **Lifecycle**: Idempotent apply and reject
        - **Events**: Cursor-paginated event ledger
        """,
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error mapping
    @application.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @application.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc), "kind": exc.kind, "ids": exc.ids})

    @application.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # Include routers
    application.include_router(
        context.router,
        prefix="/api/v1/planning",
        tags=["Context"],
    )
    application.include_router(
        plans.router,
        prefix="/api/v1/planning/plans",
        tags=["Plans"],
    )
    application.include_router(
        events.router,
        prefix="/api/v1/planning",
        tags=["Events"],
    )

    @application.get("/", tags=["Health"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Yardplan API",
            "version": __version__,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @application.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "storage": settings.storage,
            "org_id": settings.org_id,
        }

    return application


# Create default app instance
app = create_app()

"""
FastAPI Application Factory
Creates and configures the FastAPI app instance
"""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mavida.api.deps import mavida_error_handler
from mavida.api.endpoints import catalog, health, search, watch
from mavida.core.config import VERSION, settings
from mavida.core.context import AppContext, create_context
from mavida.core.exceptions import MavidaError
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        context: Pre-built context (tests); otherwise one is created at startup
            and closed at shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler for startup and shutdown"""
        # Startup
        logger.info(f"Starting {settings.APP_NAME}")
        owned = context is None
        app.state.context = await create_context() if owned else context

        yield

        # Shutdown
        logger.info(f"Shutting down {settings.APP_NAME}")
        if owned:
            await app.state.context.aclose()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Movie and TV catalog browsing with watch-state tracking",
        version=VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MavidaError, mavida_error_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(catalog.router)
    app.include_router(watch.router)
    app.include_router(search.router)

    return app

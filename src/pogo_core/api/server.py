"""FastAPI HTTP server for data update monitoring and control."""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pogo_core.config import Settings, get_settings
from pogo_core.data.database import DatabaseManager
from pogo_core.updates import DataUpdateManager, FeedClient

from .routes import api_router

logger = logging.getLogger(__name__)

# Default port for the API server
DEFAULT_PORT = 8766


def create_app(settings: Settings | None = None, feed: FeedClient | None = None) -> FastAPI:
    """Build the API application.

    The lifespan opens the database, initializes the update manager (which
    bootstraps an empty store before the server accepts requests) and shuts
    both down on exit.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app_settings = settings or get_settings()
        logging.basicConfig(
            level=getattr(logging, app_settings.log_level.upper()),
            format="%(levelname)s:%(name)s:%(message)s",
        )
        logger.info("Starting Pokemon GO data API...")

        db_manager = DatabaseManager(app_settings)
        await db_manager.start()
        updates = DataUpdateManager(db_manager.db, app_settings, feed=feed)
        await updates.initialize()

        # Store in app state for access in routes
        app.state.db_manager = db_manager
        app.state.updates = updates

        try:
            yield
        finally:
            logger.info("Shutting down Pokemon GO data API...")
            await updates.shutdown()
            await db_manager.stop()

    app = FastAPI(
        title="Pokemon GO Data API",
        description="Data update orchestration for the local Pokemon GO database",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(api_router)

    @app.get("/health")
    async def health_check() -> dict[str, str | int]:
        """Health check endpoint."""
        stats = await app.state.db_manager.db.get_stats()
        return {"status": "healthy", "pokemon": stats["total_pokemon"]}

    return app


app = create_app()


def main() -> None:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Pokemon GO Data API Server")
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("POGO_API_PORT", DEFAULT_PORT)),
        help=f"Port to listen on (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Logging level (default: info)",
    )

    args = parser.parse_args()
    serve(args.host, args.port, args.log_level)


def serve(host: str, port: int, log_level: str = "info") -> None:
    """Run uvicorn on the module-level app."""
    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level=log_level)


if __name__ == "__main__":
    main()

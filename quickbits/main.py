"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from quickbits.config import settings
from quickbits.db.database import Database
from quickbits.api.routes import router
from quickbits.services.ledger import UploadLedger
from quickbits.workers.runner import QuickBitsRunner

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting QuickBits...")

    database = Database(echo=settings.debug)
    await database.open()
    logger.info("Database initialized")

    ledger = UploadLedger(database)
    runner = QuickBitsRunner(ledger)
    app.state.database = database
    app.state.ledger = ledger
    app.state.runner = runner

    if settings.scheduler_enabled:
        runner.start()
        logger.info(f"Scheduler started, running every {settings.run_interval_seconds}s")

    yield

    # Shutdown
    logger.info("Shutting down QuickBits...")
    await runner.shutdown()
    await database.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Extracts Quick Bits clips from channel videos and publishes them",
    version="1.0.0",
    lifespan=lifespan
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": "1.0.0",
        "api": "/api",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "quickbits.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

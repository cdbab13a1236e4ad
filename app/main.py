"""
FastAPI Main Application with Rebalance Scheduler
Keeper that keeps the deposit pool on the better-yielding lending venue
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import FastAPI

from app.config import settings
from app.core.logging import setup_logging
from app.core.runtime import KeeperRuntime
from app.infrastructure.db.database import async_session_factory, close_db, init_db
from app.infrastructure.db.repositories.tracked_account_repository import SqlTrackedAccountStore
from app.api.errors import register_exception_handlers

setup_logging(settings.LOG_LEVEL, secrets=[settings.TELEGRAM_BOT_TOKEN])
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of the keeper
    """
    # ===================
    # STARTUP
    # ===================
    logger.info("=" * 60)
    logger.info("🚀 Starting Yield Keeper")
    logger.info("=" * 60)

    logger.info("📊 Step 1/3: Initializing database...")
    await init_db()
    logger.info("✅ Database initialized")

    # A bad keypair file raises here and aborts startup
    logger.info("🔑 Step 2/3: Building keeper runtime...")
    runtime = KeeperRuntime.build(
        settings,
        store=SqlTrackedAccountStore(async_session_factory),
    )
    app.state.keeper = runtime

    logger.info("🚀 Step 3/3: Starting background services...")
    await runtime.start()

    logger.info("=" * 60)
    logger.info(f"   ✅ API Server: http://{settings.API_HOST}:{settings.API_PORT}")
    logger.info(f"   ✅ Scheduler: {'Enabled' if settings.SCHEDULER_ENABLED else 'Disabled'}")
    logger.info(f"   ✅ Ledger: {settings.LEDGER_MODE}")
    logger.info(f"   ✅ Telegram: {'Enabled' if settings.TELEGRAM_ENABLED else 'Disabled'}")
    logger.info("=" * 60)

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("🛑 Shutting down Yield Keeper...")
    await runtime.stop()

    logger.info("📊 Closing database connections...")
    await close_db()
    logger.info("👋 Yield Keeper shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Yield Keeper",
    description="Routes deposits to the better of Kamino and Marginfi and rebalances on a schedule",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Import and include routers
from app.api.routes import health, keeper  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(keeper.router, tags=["Keeper"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)

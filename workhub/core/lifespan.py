from contextlib import asynccontextmanager
from fastapi import FastAPI

from workhub.core.config import settings
from workhub.core.logging import get_logger, setup_logging
from workhub.db.session import build_engine, build_session_factory

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan function for the FastAPI application.
    Owns the database engine for the lifetime of the process.
    """
    # 1. Configure logging
    setup_logging(settings.LOG_LEVEL)

    # 2. Create engine and session factory
    engine = build_engine(settings.DATABASE_URL)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    logger.info("%s started", settings.PROJECT_NAME)

    yield

    # 3. Dispose Database Engine
    await engine.dispose()
    logger.info("%s stopped", settings.PROJECT_NAME)

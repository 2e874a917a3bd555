# main.py
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth import auth_router
from config import Settings, get_settings
from database import Pool, ensure_schema
from errors import ExpenseTrackerError, install_error_handlers
from logger import logger, setup_logging
from router import router


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A failure here aborts startup: no traffic without a pool and schema
        try:
            pool = Pool.open(settings.pool_config())
        except ExpenseTrackerError as e:
            logger.error(f"Error connecting to database: {e}")
            raise
        try:
            ensure_schema(pool)
        except ExpenseTrackerError as e:
            logger.error(f"Error initializing database: {e}")
            pool.close()
            raise

        app.state.pool = pool
        try:
            yield
        finally:
            pool.close()

    app = FastAPI(title="Expense Tracker API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=True,
    )
    install_error_handlers(app)

    app.include_router(router, prefix="/api", tags=["expenses"])
    app.include_router(auth_router, prefix="/api/auth", tags=["authentication"])

    return app


def run():
    settings = get_settings()
    app = create_app(settings)
    logger.info(f"Server starting on port {settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

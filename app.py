from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from backend import RedisBackend, create_redis_client
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL
from error_handlers import register_error_handlers
from exceptions import TransientStoreFailure
from logging_config import get_logger, setup_logging
from routers.events import events_router
from routers.messages import messages_router
from routers.rooms import rooms_router

setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_client = app.state.redis_backend is None
    if owns_client:
        app.state.redis_backend = RedisBackend(create_redis_client())
    logger.info("EphemeralChat started")
    yield
    if owns_client:
        app.state.redis_backend.redis_client.close()
        app.state.redis_backend = None
    logger.info("EphemeralChat shutting down")


def create_app(backend: Optional[RedisBackend] = None) -> FastAPI:
    """Build the application; backend defaults to one created from the environment at startup."""
    app = FastAPI(title="EphemeralChat", lifespan=lifespan)
    app.state.redis_backend = backend

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)
    app.include_router(messages_router)
    app.include_router(events_router)
    register_error_handlers(app)

    @app.get("/health", tags=["health"])
    async def health(request: Request):
        try:
            redis_ok = request.app.state.redis_backend.ping()
        except TransientStoreFailure:
            redis_ok = False
        return {"status": "ok", "redis": redis_ok}

    return app


app = create_app()

logger.info("FastAPI application initialized")

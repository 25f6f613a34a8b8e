"""Main FastAPI application and process bootstrap"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging
import sys
import time

import redis
import uvicorn
from dotenv import load_dotenv
from sqlalchemy.engine import Engine

from app import __version__, cache, database
from app.config import Config, load, parse_port
from app.errors import FlexError
from app.logging_config import init_logger
from app.utils.duration import format_duration

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30
MAX_HEADER_BYTES = 1 << 20


def create_app(cfg: Config, engine: Optional[Engine] = None, redis_client: Optional[redis.Redis] = None) -> FastAPI:
    """
    Build the HTTP application

    Args:
        cfg: Resolved configuration snapshot
        engine: Database engine, checked by /health and disposed on shutdown
        redis_client: Redis client, checked by /health and closed on shutdown

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan events for startup and shutdown"""
        logger.info(f"{cfg.app.name} ready")

        yield

        logger.info("Shutting down server...")
        if redis_client is not None:
            redis_client.close()
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title=cfg.app.name,
        description="Media library, metadata and streaming API",
        version=__version__,
        debug=not cfg.is_production,
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.engine = engine
    app.state.redis = redis_client

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request and turn unhandled errors into a 500 response"""
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error",
                extra={"method": request.method, "path": request.url.path},
            )
            response = JSONResponse({"detail": "Internal Server Error"}, status_code=500)

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000.0, 3),
            },
        )
        return response

    # Configure CORS; added last so it also wraps the 500 responses above
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.app.origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        """Root endpoint"""
        return {
            "message": cfg.app.name,
            "environment": cfg.app.environment,
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        checks = {}
        if engine is not None:
            checks["database"] = "ok" if database.ping(engine) else "unavailable"
        if redis_client is not None:
            checks["cache"] = "ok" if cache.ping(redis_client) else "unavailable"

        healthy = all(status == "ok" for status in checks.values())
        return JSONResponse(
            {"status": "healthy" if healthy else "unhealthy", "checks": checks},
            status_code=200 if healthy else 503,
        )

    return app


def run() -> None:
    """Bring up every subsystem and serve until SIGINT/SIGTERM"""
    env_file_loaded = load_dotenv()

    init_logger()
    if not env_file_loaded:
        logger.info("No .env file found, using system environment variables")

    cfg = load()
    if cfg.diagnostics:
        logger.warning(f"{len(cfg.diagnostics)} configuration value(s) replaced by defaults")

    try:
        port = parse_port(cfg.app.port)
    except ValueError as e:
        logger.critical(f"Invalid PORT {cfg.app.port!r}", exc_info=e)
        sys.exit(1)

    try:
        engine = database.connect(cfg.database)
        logger.info(
            "Database pool configured",
            extra={
                "max_connections": cfg.database.max_connections,
                "max_idle_time": format_duration(cfg.database.max_idle_time),
            },
        )
        database.migrate(engine)
        redis_client = cache.connect_redis(cfg.redis)
    except FlexError as e:
        logger.critical(str(e), exc_info=e)
        sys.exit(1)

    app = create_app(cfg, engine, redis_client)

    # uvicorn installs its own SIGINT/SIGTERM handlers and drains connections
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=cfg.app.host,
            port=port,
            log_config=None,
            proxy_headers=cfg.is_production,
            h11_max_incomplete_event_size=MAX_HEADER_BYTES,
            timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_SECONDS,
        )
    )

    logger.info(
        "Starting Flex Media Server",
        extra={"host": cfg.app.host, "port": cfg.app.port, "environment": cfg.app.environment},
    )
    server.run()

    if server.started:
        logger.info("Server shutdown complete")
    else:
        logger.critical("Failed to start server")
        sys.exit(1)


if __name__ == "__main__":
    run()

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reqthrottle.app.core.config import Settings, settings as default_settings
from reqthrottle.app.core.logging import get_log_context, get_logger, setup_logging
from reqthrottle.app.exceptions import ThrottleException
from reqthrottle.app.limiter import RateLimiter
from reqthrottle.app.middleware.rate_limit import RateLimitMiddleware
from reqthrottle.app.middleware.request_id import RequestIdMiddleware, get_request_id
from reqthrottle.app.storage import StorageBackend, create_storage


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageBackend] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-derived ones
        storage: Pre-built storage backend (skips backend creation)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings

    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Connects the rate limit storage on startup (a connection failure
        aborts startup) and closes it once on shutdown.
        """
        backend = storage if storage is not None else await create_storage(settings)
        app.state.storage = backend
        app.state.rate_limiter = RateLimiter.from_settings(backend, settings)

        logger.info(
            f"Application startup complete: storage={type(backend).__name__} "
            f"ip_limit={settings.rate_limit_ip} token_limit={settings.rate_limit_token} "
            f"block_duration={settings.block_duration}s"
        )
        try:
            yield
        finally:
            await backend.close()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title="reqthrottle",
        description="Per-address and per-token request throttling",
        version="0.1.0",
        lifespan=lifespan
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(RateLimitMiddleware)

    # Request ID middleware (outermost - rejected requests carry the ID too)
    app.add_middleware(RequestIdMiddleware)

    @app.get("/")
    async def index() -> dict[str, str]:
        return {"message": "Hello, World!"}

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check endpoint with storage status."""
        backend: StorageBackend = request.app.state.storage
        reachable = await backend.ping()
        return {
            "status": "ok" if reachable else "degraded",
            "components": {
                "storage": {
                    "status": "ok" if reachable else "error",
                    "type": type(backend).__name__,
                }
            },
        }

    @app.exception_handler(ThrottleException)
    async def throttle_exception_handler(request: Request, exc: ThrottleException) -> JSONResponse:
        """Handle service exceptions with their own status code."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; full details go to the log.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra=get_log_context(
                request_id=request_id,
                path=request.url.path,
                method=request.method,
            ),
        )

        content = {
            "error": "internal_error",
            "message": str(exc) if settings.debug else "Internal server error",
            "request_id": request_id,
        }
        return JSONResponse(status_code=500, content=content)

    return app


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(
        "reqthrottle.app.main:app",
        host=default_settings.host,
        port=default_settings.port,
        log_config=None,
    )


# Create the application instance
app = create_app()


if __name__ == "__main__":
    run()

"""
LianyuAI Offline Gateway Entry Point
离线网关应用入口
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from lianyu import __version__
from lianyu.config import config, settings
from lianyu.rate_limit import limiter
from lianyu.routers import gateway_router, offline_router
from lianyu.runtime import OfflineRuntime, build_runtime
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)


def create_app(runtime: Optional[OfflineRuntime] = None) -> FastAPI:
    """
    创建 FastAPI 应用

    Build the gateway application. With ``runtime`` given the caller owns it:
    it is attached as-is and never started or closed by the app. Otherwise the
    lifespan builds one from settings and config, starts it and closes it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "runtime", None) is None:
            owned = build_runtime(settings, config)
            app.state.runtime = owned
            await owned.startup()
        try:
            yield
        finally:
            if owned is not None:
                await owned.close()
                app.state.runtime = None

    app = FastAPI(
        title="LianyuAI Offline Gateway",
        description="Offline cache and background sync for the LianyuAI chat client / 恋语AI 离线网关",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # Add rate limiter to app state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Global exception handler: never leak internals to clients
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch all unhandled exceptions and return a safe 500 response."""
        logger.error(
            "Unhandled exception on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint / 健康检查"""
        current = request.app.state.runtime
        return {
            "status": "ok",
            "version": app.version,
            "platform": current.capabilities.platform.value,
            "storage_type": current.capabilities.storage_type.value,
            "generation": current.controller.policy.generation,
        }

    # Catch-all gateway last so it never shadows the routes above
    app.include_router(offline_router)
    app.include_router(gateway_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting offline gateway on %s:%s -> %s", settings.host, settings.port, settings.upstream_url)
    uvicorn.run(
        "lianyu.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )

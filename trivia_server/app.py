from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import Settings
from .coordinator import LobbyCoordinator
from .logging_config import setup_logging
from .rate_limit import TOO_MANY_REQUESTS, SlidingWindowLimiter, client_key, retry_after
from .registry import ConnectionRegistry
from .broadcast import BroadcastRouter
from .routers import quiz as quiz_router
from .routers import rooms as rooms_router
from .routers import users as users_router
from .routers import websockets as ws_router
from .storage import JsonRepository
from .trivia import TriviaClient

logger = logging.getLogger(__name__)


class ClientStaticFiles(StaticFiles):
    """The built browser client. HTML pages are revalidated on every load; hashed assets keep normal caching."""

    async def get_response(self, path: str, scope):  # type: ignore[override]
        response = await super().get_response(path, scope)
        if response.headers.get("content-type", "").startswith("text/html"):
            response.headers["Cache-Control"] = "no-cache"
        return response


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build an application with its own repository, registry and coordinator."""
    settings = settings or Settings.from_env()

    repository = JsonRepository(settings.data_file)
    registry = ConnectionRegistry()
    coordinator = LobbyCoordinator(repository, registry, BroadcastRouter(registry))
    trivia = TriviaClient(
        base_url=settings.trivia_api_url,
        retries=settings.trivia_retries,
        backoff_base=settings.trivia_backoff_base,
        backoff_max=settings.trivia_backoff_max,
        cache_ttl=settings.trivia_cache_ttl,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await repository.load()
        try:
            yield
        finally:
            await trivia.aclose()

    app = FastAPI(title="Trivia Server", lifespan=lifespan)
    app.state.settings = settings
    app.state.repository = repository
    app.state.registry = registry
    app.state.coordinator = coordinator
    app.state.trivia = trivia
    app.state.rate_limiters = {
        "api": SlidingWindowLimiter(settings.api_rate_limit, settings.api_rate_window),
        "auth": SlidingWindowLimiter(settings.auth_rate_limit, settings.auth_rate_window),
        "write": SlidingWindowLimiter(settings.write_rate_limit, settings.write_rate_window),
    }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_api_requests(request: Request, call_next):
        if request.url.path.startswith("/api"):
            limiter = app.state.rate_limiters["api"]
            key = client_key(request)
            if not limiter.is_allowed(key):
                return JSONResponse(
                    status_code=429,
                    content={"detail": TOO_MANY_REQUESTS},
                    headers=retry_after(limiter, key),
                )
        return await call_next(request)

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s %d in %.0fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
        return response

    # Register routers
    app.include_router(users_router.router)
    app.include_router(rooms_router.router)
    app.include_router(quiz_router.router)
    app.include_router(ws_router.router)

    # Mount the built client at the root path, if one is configured.
    if settings.static_dir is not None:
        app.mount("/", ClientStaticFiles(directory=settings.static_dir, html=True), name="frontend")

    return app


def run() -> None:
    """Console entry point: serve the default app with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


app = create_app()

__all__ = ["app", "create_app", "run", "ClientStaticFiles"]

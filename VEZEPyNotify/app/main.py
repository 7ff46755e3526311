import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, load_settings
from .deps import track_store_size
from .middleware import install_middleware
from .routers import api, pages
from .service import NotificationService, RejectedInput
from .store import NotificationStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, store: NotificationStore | None = None) -> FastAPI:
    """Build the notification service around its own store.

    Each call gets a fresh, empty store unless one is passed in.
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("notification server started on http://%s:%d", settings.host, settings.port)
        logger.info("API base URL: http://localhost:%d/api/", settings.port)
        yield
        logger.info("server shutting down; %d notifications discarded", len(app.state.service.store))

    app = FastAPI(title="VEZEPyNotify", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = NotificationService(store, default_limit=settings.default_limit)
    track_store_size(app.state.service)

    app.include_router(pages.router, tags=["pages"])
    app.include_router(api.router, prefix="/api", tags=["api"])

    @app.exception_handler(RejectedInput)
    async def rejected_input_handler(request: Request, exc: RejectedInput):
        logger.warning("rejected notification, missing %s", ", ".join(exc.missing))
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": exc.message, "error": exc.error},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods on known paths both read as "not found"
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content={"success": False, "message": "Endpoint not found", "requested": request.url.path},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
        )

    install_middleware(app, settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from imaginify.core.config import Settings, get_settings
from imaginify.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from imaginify.core.logging import bind_request_id, configure_logging, get_logger
from imaginify.db.store import MongoStore
from imaginify.routers import credits, images, users, webhooks
from imaginify.services.revalidation import RedisRevalidator, Revalidator

log = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    store: MongoStore | None = None,
    revalidator: Revalidator | None = None,
) -> FastAPI:
    """Build the API; tests pass their own store and revalidator."""
    settings = settings or get_settings()
    configure_logging(debug=settings.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.sentry_dsn:
            import sentry_sdk
            sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
            log.info("startup", msg="Sentry enabled")
        await app.state.store.connect()
        log.info("startup", msg="DB connected")
        try:
            yield
        finally:
            await app.state.store.close()
            close = getattr(app.state.revalidator, "close", None)
            if close is not None:
                await close()
            log.info("shutdown")

    app = FastAPI(
        title="Imaginify API",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store or MongoStore(settings)
    app.state.revalidator = revalidator or RedisRevalidator(settings.redis_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request_id(request_id)
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(users.router, prefix="/v1/users", tags=["users"])
    app.include_router(credits.router, prefix="/v1/credits", tags=["credits"])
    app.include_router(images.router, prefix="/v1/images", tags=["images"])
    app.include_router(webhooks.router, prefix="/v1/webhooks", tags=["webhooks"])

    @app.get("/health")
    async def health():
        """Health check for load balancers and monitoring."""
        return {"status": "ok"}

    return app


app = create_app()

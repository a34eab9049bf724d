import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from common.core.config import settings
from common.core.constants import Environment, UPGRADE_REDIRECT_PATH
from common.core.exceptions import AppException, UpstreamError
from api.v1.routes.router import api_router
from common.db.session import dispose_engine
from common.providers.rate_limiter.limiter import limiter
from packages.billing.exceptions import InsufficientCreditsError
from packages.billing.providers.payment.factory import close_payment_provider

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()
# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Get logger
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await close_payment_provider()
    await dispose_engine()


# Only expose OpenAPI docs in local development
is_local = settings.environment == Environment.LOCAL
docs_url = "/docs" if is_local else None
redoc_url = "/redoc" if is_local else None
openapi_url = "/openapi.json" if is_local else None

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    if isinstance(exc, UpstreamError):
        logger.error(
            f"Upstream failure on {request.url.path}: {exc.detail}",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": UpstreamError.default_detail},
        )

    content = {"error": exc.detail}
    if isinstance(exc, InsufficientCreditsError):
        content["requiresUpgrade"] = exc.requires_upgrade
        if exc.requires_upgrade:
            content["redirectTo"] = UPGRADE_REDIRECT_PATH
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a 400, matching ValidationError
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

# Add gzip compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers (auth enforced via dependencies on each route)
app.include_router(api_router, prefix="/api")


# Internal health endpoint for k8s probes - not under /api to avoid external spam
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}

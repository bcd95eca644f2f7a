"""
main.py
FastAPI application — Bhasha EdTech Backend
OCR, speech, grammar, AI tutor chat and document export for en / hi / pa.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import time

from bhasha.core.config import settings
from bhasha.core.errors import ServiceError, ValidationFailed
from bhasha.core.languages import request_language
from bhasha.core.logger import get_logger
from bhasha.core.rate_limit import RATE_LIMIT_MESSAGE, limiter
from bhasha.core.validators import ValidationIssue
from bhasha.routers import chat, export, grammar, health, ocr, speech
from bhasha.services.memory_service import session_store
from bhasha.services.normalizer import failure, failure_from_status

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info(f"  🚀  {settings.APP_NAME}  v{settings.APP_VERSION}")
    logger.info("=" * 60)
    logger.info(f"  Environment   : {settings.ENVIRONMENT}")
    logger.info(f"  LLM Provider  : {settings.LLM_PROVIDER}")
    logger.info(f"  LLM Model     : {settings.llm_model}")
    logger.info(f"  Speech Model  : {settings.SPEECH_MODEL}")
    logger.info(f"  Sessions      : {session_store.name}")
    logger.info(f"  Rate Limit    : {settings.RATE_LIMIT if settings.RATE_LIMIT_ENABLED else 'off'}")
    logger.info(f"  Host          : {settings.HOST}:{settings.PORT}")
    logger.info("=" * 60)

    yield

    logger.info("🔴 Shutting down Bhasha backend...")


# ─────────────────────────────────────────────────────────────────────────────
# APP
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Bhasha: multilingual EdTech backend\n\n"
        "Text extraction, speech recognition, pronunciation scoring,\n"
        "grammar correction, AI tutor chat and document export."
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.state.limiter = limiter


# ─────────────────────────────────────────────────────────────────────────────
# MIDDLEWARE
# ─────────────────────────────────────────────────────────────────────────────

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log every request with method, path, status, and latency."""
    t0 = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = int((time.perf_counter() - t0) * 1000)

    response.headers["X-Latency-Ms"] = str(elapsed_ms)

    log_level = "warning" if response.status_code >= 400 else "info"
    getattr(logger, log_level)(
        f"{request.method} {request.url.path} → {response.status_code} [{elapsed_ms}ms]"
    )

    return response


# ─────────────────────────────────────────────────────────────────────────────
# EXCEPTION HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.message} ({exc.detail})")
    else:
        logger.info(f"{request.url.path} rejected [{exc.kind.value}]: {exc.message}")
    return failure(exc, request_language(request))


def _issue_field(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "form")]
    return ".".join(parts) or "body"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    issues = [
        ValidationIssue(field=_issue_field(tuple(err.get("loc", ()))), message=err.get("msg", "Invalid value"))
        for err in exc.errors()
    ]
    return failure(ValidationFailed(issues), request_language(request))


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit hit: {request.client.host if request.client else '-'} {request.url.path}")
    return failure_from_status(429, RATE_LIMIT_MESSAGE, request_language(request), detail=str(exc.detail))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    return failure_from_status(exc.status_code, message, request_language(request))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return failure_from_status(500, "Internal server error", request_language(request), detail=str(exc))


# ─────────────────────────────────────────────────────────────────────────────
# ROUTERS
# ─────────────────────────────────────────────────────────────────────────────

app.include_router(health.router, tags=["Health"])
app.include_router(ocr.router, prefix=settings.API_PREFIX, tags=["OCR"])
app.include_router(speech.router, prefix=settings.API_PREFIX, tags=["Speech"])
app.include_router(grammar.router, prefix=settings.API_PREFIX, tags=["Grammar"])
app.include_router(chat.router, prefix=settings.API_PREFIX, tags=["Chat"])
app.include_router(export.router, prefix=settings.API_PREFIX, tags=["Export"])


# ─────────────────────────────────────────────────────────────────────────────
# DEV RUN
# ─────────────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bhasha.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        workers=1,
        access_log=False,  # handled by our middleware
    )

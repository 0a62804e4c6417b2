"""
GROW Fitness API application.

Wires configuration checks, error tracking, middleware, the envelope error
handlers, health probes and the routers into a single FastAPI app.
"""
import logging
import time
from typing import Callable, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings, validate_production_config
from core.database import check_db_connection
from core.exceptions import APIException, ErrorCode, HTTP_422_UNPROCESSABLE, STATUS_ERROR_CODES
from core.logging import setup_logging
from core.rate_limit import RateLimitMiddleware
from core.request_context import TRACE_HEADER, RequestContextMiddleware
from core.responses import error_body
from core.security_headers import SecurityHeadersMiddleware
from routers import auth, calendar, clients, coaches, kids, sessions, team, users

API_VERSION = "1.0.0"

setup_logging()
logger = logging.getLogger(__name__)

validate_production_config(
    environment=settings.ENVIRONMENT,
    debug=settings.DEBUG,
    cors_origins=settings.CORS_ORIGINS,
    postgres_password=None if settings.DATABASE_URL else settings.POSTGRES_PASSWORD,
    token_encryption_key=settings.TOKEN_ENCRYPTION_KEY,
)

LOCAL_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
SCRUBBED_HEADERS = ("authorization", "cookie")


def _scrub_event(event, hint):
    """Drop credentials from request data before it leaves for Sentry."""
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in SCRUBBED_HEADERS:
                headers.pop(name)
    return event


def _init_sentry() -> None:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.redis import RedisIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=f"growfit-api@{API_VERSION}",
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        profiles_sample_rate=settings.SENTRY_PROFILES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            RedisIntegration(),
        ],
        send_default_pii=False,
        before_send=_scrub_event,
    )
    logger.info(f"Sentry enabled ({settings.ENVIRONMENT})")


def _cors_origins() -> list:
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    return LOCAL_ORIGINS


if settings.SENTRY_DSN:
    _init_sentry()

docs_enabled = settings.DEBUG or settings.EXPOSE_API_DOCS
app = FastAPI(
    title="GROW Fitness API",
    description="Coaching platform backend: accounts, client and coach profiles, session booking",
    version=API_VERSION,
    docs_url="/docs" if docs_enabled else None,
    redoc_url="/redoc" if docs_enabled else None,
)

# add_middleware wraps: the last one added sees the request first.
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, default_limit=settings.RATE_LIMIT_PER_MINUTE, window=60)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[TRACE_HEADER],
)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc, APIException):
        code, details = exc.error_code, exc.details
    else:
        code, details = STATUS_ERROR_CODES.get(exc.status_code, "ERROR"), None
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(code, str(exc.detail), details)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE,
        content=jsonable_encoder(error_body(ErrorCode.VALIDATION_ERROR, "Request validation failed", details)),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error"),
    )


def _timed(probe: Callable[[], str]) -> Dict:
    started = time.perf_counter()
    result = {"status": probe()}
    result["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return result


def _database_status() -> str:
    return "healthy" if check_db_connection() else "unhealthy"


def _redis_status() -> str:
    from redis.exceptions import RedisError

    from core.cache import get_redis_client

    client = get_redis_client()
    if client is None:
        return "unavailable"
    try:
        client.ping()
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return "error"
    return "healthy"


@app.get("/health")
async def health():
    """Load balancer probe: 503 when the database is unreachable."""
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/health/detailed")
async def health_detailed():
    """
    Dependency breakdown for dashboards. Always 200.

    Redis only backs rate limiting (which fails open), so losing it degrades
    the API instead of taking it down.
    """
    checks = {"database": _timed(_database_status), "redis": _timed(_redis_status)}

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif checks["redis"]["status"] != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": time.time(),
        "checks": checks,
    }


@app.get("/ping")
async def ping():
    return {"pong": True}


for module in (auth, users, clients, coaches, sessions, kids, team, calendar):
    app.include_router(module.router)

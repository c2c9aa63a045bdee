"""
Back Office API entry point.

Wires logging, optional Sentry, CORS, request timing, the domain error
renderer and the routers (auth, permissions, roles, users, coaching).
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from routers import auth, coaching, permissions, roles, users
from core.config import settings
from core.database import check_db_connection, get_db_sync
from core.logging import setup_logging
from core.exceptions import APIException, UnavailableError
from models import Role
import logging
import time

setup_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def _scrub_event(event, hint):
    """Drop credentials from Sentry events; bearer tokens and cookies never leave the process."""
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in ("authorization", "Authorization", "cookie", "Cookie"):
            headers.pop(name, None)
    return event


if settings.SENTRY_DSN:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            release=f"backoffice-api@{API_VERSION}",
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[FastApiIntegration(transaction_style="endpoint"), SqlalchemyIntegration()],
            send_default_pii=False,
            before_send=_scrub_event,
        )
        logger.info(f"Sentry enabled ({settings.ENVIRONMENT})")
    except ImportError:
        logger.warning("SENTRY_DSN is set but sentry-sdk is not installed; error tracking disabled")


def _cors_origins():
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    return ["http://localhost:3000", "http://127.0.0.1:3000"]


docs_enabled = settings.DEBUG or settings.EXPOSE_API_DOCS
app = FastAPI(
    title="Back Office API",
    description="User accounts, role/permission registry and coaching-session booking",
    version=API_VERSION,
    docs_url="/docs" if docs_enabled else None,
    redoc_url="/redoc" if docs_enabled else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Time every request; 5xx responses log at WARNING."""
    started = time.perf_counter()
    fields = {"method": request.method, "path": request.url.path}

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {request.method} {request.url.path}",
            exc_info=True,
            extra={"extra_fields": {**fields, "error": str(e)}},
        )
        raise

    elapsed = time.perf_counter() - started
    fields.update(status_code=response.status_code, process_time_ms=round(elapsed * 1000, 2))
    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"Response: {request.method} {request.url.path} - {response.status_code}",
        extra={"extra_fields": fields},
    )
    response.headers["X-Process-Time"] = f"{elapsed:.6f}"
    return response


def _render(exc: APIException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code, "context": exc.context},
        headers=exc.headers,
    )


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Domain errors keep their code and context so callers can tell which check failed."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.detail}", extra={"extra_fields": {"path": request.url.path}})
    return _render(exc)


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError):
    logger.error(
        f"Database unavailable: {exc}",
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return _render(UnavailableError("Database temporarily unavailable"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
async def health():
    """
    Liveness plus database reachability, for load balancers.

    Returns:
        - 200: database reachable
        - 503: database unavailable
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "version": API_VERSION, "timestamp": time.time()}


@app.get("/health/detailed")
def health_detailed():
    """
    Readiness for operators: database plus whether access control is seeded.

    "degraded" means the API is up but no default role exists, so new
    registrations get no role and are denied everything.
    """
    checks = {"database": {"status": "unhealthy"}, "access_control": {"status": "unknown"}}
    if check_db_connection():
        checks["database"]["status"] = "healthy"
        db = get_db_sync()
        try:
            system_roles = db.query(Role).filter(Role.is_system_role.is_(True)).count()
            default_role = db.query(Role.name).filter(Role.is_default.is_(True)).scalar()
        finally:
            db.close()
        checks["access_control"] = {
            "status": "healthy" if default_role else "degraded",
            "system_roles": system_roles,
            "default_role": default_role,
        }

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif checks["access_control"]["status"] != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"
    return {"status": overall, "version": API_VERSION, "checks": checks}


@app.get("/ping")
async def ping():
    """Minimal ping endpoint. No dependencies checked."""
    return {"pong": True}


app.include_router(auth.router)
app.include_router(permissions.router)
app.include_router(roles.router)
app.include_router(users.router)
app.include_router(coaching.router)

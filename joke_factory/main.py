from contextlib import asynccontextmanager
from typing import Optional
import logging
import traceback
import json

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy import text

from joke_factory.database import engine, Base, SessionLocal
import joke_factory.models  # noqa: F401  # Ensure all SQLAlchemy models are registered
from joke_factory.auth.identity import USER_ID_HEADER
from joke_factory.data.game_store import GameStore
from joke_factory.routers import instructor as instructor_router
from joke_factory.routers import market as market_router
from joke_factory.routers import production as production_router
from joke_factory.routers import quality_control as quality_control_router
from joke_factory.routers import rounds as rounds_router
from joke_factory.routers import session as session_router
from joke_factory.services.errors import GameError
from joke_factory.services.login_rate_limiter import TooManyAttempts
from joke_factory.utils.logging_config import setup_logging
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

AUDITED_PREFIXES = ("/v1/instructor/", "/v1/session/instructor-login")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        GameStore(db).ensure_seeded()
    finally:
        db.close()
    logging.getLogger("joke_factory").info("Database initialized and seeded.")
    yield
    logging.getLogger("joke_factory").info("Application shutdown.")


app = FastAPI(
    title="Joke Factory",
    description="Classroom game server for the joke production line simulation",
    lifespan=lifespan,
)


def _redact(parsed) -> str:
    if not isinstance(parsed, dict):
        return type(parsed).__name__
    redacted = {}
    for key, value in parsed.items():
        lower_key = str(key).lower()
        if "password" in lower_key or "token" in lower_key:
            redacted[key] = "***"
        else:
            redacted[key] = value if isinstance(value, (str, int, float, bool, type(None))) else type(value).__name__
    return json.dumps(redacted, ensure_ascii=True)


async def audit_action_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    method = request.method.upper()
    if method not in {"POST", "PUT", "PATCH", "DELETE"}:
        return await call_next(request)

    path = request.url.path
    if not path.startswith(AUDITED_PREFIXES):
        return await call_next(request)

    payload_summary: Optional[str] = None
    if request.headers.get("content-type", "").lower().startswith("application/json"):
        body = await request.body()
        request._body = body  # Preserve for any downstream access
        if body:
            try:
                payload_summary = _redact(json.loads(body.decode("utf-8")))
            except (UnicodeDecodeError, ValueError):
                payload_summary = "unavailable"

    response = await call_next(request)

    logger = logging.getLogger("audit")
    identifier = (
        getattr(request.state, "display_name", None)
        or request.headers.get(USER_ID_HEADER)
        or "anonymous"
    )
    details = {
        "method": method,
        "path": path,
        "status": response.status_code,
        "user": identifier,
    }
    if payload_summary:
        details["payload"] = payload_summary
    logger.info("Audit action: %s", details)
    return response


app.add_middleware(BaseHTTPMiddleware, dispatch=audit_action_middleware)


async def localhost_no_cache_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    response = await call_next(request)
    host = request.url.hostname or ""
    if host in {"localhost", "127.0.0.1", "::1"}:
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
    return response


app.add_middleware(BaseHTTPMiddleware, dispatch=localhost_no_cache_middleware)

# Include routers
app.include_router(session_router.router)
app.include_router(rounds_router.router)
app.include_router(instructor_router.router)
app.include_router(production_router.router)
app.include_router(quality_control_router.router)
app.include_router(market_router.router)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    logger = logging.getLogger("joke_factory")
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    headers = None
    if isinstance(exc, TooManyAttempts):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger = logging.getLogger("joke_factory")
    logger.error(f"Global exception: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "Internal Server Error. Please check logs.",
            "details": {},
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger = logging.getLogger("joke_factory")
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} error: {exc.detail}")
    else:
        logger.info(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger = logging.getLogger("joke_factory")
    errors = exc.errors()

    # Only the messages and locations; raw inputs may not serialize
    error_messages = [err["msg"] for err in errors]
    locations = [".".join(str(part) for part in err.get("loc", ())) for err in errors]

    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "INVALID_REQUEST",
            "message": "Request validation failed.",
            "details": {"errors": error_messages, "fields": locations},
        },
    )


@app.get("/health", tags=["healthcheck"])
def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logging.getLogger("joke_factory").error(f"Health check database connection error: {e}")
        raise HTTPException(
            status_code=503, detail=f"Database connection failed: {str(e)}"
        ) from e
    finally:
        db.close()
    return {"status": "healthy", "database": "connected"}

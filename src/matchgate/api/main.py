from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

import sentry_sdk
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sqlalchemy import text

from matchgate.api.dependencies import (
    get_action_store,
    get_current_user_id,
    get_gate,
    get_notification_sink,
)
from matchgate.api.schemas import (
    ActionRequest,
    ActionResponse,
    MatchesResponse,
    NotificationsResponse,
    RemainingResponse,
)
from matchgate.config import settings
from matchgate.services.gate import MatchingGate
from matchgate.services.ports import ActionStore, NotificationSink
from matchgate.utils.database import init_database, session_scope
from matchgate.utils.errors import MatchGateError, TransientStoreError
from matchgate.utils.logging import configure_logging, get_logger, log_context

logger = get_logger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    logger.info("Initializing Sentry...")
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=1.0 if settings.ENVIRONMENT == "development" else 0.1,
            integrations=[
                FastApiIntegration(transaction_style="url"),
                SqlalchemyIntegration(),
                RedisIntegration(),
            ],
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan."""
    configure_logging()
    logger.info("Starting MatchGate API...")

    try:
        init_database()
    except Exception as e:
        error_details = {}
        if hasattr(e, "details"):
            error_details = e.details
        logger.error("Failed to initialize database", error=str(e), details=error_details)
        raise

    yield

    logger.info("Shutting down MatchGate API...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Like/pass gate with daily quota and mutual matching",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def no_cache(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Mark every response non-cacheable; quota state changes on every call."""
    with log_context(method=request.method, path=request.url.path):
        response = await call_next(request)
    response.headers.update(NO_CACHE_HEADERS)
    return response


@app.exception_handler(MatchGateError)
async def matchgate_error_handler(request: Request, exc: MatchGateError) -> JSONResponse:
    content = {"error": exc.message, "code": exc.code, "details": exc.details}
    if "remaining" in exc.details:
        content["remaining"] = exc.details["remaining"]
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=content, headers=NO_CACHE_HEADERS)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "code": "validation_error", "details": {"errors": errors}},
        headers=NO_CACHE_HEADERS,
    )


@app.post("/actions", response_model=ActionResponse)
def submit_action(
    body: ActionRequest,
    user_id: str = Depends(get_current_user_id),
    gate: MatchingGate = Depends(get_gate),
) -> ActionResponse:
    """Like or pass on another user."""
    result = gate.submit(user_id, body.target_id, body.kind)
    return ActionResponse(
        accepted=result.accepted,
        matched=result.matched,
        remaining=result.remaining,
        limit=result.limit,
        conversation_id=result.conversation_id,
    )


@app.get("/likes/remaining", response_model=RemainingResponse)
def likes_remaining(
    user_id: str = Depends(get_current_user_id),
    gate: MatchingGate = Depends(get_gate),
) -> RemainingResponse:
    """Likes left in the caller's current quota window."""
    usage = gate.remaining(user_id)
    return RemainingResponse(remaining=usage.remaining, used=usage.used, limit=usage.limit, resets_at=usage.resets_at)


@app.get("/matches", response_model=MatchesResponse)
def matched_users(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    actions: ActionStore = Depends(get_action_store),
) -> MatchesResponse:
    """Users the caller has matched with, most recent first."""
    matches = actions.list_matched(user_id, limit, offset)
    return MatchesResponse(matches=matches, total=actions.count_matched(user_id))


@app.get("/notifications", response_model=NotificationsResponse)
def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    unread_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    sink: NotificationSink = Depends(get_notification_sink),
) -> NotificationsResponse:
    """The caller's notifications, newest first."""
    notifications = sink.list_for(user_id, limit, offset, unread_only)
    return NotificationsResponse(
        notifications=notifications,
        unread_count=sink.unread_count(user_id),
        has_more=len(notifications) == limit,
    )


@app.get("/health")
def health_check() -> JSONResponse:
    """Health check endpoint."""
    try:
        with session_scope(operation="health") as session:
            session.execute(text("SELECT 1"))
        database_ok = True
    except TransientStoreError:
        database_ok = False

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "ok" if database_ok else "error",
            "database": database_ok,
            "app": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
        },
    )

"""
DTH Release FastAPI Server

HTTP surface over the load service:
- /api/loads   authenticated dispatch dashboard (create, edit, validate, void)
- /api/verify  public dealer page reached by scanning the QR code

USAGE:
    Local: dth-release serve (runs on http://localhost:8000)
    Docs: http://localhost:8000/docs (Swagger UI)
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException

from .clock import utc_now
from .config import get_settings
from .context import AppContext, build_context
from .errors import ReleaseError, ValidationError
from .log import configure_logging
from .models import CurrentUser, LoadStatus

logger = structlog.get_logger(__name__)


# =============================================================================
# API Models (Request/Response Schemas)
# =============================================================================

class ApiResponse(BaseModel):
    """Envelope used by every endpoint"""
    msg: Optional[str] = None
    payload: Any = None


class StatusRequest(BaseModel):
    """Manual status override"""
    status: Optional[str] = None


class ConfirmRequest(BaseModel):
    """Dealer PIN submission"""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    pin: Optional[str] = None
    confirmed_by: Optional[str] = Field(default=None, alias="confirmedBy")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    database_connected: bool


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def envelope(payload: Any = None, msg: Optional[str] = None) -> dict:
    return ApiResponse(msg=msg, payload=_dump(payload)).model_dump()


# =============================================================================
# Dependencies
# =============================================================================

def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    x_user_role: Optional[int] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_timezone: Optional[str] = Header(default=None),
) -> CurrentUser:
    """
    Identity resolved by the upstream auth layer.

    Swap this out with ``app.dependency_overrides`` to plug in another
    provider. Nothing here verifies credentials.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Access denied")
    return CurrentUser(
        id=x_user_id,
        email=x_user_email,
        role=x_user_role,
        full_name=x_user_name,
        timezone=x_user_timezone or "UTC",
    )


# =============================================================================
# Load Endpoints (authenticated)
# =============================================================================

loads_router = APIRouter(
    prefix="/api/loads",
    tags=["Loads"],
    dependencies=[Depends(get_current_user)],
)


@loads_router.get("")
def list_loads(status: Optional[LoadStatus] = None, ctx: AppContext = Depends(get_context)):
    """List all loads for the dispatch dashboard, newest first."""
    return envelope(ctx.loads.list_loads(status=status))


@loads_router.get("/logs")
def release_logs(ctx: AppContext = Depends(get_context)):
    """Release confirmation audit trail, newest first."""
    return envelope(ctx.loads.get_release_logs())


@loads_router.get("/{load_pk}")
def get_load(load_pk: int, ctx: AppContext = Depends(get_context)):
    """Detailed view of one load, including its PIN."""
    return envelope(ctx.loads.get_load_by_id(load_pk))


@loads_router.get("/{load_pk}/pdf")
def download_release_pdf(
    load_pk: int,
    user: CurrentUser = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """Generate and download the vehicle release PDF."""
    load = ctx.loads.get_load_by_id(load_pk)
    content = ctx.documents.generate(load, user.timezone)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=DTH_Release_{load.load_id}.pdf"},
    )


@loads_router.post("", status_code=201)
def create_load(
    payload: dict[str, Any] = Body(...),
    user: CurrentUser = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """Create a new DRAFT load."""
    load = ctx.loads.create_load(payload, acting_user=user)
    return envelope(load, msg="Load created successfully")


@loads_router.put("/{load_pk}")
def update_load(
    load_pk: int,
    payload: dict[str, Any] = Body(...),
    ctx: AppContext = Depends(get_context),
):
    """Update all editable fields of a load."""
    return envelope(ctx.loads.update_load(load_pk, payload), msg="Load updated successfully")


@loads_router.patch("/{load_pk}/validate")
def validate_load(load_pk: int, ctx: AppContext = Depends(get_context)):
    """Move a load from DRAFT to VALID."""
    return envelope(ctx.loads.validate(load_pk), msg="Load validated successfully")


@loads_router.patch("/{load_pk}/void")
def void_load(load_pk: int, ctx: AppContext = Depends(get_context)):
    """Void a load."""
    return envelope(ctx.loads.void(load_pk), msg="Load voided successfully")


@loads_router.patch("/{load_pk}/status")
def update_status(
    load_pk: int,
    body: Optional[StatusRequest] = None,
    ctx: AppContext = Depends(get_context),
):
    """Manually override the status of a load."""
    if body is None or not body.status:
        raise ValidationError("Status is required")
    load = ctx.loads.update_status(load_pk, body.status)
    return envelope(load, msg=f"Status updated to {load.status.value}")


@loads_router.delete("/{load_pk}")
def delete_load(load_pk: int, ctx: AppContext = Depends(get_context)):
    """Permanently delete a load and its logs."""
    ctx.loads.delete_load(load_pk)
    return envelope(msg="Load deleted successfully")


# =============================================================================
# Verification Endpoints (public)
# =============================================================================

verify_router = APIRouter(prefix="/api/verify", tags=["Verification"])


@verify_router.get("/{token}")
def get_verification(token: str, ctx: AppContext = Depends(get_context)):
    """Dealer page data after a QR scan, including the PIN for display."""
    return envelope(ctx.gateway.get_by_token(token), msg="Verification details retrieved")


@verify_router.post("/{token}/confirm")
def confirm_release(
    token: str,
    body: Optional[ConfirmRequest] = None,
    ctx: AppContext = Depends(get_context),
):
    """Submit the PIN and confirm the vehicle release."""
    body = body or ConfirmRequest()
    result = ctx.gateway.confirm(token, body.pin, body.confirmed_by)
    return envelope(result, msg="VEHICLE RELEASE CONFIRMED")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI app.

    When no context is given one is built from environment settings at
    startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "context", None) is None:
            settings = get_settings()
            configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
            owned = build_context(settings)
            app.state.context = owned
        logger.info("server_started", version=app.version)
        yield
        if owned is not None:
            owned.close()
        logger.info("server_stopped")

    settings = context.settings if context else get_settings()
    app = FastAPI(
        title=f"{settings.APP_NAME} Release API",
        description="Vehicle release portal: load records, QR documents and one-time PIN release.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.context = context

    @app.exception_handler(ReleaseError)
    async def release_error_handler(request: Request, exc: ReleaseError):
        return JSONResponse(status_code=exc.status_code, content={"msg": exc.message})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"msg": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0]
        # Drop the leading "path"/"query"/"header"/"body" marker
        loc = [str(part) for part in first.get("loc", ())]
        location = ".".join(loc[1:]) or ".".join(loc)
        return JSONResponse(status_code=400, content={"msg": f"{location}: {first['msg']}"})

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    def health_check(ctx: AppContext = Depends(get_context)):
        """Health check endpoint for monitoring and load balancers."""
        try:
            ctx.repository.get_stats()
            db_connected = True
        except Exception:
            logger.warning("health_db_unreachable", exc_info=True)
            db_connected = False

        return HealthResponse(
            status="healthy" if db_connected else "degraded",
            version=settings.APP_VERSION,
            timestamp=utc_now().isoformat(),
            database_connected=db_connected,
        )

    app.include_router(loads_router)
    app.include_router(verify_router)
    return app

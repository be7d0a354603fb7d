"""
FastAPI app assembly: middleware and router wiring.
Includes the cross-cutting health, identity and build endpoints.
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from starlette.requests import Request
from starlette.responses import JSONResponse

load_dotenv()

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from actify.db.database import get_db  # noqa: E402
from actify.api.auth import get_or_create_user, get_user_memberships, resolve_identity_from_headers  # noqa: E402
from actify.api.analytics import router as analytics_router  # noqa: E402
from actify.api.attendance import router as attendance_router  # noqa: E402
from actify.api.audits import router as audits_router  # noqa: E402
from actify.api.budget_stock import router as budget_stock_router  # noqa: E402
from actify.api.calendar import router as calendar_router  # noqa: E402
from actify.api.facilities import router as facilities_router  # noqa: E402
from actify.api.notes import router as notes_router  # noqa: E402
from actify.api.notifications import router as notifications_router  # noqa: E402
from actify.api.one_on_one import router as one_on_one_router  # noqa: E402
from actify.api.reports import router as reports_router  # noqa: E402
from actify.api.resident_council import router as resident_council_router  # noqa: E402
from actify.api.residents import router as residents_router  # noqa: E402
from actify.api.settings import router as settings_router  # noqa: E402
from actify.api.templates import router as templates_router  # noqa: E402
from actify.api.volunteers import router as volunteers_router  # noqa: E402
from actify.utils.role_permissions import ROLE_LABELS  # noqa: E402
from actify.utils.runtime import DEV_USER_EMAIL, DEV_USER_NAME, dev_mode_active  # noqa: E402

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="Actify Activity Department Service",
    description="API for long-term care activity departments: calendar, attendance, notes, "
                "resident council, budget and stock, volunteers, analytics and reports.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
]
origins.extend(o.strip() for o in os.getenv("CORS_EXTRA_ORIGINS", "").split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")
IDENTITY_HEADERS = ("x-auth-request-user", "x-auth-request-email", "x-forwarded-user", "x-forwarded-email")


# Middleware: enforce read-only for unauthenticated requests
@app.middleware("http")
async def enforce_readonly_for_guests(request: Request, call_next):
    if request.method in WRITE_METHODS and os.getenv("DEV_MODE", "false").lower() != "true":
        if not any(request.headers.get(name) for name in IDENTITY_HEADERS):
            return JSONResponse(
                {"detail": "Guest mode is read-only. Sign in to perform changes."},
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
    return await call_next(request)


router = APIRouter()


@router.get("/user-info")
def get_user_info(
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    """
    Return authenticated user info and facility memberships.
    - Dev mode (DEV_MODE=true): returns a stable dev user and ensures it exists.
    - Normal mode: reads headers set by oauth2-proxy, upserts user, and returns memberships.
    """
    try:
        is_dev_mode = dev_mode_active()
    except RuntimeError as exc:
        logger.error("DEV_MODE misconfiguration detected: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="DEV_MODE misconfigured")

    if is_dev_mode:
        name, email = DEV_USER_NAME, DEV_USER_EMAIL
    else:
        name, email = resolve_identity_from_headers(
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )
    if not email:
        return {"authenticated": False}

    user = get_or_create_user(db, email=email, display_name=name)
    memberships = get_user_memberships(db, user.id)
    return {
        "authenticated": True,
        "user_id": str(user.id),
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": bool(user.is_superadmin),
        "memberships": [{**m, "role_label": ROLE_LABELS.get(m["role"], m["role"])} for m in memberships],
    }


@router.get("/build-info")
def get_build_info():
    """Return build and deployment information for the running service."""
    return {
        "build_sha": os.getenv("BUILD_SHA") or None,
        "build_timestamp": os.getenv("BUILD_TIMESTAMP") or None,
        "image_tag": os.getenv("IMAGE_TAG") or None,
        "service_name": "actify-service",
        "version": os.getenv("VERSION", "unknown"),
    }


app.include_router(router)
app.include_router(facilities_router)
app.include_router(settings_router)
app.include_router(audits_router)
app.include_router(notifications_router)
app.include_router(residents_router)
app.include_router(calendar_router)
app.include_router(attendance_router)
app.include_router(notes_router)
app.include_router(templates_router)
app.include_router(one_on_one_router)
app.include_router(resident_council_router)
app.include_router(budget_stock_router)
app.include_router(volunteers_router)
app.include_router(analytics_router)
app.include_router(reports_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "actify-service"}

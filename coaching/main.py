from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pythonjsonlogger.json import JsonFormatter
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import settings
from .database import engine, init_db
from .rate_limit import limiter
from .api import routes_admin, routes_coursework, routes_parent, routes_teacher
from .auth.routes_auth import router as auth_router
from .auth.core import dummy_password_hash
from .auth.seed import seed_admin
from .auth.throttle import build_rate_limiter

# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------

def _configure_logging() -> None:
    """Configure structured JSON logging when log_format=json (default)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        handler.setFormatter(JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        ))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)

_configure_logging()

# Initialise database tables on startup
init_db()

# Seed the first admin if none exists
seed_admin()

# Build the dummy hash now so no login pays for it
dummy_password_hash()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.login_limiter.close()
    engine.dispose()


app = FastAPI(
    title="Coaching Service",
    version="1.0.0",
    description=(
        "Multi-role coaching backend for admins, teachers, students and parents: "
        "cookie sessions, throttled login, account management, coursework and parent notifications."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Login throttling (counter store chosen by COACH_RATE_LIMIT_BACKEND)
app.state.login_limiter = build_rate_limiter(settings)

# Registration rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(routes_parent.router)
app.include_router(routes_admin.router)
app.include_router(routes_teacher.router)
app.include_router(routes_coursework.teacher_router)
app.include_router(routes_coursework.student_router)


@app.get("/", tags=["meta"])
def root() -> dict:
    return {"status": "ok", "service": "coaching-service", "version": "1.0.0"}


@app.get("/health", tags=["meta"])
def health() -> dict:
    return {"status": "healthy"}


@app.get("/healthz", tags=["meta"])
def healthz() -> dict:
    """Lightweight health check for load balancer probes."""
    return {"status": "ok"}

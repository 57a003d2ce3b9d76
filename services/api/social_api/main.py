"""
Social Post API — entry point.

Startup sequence:
  1. Configure logging and OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Initialise MinIO client & bucket
  4. Expose Prometheus /metrics endpoint

Run with:  uvicorn social_api.main:app --host 0.0.0.0 --port 8000
"""
import logging
import time
from datetime import datetime, timezone

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from social_api.config import settings
from social_api.database import init_db
from social_api.errors import register_exception_handlers
from social_api.telemetry import HTTP_REQUESTS_TOTAL, instrument_app, setup_tracing
from social_api.clients.minio_client import init_minio
from social_api.routers import auth, messages, posts, users

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Social Post API (env=%s)", settings.environment)

    await init_db()
    init_minio()                    # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Social Post API",
    description=(
        "Accounts, posts with likes and comments, a follow graph and "
        "direct messaging with per-contact conversation summaries."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=settings.frontend_url != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    HTTP_REQUESTS_TOTAL.labels(method=request.method, status=str(response.status_code)).inc()
    logger.info(
        "%s %s -> %d (%.1fms)",
        request.method, request.url.path, response.status_code, elapsed_ms,
    )
    return response


# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/api/health", tags=["Health"])
async def health():
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.service_name,
    }


@app.get("/", tags=["Health"])
async def root():
    return {
        "success": True,
        "message": "Welcome to Social Post API",
        "version": app.version,
        "endpoints": {
            "auth": "/api/auth",
            "posts": "/api/posts",
            "users": "/api/users",
            "messages": "/api/messages",
            "health": "/api/health",
        },
    }

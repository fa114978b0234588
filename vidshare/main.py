"""
VidShare API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Initialise MinIO client & bucket
  4. Expose Prometheus /metrics endpoint

Run with ``uvicorn vidshare.main:app``.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from vidshare.config import settings
from vidshare.database import engine, init_db
from vidshare.errors import register_exception_handlers
from vidshare.telemetry import setup_tracing, instrument_app
from vidshare.clients.media_store import init_media_store
from vidshare.routers import auth, comments, dashboard, likes, playlists, subscriptions, tweets, videos
from vidshare.schemas import ApiResponse, HealthStatus, respond

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting VidShare API (env=%s)", settings.environment)

    await init_db()
    init_media_store()              # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title="VidShare API",
    description=(
        "Video sharing backend: uploads, comments, likes, subscriptions, "
        "playlists and watch history."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(videos.router, prefix="/videos", tags=["Videos"])
app.include_router(comments.router, prefix="/comments", tags=["Comments"])
app.include_router(likes.router, prefix="/likes", tags=["Likes"])
app.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(playlists.router, prefix="/playlists", tags=["Playlists"])
app.include_router(tweets.router, prefix="/tweets", tags=["Tweets"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"], response_model=ApiResponse[HealthStatus])
async def health():
    return respond(
        HealthStatus(status="ok", service=settings.service_name),
        "Everything looks good! Server is healthy and running",
    )

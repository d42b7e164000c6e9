"""FastAPI application wiring for SolaraControl mission control.

This module bootstraps the HTTP API around the orchestration core:

- Configures logging, optional CORS for the admin UI, Prometheus metrics
  and rate limiting.
- Mounts the orchestrator/audit API and the Telegram webhook.
- Exposes health and version probes.

Completion calls go to an OpenAI-compatible endpoint configured through
``AI_INTEGRATIONS_OPENAI_BASE_URL`` and ``AI_INTEGRATIONS_OPENAI_API_KEY``.
Without a key the orchestrator still answers, using its fallback replies.
"""

import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .routers import orchestrator, webhooks
from .services import ensure_schema

load_dotenv()

RATE_LIMIT = os.getenv("RATE_LIMIT", "120/minute")


def get_client_ip(request: Request) -> str:
    """Extract a best-effort client IP for rate limiting.

    Prefer ``X-Forwarded-For`` (first hop) if present, otherwise use the
    socket peer address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=get_client_ip, default_limits=[RATE_LIMIT])

app = FastAPI(title="SolaraControl", version=__version__)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
# Optional CORS for admin UI
admin_ui_origins = os.getenv("ADMIN_UI_ORIGINS")
if admin_ui_origins:
    origins = [o.strip() for o in admin_ui_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(orchestrator.router)
app.include_router(webhooks.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.on_event("startup")
def _prepare_storage() -> None:
    if os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true":
        ensure_schema()


@app.get("/api/health")
async def health():
    """Liveness/readiness probe with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }

"""
Lead Engine API - Main Application.

Exposes the synchronous lead mutation path over HTTP. Batch automation is not
reachable from here; it runs from `scripts/run_lead_automation.py` on cron.

Environment variables (optional):
- LEAD_ENGINE_CORS_ORIGINS: comma-separated allowed origins (default "*")
"""

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import leads


def _cors_origins() -> list[str]:
    raw = os.getenv("LEAD_ENGINE_CORS_ORIGINS") or "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app = FastAPI(
    title="Lead Engine API",
    description="Lead intake, updates and status changes; scoring, temperature and follow-up scheduling run after each response",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness probe. Does not touch Supabase."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": "lead-engine-api",
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "service": "Lead Engine API",
        "version": __version__,
        "docs": "/docs",
        "leads": "/api/v1/leads",
    }

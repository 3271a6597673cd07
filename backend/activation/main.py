"""Reference activation service.

Implements the profile and document contract the sync client talks to,
backed by an in-memory store. Used for local development and end-to-end
tests of the client; it has no persistence and no approval rules.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from activation.config import settings
from activation.middleware.exceptions import register_exception_handlers
from activation.routers import documents, health, profile

app = FastAPI(
    title="Activation Service",
    description="Activation profile and document endpoints",
    version="0.1.0",
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
# Credentials are required: the session token travels as a cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(profile.router, prefix="/api/activation", tags=["activation"])
app.include_router(documents.router, prefix="/api/activation", tags=["documents"])

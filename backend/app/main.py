"""zCorvus backend application.

Wires up the auth, two-factor, token and user routers, the exception
handlers and the in-memory store for pending 2FA secrets.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.error_handling import register_exception_handlers
from app.api.routes import auth, tokens, two_factor, users
from app.config import settings
from app.core.cache import InMemoryTTLCache
from app.core.clock import utcnow
from app.db import dispose_db, init_db

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await init_db()
    logger.info("Database initialised")
    app.state.secret_cache = InMemoryTTLCache()
    yield
    app.state.secret_cache.clear()
    await dispose_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description="Authentication backend with JWT sessions, TOTP 2FA and Pro entitlements",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(two_factor.router)
app.include_router(tokens.router)
app.include_router(users.router)


@app.get("/", tags=["health"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/api/health", tags=["health"])
async def health():
    """API health check."""
    return {"status": "OK", "timestamp": utcnow().isoformat()}

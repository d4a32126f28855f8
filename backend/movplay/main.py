"""
MovPlay API — FastAPI application entry point.

Routers are registered here. Each resource lives in movplay/api/.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from movplay.core.config import settings
from movplay.api import auth, movies, reviews, social, users, watchlists
from movplay.api.errors import register_exception_handlers

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="MovPlay API",
    description="Movie discovery, reviews, favorites and watchlists on top of TMDB.",
    version="1.0.0",
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Errors ────────────────────────────────────────────────────────────────────
register_exception_handlers(app)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(auth.router,       prefix="/auth",       tags=["auth"])
app.include_router(movies.router,     prefix="/movies",     tags=["movies"])
app.include_router(reviews.router,    prefix="/reviews",    tags=["reviews"])
app.include_router(users.router,      prefix="/users",      tags=["users"])
app.include_router(watchlists.router, prefix="/watchlists", tags=["watchlists"])
app.include_router(social.router,     prefix="/social",     tags=["social"])


# ── Health check ──────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
def health_check() -> dict:
    """Liveness check. Returns 200 when the server is up."""
    return {"status": "ok", "version": app.version, "env": settings.APP_ENV}


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting MovPlay API on port %s", settings.PORT)
    uvicorn.run("movplay.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.is_dev)

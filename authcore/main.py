"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authcore.api.v1 import router as v1_router
from authcore.core.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="authcore API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Cookies carry the refresh token, so origins are listed explicitly (no "*").
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

logger.info(
    "Config: env=%s access_ttl_min=%s refresh_ttl_days=%s privilege_cache_ttl=%s",
    settings.APP_ENV,
    settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    settings.REFRESH_TOKEN_EXPIRE_DAYS,
    settings.PRIVILEGE_CACHE_TTL_SEC,
)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "authcore API"}

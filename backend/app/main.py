import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.config import settings
from app.database import engine
from app.middleware.logging import RequestLoggingMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)

logger = logging.getLogger("customs.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting customs engine (env=%s, default origin=%s, blocs=%s, auto-approve at %d)",
        settings.environment,
        settings.default_origin,
        ",".join(sorted(settings.geographic_blocs)) or "none",
        settings.auto_approve_confidence,
    )
    yield
    await engine.dispose()
    logger.info("Customs engine stopped; database pool disposed")


app = FastAPI(
    title="Customs Engine - Import Classification, Tax and Risk",
    description=(
        "Tariff classification matching with human review, import tax cascade and "
        "customs value, declared-value and inspection risk, lower-tax code recommendations"
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(RequestLoggingMiddleware, slow_request_ms=settings.slow_request_ms)

app.include_router(api_router, prefix="/api")

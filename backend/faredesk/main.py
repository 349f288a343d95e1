import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from faredesk.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "faredesk.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from faredesk.database import engine
from faredesk.routers import markups, offers, orders, search
from faredesk.services.booking_client import booking_client
from faredesk.services.cache_service import cache_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"FareDesk starting, booking API at {settings.booking_api_base_url}")

    yield

    # Shutdown
    await booking_client.close()
    await cache_service.close()
    await engine.dispose()
    logger.info("FareDesk stopped")


app = FastAPI(
    title="FareDesk",
    description="Flight booking fare, markup and order service",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router, prefix="/api/search", tags=["search"])
app.include_router(offers.router, prefix="/api/offers", tags=["offers"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(markups.router, prefix="/api/markups", tags=["markups"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "faredesk"}

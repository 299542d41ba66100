# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.errors import AppError, ValidationError
from app.core.realtime import get_registry
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import user as _user_models  # noqa: F401
from app.models import store as _store_models  # noqa: F401
from app.models import product as _product_models  # noqa: F401
from app.models import order as _order_models  # noqa: F401


# Routers
from app.routers.users import router as users_router
from app.routers.orders import router as orders_router
from app.routers.stats import router as stats_router
from app.routers.admin_stats import router as admin_stats_router
from app.routers.notifications import router as notifications_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - Close every open notification socket.
    """
    logger.info("Startup: connecting to the database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield
    registry = get_registry()
    logger.info(f"Shutdown: closing {registry.active_count} notification socket(s)")
    await registry.close_all()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render business errors as {"error": ..., **context}."""
    return JSONResponse(status_code=exc.status_code, content=exc.detail)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Malformed payloads use the same body shape as business errors,
    with the per-field problems under "fields".
    """
    return JSONResponse(
        status_code=ValidationError.http_status,
        content={"error": "Invalid request", "fields": jsonable_encoder(exc.errors())},
    )


# Versioned API prefix, e.g. /api/v1
app.include_router(users_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(stats_router, prefix=settings.API_V1_STR)
app.include_router(admin_stats_router, prefix=settings.API_V1_STR)
app.include_router(notifications_router)


@app.get("/")
def root():
    return {"status": "ok", "service": "delivery-orders"}


@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "active_connections": get_registry().active_count,
    }

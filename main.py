import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path

from api.router import api_router
from core.config import settings
from db.db_base import close_all_connections, init_connection_pool
from db.init_db import maybe_init_schema

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if maybe_init_schema():
        logger.warning("AUTO_CREATE_TABLES set: schema dropped and recreated")
    logger.info("Initializing database tables...")
    init_connection_pool()
    logger.info("Petagri backend API is running")
    yield
    logger.info("Closing database connections...")
    close_all_connections()


app = FastAPI(
    title="Petagri API",
    version="1.0.0",
    description="API Backend Service for Petagri: konsultasi kebun, tender pupuk, dan distribusi",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Authentication routes"},
        {"name": "Konsultasi", "description": "Farms, consultants, visits and visit reports"},
        {"name": "Tender", "description": "Tender assignments, offerings and winner selection"},
        {"name": "Distribusi", "description": "Drivers and surat jalan"},
        {"name": "Produk & Mitra", "description": "Partner stores and their products"},
        {"name": "Roles", "description": "Role catalogue and menu access"},
        {"name": "Dashboard", "description": "Admin dashboard counts"},
    ],
)

if settings.ENVIRONMENT == "production":
    logger.warning(f"CORS origins in production: {settings.CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(api_router)

# Serve uploaded field photos under the URL save_upload_file returns
UPLOAD_DIR = Path(settings.UPLOAD_ROOT)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}

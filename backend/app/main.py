import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api.routes.insights import router as insights_router
from backend.app.db import init_db
from backend.app.services.insights_service import get_insight_config


logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS")
    if raw is None:
        origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
    else:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not be empty.")
    return origins


def _auto_create_tables() -> bool:
    return os.getenv("INSIGHTS_AUTO_CREATE_TABLES", "").strip().lower() in {"1", "true", "yes"}


app = FastAPI(title="Procurement Insights API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup_checks():
    # Invalid INSIGHTS_* settings fail here, once.
    get_insight_config()
    if _auto_create_tables():
        logger.info("[insights] creating purchase history tables")
        init_db()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(insights_router)

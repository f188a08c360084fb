"""
TradeMart API application.
"""
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from trademart.api import (
    admin, audit, auth, escrow, notifications, orders, products, qc, quotes, rfqs, suppliers, transactions,
)
from trademart.core.config import settings
from trademart.core.errors import register_exception_handlers
from trademart.core.logging import get_logger, setup_logging
from trademart.db.session import get_db, init_db

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")
    init_db()
    yield
    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for module in (
    auth, suppliers, products, rfqs, quotes, transactions, orders, escrow, qc, notifications, audit, admin,
):
    app.include_router(module.router)


@app.get("/api/health", tags=["Health"])
async def health(db: Session = Depends(get_db)):
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check database ping failed: {e}")
        database = "unavailable"

    return {
        "success": True,
        "data": {
            "status": "ok" if database == "ok" else "degraded",
            "database": database,
            "version": settings.APP_VERSION,
        },
    }


if __name__ == "__main__":
    uvicorn.run("trademart.main:app", host="0.0.0.0", port=8000)

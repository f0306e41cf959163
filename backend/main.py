"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from api import accounts, chat, plaid, session
from config import settings
from database import get_db, init_db, ping
from logging_config import setup_logging
from schemas import ConnectionStatus
from services.credential_manager import log_missing_credentials

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    try:
        init_db()
    except Exception:
        logger.warning("Database initialization failed on startup", exc_info=True)
    log_missing_credentials(settings.model_dump())
    yield


app = FastAPI(
    title="DoughJo",
    description="Bank linking, balances and session security for DoughJo",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(accounts.router)
app.include_router(chat.router)
app.include_router(plaid.router)
app.include_router(session.router)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint, including database reachability."""
    status = ConnectionStatus.connected if ping(db) else ConnectionStatus.error
    return {"status": "ok", "database": status}

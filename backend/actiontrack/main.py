from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from . import config
from .api import admin, auth, public, user
from .database import engine, init_db
from .errors import register_error_handlers
from .logging_config import LOGGER_NAME, configure_logging
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .schemas import envelope
from .time_window import policy_timezone, system_clock, to_wire
from .users import ensure_default_admin

logger = logging.getLogger(LOGGER_NAME)

VERSION = "1.0.0"


def bootstrap(bind=None) -> None:
    """Create tables and repair the bootstrap-admin invariant."""
    bind = bind or engine
    init_db(bind)
    with Session(bind) as session:
        ensure_default_admin(session, config.ADMIN_USERNAME, config.ADMIN_PASSWORD)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    # 不正なタイムゾーン設定は起動時に失敗させます
    policy_timezone()
    logger.info("Starting User Action Tracking System (timezone=%s)", config.ACTION_TIMEZONE)
    try:
        bootstrap()
    except OperationalError as exc:
        # ストアに接続できなくても起動は続けます (永続化系の操作は 503 になります)
        logger.warning("Database unavailable at startup, continuing without it: %s", exc.orig)
    yield


app = FastAPI(title="User Action Tracking System", version=VERSION, lifespan=lifespan)

# 後に追加したものが外側になります (429 にもリクエスト ID と CORS ヘッダーが付きます)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(public.router)
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(user.router)


@app.get("/api/health")
def health():
    return envelope({"timestamp": to_wire(system_clock())}, message="Server is running")


@app.get("/")
def root():
    return envelope(
        {
            "version": VERSION,
            "endpoints": {
                "auth": "/api/auth",
                "admin": "/api/admin",
                "user": "/api/user",
                "public": "/api/public",
                "health": "/api/health",
            },
        },
        message="User Action Tracking System API",
    )


def run() -> None:
    """Serve the app with uvicorn (``actiontrack`` console script)."""
    uvicorn.run(
        "actiontrack.main:app",
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()

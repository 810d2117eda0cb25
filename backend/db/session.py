from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy import event
from core.config import settings
import logging

Base = declarative_base()
logger = logging.getLogger(__name__)

def _to_async_database_url(url: str) -> str:
    if not url:
        return url
    # Prefer aiomysql for MySQL URLs
    if url.startswith("mysql+pymysql://"):
        return url.replace("mysql+pymysql://", "mysql+aiomysql://", 1)
    if url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+aiomysql://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url

def build_engine(url: str) -> AsyncEngine:
    """Async engine for ``url``; pool tuning only applies to server databases."""
    url = _to_async_database_url(url)
    if url.startswith("sqlite"):
        return create_async_engine(url, future=True, echo=False)
    # pool_recycle below the server wait_timeout, short pool_timeout
    return create_async_engine(
        url,
        future=True,
        echo=False,
        pool_pre_ping=settings.DB_PRE_PING,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args={
            "connect_timeout": settings.DB_CONNECT_TIMEOUT,
        },
    )

def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )

if not settings.USE_MONGO:
    engine = build_engine(settings.DATABASE_URL)
    SessionLocal = build_session_factory(engine)

    # Lightweight pool logging
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        logger.debug("DB connect: id=%s", id(connection_record))

    @event.listens_for(engine.sync_engine, "close")
    def _on_close(dbapi_connection, connection_record):
        logger.debug("DB close: id=%s", id(connection_record))
else:
    engine = None  # type: ignore
    SessionLocal = None  # type: ignore

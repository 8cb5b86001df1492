import ssl
from collections.abc import AsyncGenerator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from article_engagement.config import settings


def _async_url_and_connect_args(url: str) -> tuple[str, dict]:
    """Strip sslmode/channel_binding from the URL (asyncpg doesn't accept them) and pass SSL via connect_args."""
    if "sslmode=require" in url:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        # Remove params that asyncpg doesn't accept as URL/keyword args
        for param in ["sslmode=require", "channel_binding=require"]:
            url = url.replace(f"?{param}&", "?").replace(f"&{param}", "").replace(f"?{param}", "")
        return url, {"ssl": ctx}
    return url, {}


def _configure_sqlite(engine: Engine) -> None:
    """Enforce foreign keys and make every SQLite transaction take the write lock up front.

    pysqlite/aiosqlite defer BEGIN until the first write, which lets two
    transactions read the same state before either writes. BEGIN IMMEDIATE
    serializes writers for the whole transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_async_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False, connect_args={"timeout": 30})
        _configure_sqlite(engine.sync_engine)
        return engine

    url, connect_args = _async_url_and_connect_args(url)
    return create_async_engine(
        url, echo=False, connect_args=connect_args,
        pool_size=5, max_overflow=10, pool_pre_ping=True, pool_recycle=300,
    )


def build_sync_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"timeout": 30})
        _configure_sqlite(engine)
        return engine
    return create_engine(url, echo=False, pool_pre_ping=True)


# Async engine for FastAPI
async_engine = build_async_engine(settings.database_url)
AsyncSessionLocal = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

# Sync engine for CLI maintenance commands
sync_engine = build_sync_engine(settings.database_url_sync)
SyncSessionLocal = sessionmaker(sync_engine, class_=Session, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session

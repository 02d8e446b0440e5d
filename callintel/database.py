"""Async SQLite store for call records and their derived rows."""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from . import models  # noqa: F401  (registers tables on SQLModel.metadata)
from .core.logging import get_logger

log = get_logger("database")

# Seconds a writer waits on a locked database before failing.
BUSY_TIMEOUT = 30


def _configure_sqlite(dbapi_connection, _record):
    # WAL lets readers proceed while unrelated calls insert.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT * 1000}")
    cursor.close()


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.database_url = f"sqlite+aiosqlite:///{db_path}"
        self.engine = create_async_engine(
            self.database_url,
            echo=False,
            connect_args={"timeout": BUSY_TIMEOUT},
        )
        event.listen(self.engine.sync_engine, "connect", _configure_sqlite)
        self.async_session = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def connect(self):
        """Create tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        log.info(f"Database ready at {self.db_path}")

    async def close(self):
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        """Get a new async session."""
        return self.async_session()

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine

from cluster_monitor.core.exceptions import ConnectionSetupError
from cluster_monitor.core.logging_config import get_logger

logger = get_logger("database")


# Lazy initialization to prevent import-time loop binding issues
class Database:
    """
    One long-lived engine per backing store.
    The pool is capped at a single connection: the monitor runs one statement at a time.
    """

    def __init__(self, name: str, url: str):
        self.name = name
        self.url = url
        self._engine = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            kwargs = {"echo": False}
            if make_url(self.url).get_backend_name() != "sqlite":
                kwargs.update(pool_size=1, max_overflow=0, pool_pre_ping=True)
            self._engine = create_async_engine(self.url, **kwargs)
        return self._engine

    async def connect(self):
        try:
            engine = self.engine
            logger.info("dsn_check_success", store=self.name)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            raise ConnectionSetupError(self.name, str(e)) from e
        logger.info("database_connected", store=self.name)

    async def dispose(self):
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

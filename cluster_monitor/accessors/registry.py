"""
Operations store: the cluster registry and the per-cluster statistics row.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from cluster_monitor.core.logging_config import get_logger
from cluster_monitor.db.models import Cluster, ClusterStats
from cluster_monitor.schemas.stats import ClusterStatsSnapshot

logger = get_logger("registry_accessor")

_NON_KEY_COLUMNS = [c.name for c in ClusterStats.__table__.columns if not c.primary_key]


def build_upsert(dialect_name: str, row: dict):
    """INSERT ... that overwrites every non-key column when the cluster row already exists."""
    if dialect_name == "mysql":
        stmt = mysql.insert(ClusterStats).values(**row)
        return stmt.on_duplicate_key_update({c: stmt.inserted[c] for c in _NON_KEY_COLUMNS})

    if dialect_name == "postgresql":
        stmt = postgresql.insert(ClusterStats).values(**row)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(ClusterStats).values(**row)
    else:
        raise NotImplementedError(f"upsert not supported for dialect {dialect_name}")
    return stmt.on_conflict_do_update(
        index_elements=[ClusterStats.cluster_name],
        set_={c: stmt.excluded[c] for c in _NON_KEY_COLUMNS},
    )


class SqlRegistryAccessor:
    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._session_maker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def list_clusters(self) -> List[str]:
        async with self._session_maker() as session:
            result = await session.execute(select(Cluster.cluster_name).order_by(Cluster.id))
            return list(result.scalars().all())

    async def upsert_snapshot(self, snapshot: ClusterStatsSnapshot) -> None:
        stmt = build_upsert(self._engine.dialect.name, snapshot.to_row())
        async with self._session_maker() as session:
            try:
                await session.execute(stmt)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.debug("snapshot_upserted", cluster=snapshot.cluster_name)

    async def get_snapshot(self, cluster: str) -> Optional[dict]:
        async with self._session_maker() as session:
            result = await session.execute(select(ClusterStats).where(ClusterStats.cluster_name == cluster))
            row = result.scalars().first()
        if row is None:
            return None
        return {c.name: getattr(row, c.name) for c in ClusterStats.__table__.columns}

from sqlalchemy.ext.asyncio import AsyncEngine

from cluster_monitor.db.models import OpsBase


async def init_ops_schema(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(OpsBase.metadata.create_all)

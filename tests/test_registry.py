import pytest
from decimal import Decimal
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cluster_monitor.accessors.registry import SqlRegistryAccessor, build_upsert
from cluster_monitor.db.models import Cluster, ClusterStats
from cluster_monitor.schemas.stats import ClusterStatsSnapshot, MachineStatusCounts


def make_snapshot(name="alpha", expected="7000", power=3.5, active=3):
    return ClusterStatsSnapshot(
        cluster_name=name,
        machines=MachineStatusCounts(total=active + 2, active=active, inactive=1, failed=1, invalid=0),
        last_24h_power=power,
        last_epoch_power=4.0,
        yesterday_reward=12.5,
        today_reward=3.25,
        expected_reward=Decimal(expected),
    )


async def count_rows(engine):
    async with AsyncSession(engine) as session:
        return (await session.execute(select(func.count()).select_from(ClusterStats))).scalar()


@pytest.mark.asyncio
async def test_list_clusters_in_registry_order(ops_engine):
    async with AsyncSession(ops_engine) as session:
        session.add_all([Cluster(id=1, cluster_name="beta"), Cluster(id=2, cluster_name="alpha")])
        await session.commit()

    registry = SqlRegistryAccessor(ops_engine)

    assert await registry.list_clusters() == ["beta", "alpha"]


@pytest.mark.asyncio
async def test_list_clusters_empty(ops_engine):
    assert await SqlRegistryAccessor(ops_engine).list_clusters() == []


@pytest.mark.asyncio
async def test_upsert_inserts_row(ops_engine):
    registry = SqlRegistryAccessor(ops_engine)

    await registry.upsert_snapshot(make_snapshot(expected="7000.000"))

    row = await registry.get_snapshot("alpha")
    assert row["total"] == 5
    assert row["active"] == 3
    assert row["last_24h_power"] == pytest.approx(3.5)
    # stored as exact decimal text
    assert row["expected_reward"] == "7000"


@pytest.mark.asyncio
async def test_upsert_is_idempotent(ops_engine):
    registry = SqlRegistryAccessor(ops_engine)
    snapshot = make_snapshot()

    await registry.upsert_snapshot(snapshot)
    first = await registry.get_snapshot("alpha")
    await registry.upsert_snapshot(snapshot)
    second = await registry.get_snapshot("alpha")

    assert first == second
    assert await count_rows(ops_engine) == 1


@pytest.mark.asyncio
async def test_upsert_overwrites_every_column(ops_engine):
    registry = SqlRegistryAccessor(ops_engine)
    await registry.upsert_snapshot(make_snapshot())

    await registry.upsert_snapshot(make_snapshot(expected="0.123456789012345678901234567", power=0.0, active=0))

    row = await registry.get_snapshot("alpha")
    assert row["active"] == 0
    assert row["total"] == 2
    assert row["last_24h_power"] == 0.0
    assert row["expected_reward"] == "0.123456789012345678901234567"
    assert await count_rows(ops_engine) == 1


@pytest.mark.asyncio
async def test_get_snapshot_missing(ops_engine):
    assert await SqlRegistryAccessor(ops_engine).get_snapshot("nobody") is None


def test_mysql_upsert_uses_on_duplicate_key():
    from sqlalchemy.dialects import mysql

    stmt = build_upsert("mysql", make_snapshot().to_row())
    sql = str(stmt.compile(dialect=mysql.dialect()))

    assert "ON DUPLICATE KEY UPDATE" in sql
    assert "expected_reward = " in sql
    assert "cluster_name = " not in sql


def test_unsupported_dialect():
    with pytest.raises(NotImplementedError):
        build_upsert("oracle", make_snapshot().to_row())

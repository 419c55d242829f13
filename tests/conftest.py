import pytest
import pytest_asyncio
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from cluster_monitor.core.config import Settings
from cluster_monitor.db.init_db import init_ops_schema
# Explicit import to ensure metadata is populated
from cluster_monitor.db.models import SourceBase
from cluster_monitor.schemas.stats import MachineStatusCounts, NetworkRewardParameters

# 2024-05-10 20:00 in Asia/Shanghai
FIXED_NOW = datetime(2024, 5, 10, 12, 0, 0, tzinfo=timezone.utc)


def fixed_now():
    return FIXED_NOW


def sqlite_engine():
    # One shared in-memory database per engine
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
def settings():
    return Settings(
        SOURCE_DSN="sqlite+aiosqlite://",
        OPS_DSN="sqlite+aiosqlite://",
        INTERVAL_MINUTES=2,
        _env_file=None,
    )


@pytest_asyncio.fixture
async def source_engine():
    engine = sqlite_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SourceBase.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def ops_engine():
    engine = sqlite_engine()
    await init_ops_schema(engine)
    yield engine
    await engine.dispose()


# --- In-memory fakes ---

def default_metrics():
    return {
        "machine_status": MachineStatusCounts(total=4, active=1, inactive=1, failed=1, invalid=1),
        "last_24h_power": 3.5,
        "last_epoch_power": 4.0,
        "yesterday_reward": 12.5,
        "today_reward": 3.25,
        # 86400 / 43200 = 2 -> reward per unit 2000, expected reward 7000
        "network_parameters": NetworkRewardParameters(
            avg_reward=Decimal("0.001"), avg_proof_target=Decimal(43200)
        ),
    }


class FakeSource:
    def __init__(self, values=None, fail=None):
        self.values = values or {}
        self.fail = set(fail or [])  # {(cluster, step)}
        self.calls = []
        self._current = None

    async def _answer(self, step, cluster):
        self.calls.append((cluster, step))
        if (cluster, step) in self.fail:
            raise RuntimeError(f"simulated {step} failure")
        return self.values.get(cluster, default_metrics())[step]

    async def machine_status_counts(self, cluster):
        self._current = cluster
        return await self._answer("machine_status", cluster)

    async def last_24h_power(self, cluster):
        return await self._answer("last_24h_power", cluster)

    async def last_epoch_power(self, cluster):
        return await self._answer("last_epoch_power", cluster)

    async def yesterday_reward(self, cluster):
        return await self._answer("yesterday_reward", cluster)

    async def today_reward(self, cluster):
        return await self._answer("today_reward", cluster)

    async def network_reward_parameters(self):
        # network-wide, so attribute the call to the cluster being processed
        return await self._answer("network_parameters", self._current)


class FakeRegistry:
    def __init__(self, clusters, rows=None, fail_list=False, fail_write=()):
        self.clusters = list(clusters)
        self.rows = dict(rows or {})
        self.fail_list = fail_list
        self.fail_write = set(fail_write)
        self.writes = []

    async def list_clusters(self):
        if self.fail_list:
            raise ConnectionError("ops database went away")
        return list(self.clusters)

    async def upsert_snapshot(self, snapshot):
        if snapshot.cluster_name in self.fail_write:
            raise RuntimeError("deadlock found when trying to get lock")
        self.rows[snapshot.cluster_name] = snapshot.to_row()
        self.writes.append(snapshot.cluster_name)

    async def get_snapshot(self, cluster):
        return self.rows.get(cluster)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()

"""
Queries against the mining/fleet source store.
Every method is one independent read; nothing here holds a transaction across calls.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from cluster_monitor.core.logging_config import get_logger
from cluster_monitor.db.models import Block, Distributor, EpochDistributor, Machine, MinerAccount, Solution
from cluster_monitor.schemas.stats import MachineStatusCounts, NetworkRewardParameters
from cluster_monitor.services import power, rewards

logger = get_logger("source_accessor")

ACTIVE_WINDOW_SECONDS = 600
FAILED_AFTER_SECONDS = 86400
NETWORK_WINDOW_SECONDS = 86400


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqlSourceAccessor:
    def __init__(self, engine: AsyncEngine, report_tz: ZoneInfo, now: Optional[Callable[[], datetime]] = None):
        self._engine = engine
        self._tz = report_tz
        self._now = now or utc_now

    def _utc_now(self) -> datetime:
        return self._now().astimezone(timezone.utc)

    def _cluster_accounts(self, cluster: str):
        return select(MinerAccount.id).where(MinerAccount.name == cluster)

    def _local_today(self) -> date:
        return self._utc_now().astimezone(self._tz).date()

    def _local_day_bounds(self, day: date):
        """UTC [start, end) of a calendar day in the reporting timezone."""
        start = datetime.combine(day, time.min, tzinfo=self._tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self._tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    async def machine_status_counts(self, cluster: str) -> MachineStatusCounts:
        now_ts = int(self._utc_now().timestamp())
        active_since = now_ts - ACTIVE_WINDOW_SECONDS
        failed_before = now_ts - FAILED_AFTER_SECONDS
        last = Machine.last_commit_solution

        def bucket(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        stmt = (
            select(
                func.count(Machine.id),
                bucket(last >= active_since),
                bucket(and_(last < active_since, last >= failed_before)),
                bucket(last < failed_before),
                # Machine.id is NULL on the outer-join row of an account without machines
                bucket(and_(Machine.id.is_not(None), last.is_(None))),
            )
            .select_from(MinerAccount)
            .outerjoin(Machine, Machine.miner_account_id == MinerAccount.id)
            .where(MinerAccount.name == cluster)
        )

        async with self._engine.connect() as conn:
            row = (await conn.execute(stmt)).first()

        if row is None:
            return MachineStatusCounts()
        total, active, inactive, failed, invalid = (int(v or 0) for v in row)
        return MachineStatusCounts(total=total, active=active, inactive=inactive, failed=failed, invalid=invalid)

    async def last_24h_power(self, cluster: str) -> float:
        since = self._utc_now() - timedelta(hours=24)
        stmt = (
            select(EpochDistributor.epoch_time, EpochDistributor.hash_count)
            .where(
                EpochDistributor.epoch_time >= since,
                EpochDistributor.miner_account_id.in_(self._cluster_accounts(cluster)),
            )
            .order_by(EpochDistributor.epoch_time.asc())
        )
        async with self._engine.connect() as conn:
            samples = (await conn.execute(stmt)).all()
        return power.window_power([tuple(s) for s in samples])

    async def last_epoch_power(self, cluster: str) -> float:
        stmt = (
            select(EpochDistributor.epoch_time, EpochDistributor.hash_count)
            .where(EpochDistributor.miner_account_id.in_(self._cluster_accounts(cluster)))
            .order_by(EpochDistributor.epoch_time.desc())
            .limit(2)
        )
        async with self._engine.connect() as conn:
            samples = (await conn.execute(stmt)).all()
        return power.epoch_power([tuple(s) for s in samples])

    async def yesterday_reward(self, cluster: str) -> float:
        yesterday = self._local_today() - timedelta(days=1)
        # one stored total per account and day; a cluster may span several accounts
        stmt = select(func.coalesce(func.sum(Distributor.reward), 0)).where(
            Distributor.miner_account_id.in_(self._cluster_accounts(cluster)),
            Distributor.distributor_date == yesterday,
        )
        async with self._engine.connect() as conn:
            reward = (await conn.execute(stmt)).scalar()
        return float(reward or 0)

    async def today_reward(self, cluster: str) -> float:
        start, end = self._local_day_bounds(self._local_today())
        stmt = select(func.coalesce(func.sum(EpochDistributor.reward), 0)).where(
            EpochDistributor.miner_account_id.in_(self._cluster_accounts(cluster)),
            EpochDistributor.epoch_time >= start,
            EpochDistributor.epoch_time < end,
        )
        async with self._engine.connect() as conn:
            reward = (await conn.execute(stmt)).scalar()
        return float(reward or 0)

    async def network_reward_parameters(self) -> NetworkRewardParameters:
        cutoff = int(self._utc_now().timestamp()) - NETWORK_WINDOW_SECONDS

        reward_stmt = (
            select(func.avg(Solution.reward))
            .select_from(Solution)
            .join(Block, Block.height == Solution.height)
            .where(Block.timestamp > cutoff)
        )
        target_stmt = select(func.avg(Block.proof_target)).where(Block.timestamp > cutoff)

        async with self._engine.connect() as conn:
            avg_reward = (await conn.execute(reward_stmt)).scalar()
            avg_target = (await conn.execute(target_stmt)).scalar()

        params = NetworkRewardParameters(
            # solution rewards are stored in micro-units
            avg_reward=rewards.to_decimal(avg_reward) / rewards.MEGA,
            avg_proof_target=rewards.to_decimal(avg_target),
        )
        logger.debug(
            "network_parameters_raw",
            avg_reward=rewards.format_decimal(params.avg_reward),
            avg_proof_target=rewards.format_decimal(params.avg_proof_target),
        )
        return params

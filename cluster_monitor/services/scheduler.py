"""
Outer loop of the monitor.

Each cycle fetches the cluster list once and processes the clusters in order.
A failing step abandons that cluster for the cycle: the error is logged, the
loop sleeps one interval to throttle, and processing moves on to the next
cluster. The failed cluster is not retried until the next cycle.
"""
import asyncio
import time
from typing import Awaitable, Callable, Optional

from prometheus_client import Counter, Gauge, Histogram

from cluster_monitor.accessors.base import RegistryAccessor
from cluster_monitor.core.config import Settings
from cluster_monitor.core.exceptions import StepFailedError
from cluster_monitor.core.logging_config import get_logger
from cluster_monitor.schemas.stats import CycleReport
from cluster_monitor.services import rewards
from cluster_monitor.services.aggregator import STEP_WRITE, MetricsAggregator

logger = get_logger("scheduler")

MONITOR_CYCLES = Counter('cluster_monitor_cycles_total', 'Monitoring cycles started')
MONITOR_STEP_FAILURES = Counter('cluster_monitor_step_failures_total', 'Failed pipeline steps', ['step'])
MONITOR_SNAPSHOTS_WRITTEN = Counter('cluster_monitor_snapshots_written_total', 'Snapshots upserted', ['cluster'])
MONITOR_CYCLE_DURATION = Histogram('cluster_monitor_cycle_duration_seconds', 'Cycle duration excluding the closing sleep')
MONITOR_EXPECTED_REWARD = Gauge('cluster_monitor_expected_reward', 'Last expected reward written', ['cluster'])

STEP_FETCH_CLUSTERS = "fetch_clusters"


class Scheduler:
    def __init__(
        self,
        settings: Settings,
        registry: RegistryAccessor,
        aggregator: MetricsAggregator,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._settings = settings
        self._registry = registry
        self._aggregator = aggregator
        self._sleep = sleep

    @property
    def interval_seconds(self) -> int:
        return self._settings.interval_seconds

    async def run_forever(self, max_cycles: Optional[int] = None):
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            await self.run_cycle()
            cycles += 1

    async def run_cycle(self) -> CycleReport:
        MONITOR_CYCLES.inc()
        start_time = time.time()

        try:
            clusters = await self._registry.list_clusters()
        except Exception as e:
            MONITOR_STEP_FAILURES.labels(step=STEP_FETCH_CLUSTERS).inc()
            logger.error(
                "cluster_list_failed",
                error=str(e),
                next_action="restart_cycle",
                sleep_seconds=self.interval_seconds,
            )
            await self._sleep(self.interval_seconds)
            return CycleReport(clusters_fetched=False)

        logger.info("cluster_list_fetched", clusters=clusters)
        report = CycleReport(clusters=list(clusters))

        for cluster in clusters:
            failed_step = await self.process_cluster(cluster)
            if failed_step is None:
                report.written.append(cluster)
            else:
                report.failed[cluster] = failed_step
                await self._sleep(self.interval_seconds)

        MONITOR_CYCLE_DURATION.observe(time.time() - start_time)
        logger.info(
            "cycle_finished",
            clusters=len(report.clusters),
            written=len(report.written),
            failed=report.failed,
        )
        await self._sleep(self.interval_seconds)
        return report

    async def process_cluster(self, cluster: str) -> Optional[str]:
        """Collect and write one cluster. Returns the failed step, or None on success."""
        try:
            snapshot = await self._aggregator.collect(cluster)
            try:
                await self._registry.upsert_snapshot(snapshot)
            except Exception as e:
                raise StepFailedError(STEP_WRITE, cluster, str(e)) from e
        except StepFailedError as e:
            self._log_failure(e.step, cluster, e.reason)
            return e.step
        except Exception as e:
            self._log_failure("unexpected", cluster, str(e))
            return "unexpected"

        MONITOR_SNAPSHOTS_WRITTEN.labels(cluster=cluster).inc()
        MONITOR_EXPECTED_REWARD.labels(cluster=cluster).set(float(snapshot.expected_reward))
        logger.info(
            "snapshot_written",
            cluster=cluster,
            expected_reward=rewards.format_decimal(snapshot.expected_reward),
        )
        return None

    def _log_failure(self, step: str, cluster: str, error: str):
        MONITOR_STEP_FAILURES.labels(step=step).inc()
        # The sleep that follows throttles; the cluster is skipped, not retried.
        logger.error(
            "cluster_step_failed",
            step=step,
            cluster=cluster,
            error=error,
            next_action="skip_cluster",
            sleep_seconds=self.interval_seconds,
        )

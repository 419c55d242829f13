"""
Builds one cluster's statistics snapshot from the source store.

The six reads run in a fixed order, each awaited before the next starts.
The first one that raises aborts the cluster with StepFailedError; nothing
is written for it in that cycle.
"""
from cluster_monitor.accessors.base import SourceAccessor
from cluster_monitor.core.exceptions import StepFailedError
from cluster_monitor.core.logging_config import get_logger
from cluster_monitor.schemas.stats import ClusterStatsSnapshot
from cluster_monitor.services import rewards

logger = get_logger("aggregator")

STEP_MACHINE_STATUS = "machine_status"
STEP_LAST_24H_POWER = "last_24h_power"
STEP_LAST_EPOCH_POWER = "last_epoch_power"
STEP_YESTERDAY_REWARD = "yesterday_reward"
STEP_TODAY_REWARD = "today_reward"
STEP_NETWORK_PARAMETERS = "network_parameters"
STEP_WRITE = "write"

STEPS = (
    STEP_MACHINE_STATUS,
    STEP_LAST_24H_POWER,
    STEP_LAST_EPOCH_POWER,
    STEP_YESTERDAY_REWARD,
    STEP_TODAY_REWARD,
    STEP_NETWORK_PARAMETERS,
)


class MetricsAggregator:
    def __init__(self, source: SourceAccessor):
        self._source = source

    async def _run_step(self, step: str, cluster: str, fetch, *args):
        try:
            return await fetch(*args)
        except Exception as e:
            raise StepFailedError(step, cluster, str(e)) from e

    async def collect(self, cluster: str) -> ClusterStatsSnapshot:
        source = self._source

        machines = await self._run_step(STEP_MACHINE_STATUS, cluster, source.machine_status_counts, cluster)
        logger.info(
            "machine_status_fetched",
            cluster=cluster,
            total=machines.total,
            active=machines.active,
            inactive=machines.inactive,
            failed=machines.failed,
            invalid=machines.invalid,
        )

        last_24h_power = await self._run_step(STEP_LAST_24H_POWER, cluster, source.last_24h_power, cluster)
        logger.info("last_24h_power_fetched", cluster=cluster, last_24h_power=last_24h_power)

        last_epoch_power = await self._run_step(STEP_LAST_EPOCH_POWER, cluster, source.last_epoch_power, cluster)
        logger.info("last_epoch_power_fetched", cluster=cluster, last_epoch_power=last_epoch_power)

        yesterday_reward = await self._run_step(STEP_YESTERDAY_REWARD, cluster, source.yesterday_reward, cluster)
        logger.info("yesterday_reward_fetched", cluster=cluster, yesterday_reward=yesterday_reward)

        today_reward = await self._run_step(STEP_TODAY_REWARD, cluster, source.today_reward, cluster)
        logger.info("today_reward_fetched", cluster=cluster, today_reward=today_reward)

        network = await self._run_step(STEP_NETWORK_PARAMETERS, cluster, source.network_reward_parameters)

        per_unit = rewards.reward_per_unit(network.avg_reward, network.auxiliary_parameter)
        expected = rewards.expected_reward(per_unit, last_24h_power)
        logger.info(
            "expected_reward_computed",
            cluster=cluster,
            reward_per_unit=rewards.format_decimal(per_unit),
            expected_reward=rewards.format_decimal(expected),
        )

        return ClusterStatsSnapshot(
            cluster_name=cluster,
            machines=machines,
            last_24h_power=last_24h_power,
            last_epoch_power=last_epoch_power,
            yesterday_reward=yesterday_reward,
            today_reward=today_reward,
            expected_reward=expected,
        )

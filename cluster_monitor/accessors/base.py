"""
Capabilities the aggregator and scheduler depend on.
The SQL implementations live next to this module; tests use in-memory fakes.
"""
from typing import List, Optional, Protocol

from cluster_monitor.schemas.stats import ClusterStatsSnapshot, MachineStatusCounts, NetworkRewardParameters


class SourceAccessor(Protocol):
    """Reads fleet and reward data."""

    async def machine_status_counts(self, cluster: str) -> MachineStatusCounts: ...

    async def last_24h_power(self, cluster: str) -> float: ...

    async def last_epoch_power(self, cluster: str) -> float: ...

    async def yesterday_reward(self, cluster: str) -> float: ...

    async def today_reward(self, cluster: str) -> float: ...

    async def network_reward_parameters(self) -> NetworkRewardParameters: ...


class RegistryAccessor(Protocol):
    """Reads the cluster list and writes the per-cluster snapshot."""

    async def list_clusters(self) -> List[str]: ...

    async def upsert_snapshot(self, snapshot: ClusterStatsSnapshot) -> None: ...

    async def get_snapshot(self, cluster: str) -> Optional[dict]: ...

"""
Value objects passed between the accessors, the aggregator and the scheduler.
"""
from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cluster_monitor.services import rewards


class MachineStatusCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = Field(0, ge=0)
    active: int = Field(0, ge=0)
    inactive: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    invalid: int = Field(0, ge=0)

    @model_validator(mode="after")
    def buckets_partition_total(self):
        buckets = self.active + self.inactive + self.failed + self.invalid
        if buckets != self.total:
            raise ValueError(f"status buckets sum to {buckets}, expected total {self.total}")
        return self


class NetworkRewardParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_reward: Decimal = Decimal(0)
    avg_proof_target: Decimal = Decimal(0)

    @property
    def auxiliary_parameter(self) -> Decimal:
        return rewards.auxiliary_parameter(self.avg_proof_target)


class ClusterStatsSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    cluster_name: str
    machines: MachineStatusCounts
    last_24h_power: float = 0.0
    last_epoch_power: float = 0.0
    yesterday_reward: float = 0.0
    today_reward: float = 0.0
    expected_reward: Decimal = Decimal(0)

    def to_row(self) -> dict:
        return {
            "cluster_name": self.cluster_name,
            "total": self.machines.total,
            "active": self.machines.active,
            "inactive": self.machines.inactive,
            "failed": self.machines.failed,
            "invalid": self.machines.invalid,
            "last_24h_power": self.last_24h_power,
            "last_epoch_power": self.last_epoch_power,
            "yesterday_reward": self.yesterday_reward,
            "today_reward": self.today_reward,
            "expected_reward": rewards.format_decimal(self.expected_reward),
        }


class CycleReport(BaseModel):
    clusters: List[str] = []
    written: List[str] = []
    failed: Dict[str, str] = {}  # cluster -> step that failed
    clusters_fetched: bool = True

from sqlalchemy import BigInteger, Column, Date, Double, ForeignKey, Integer, Numeric, String, TIMESTAMP
from sqlalchemy.orm import declarative_base

# Mining/fleet source store. Owned by another system; read-only here.
SourceBase = declarative_base()

# Operations store. The stats table is the only thing this job writes.
OpsBase = declarative_base()


class MinerAccount(SourceBase):
    __tablename__ = "miner_account"

    id = Column(Integer, primary_key=True)
    name = Column(String, index=True, nullable=False)


class Machine(SourceBase):
    __tablename__ = "machine"

    id = Column(Integer, primary_key=True)
    miner_account_id = Column(Integer, ForeignKey("miner_account.id"), index=True)
    # unix seconds; NULL means the machine never reported
    last_commit_solution = Column(BigInteger, nullable=True)


class EpochDistributor(SourceBase):
    __tablename__ = "epoch_distributor"

    id = Column(Integer, primary_key=True)
    miner_account_id = Column(Integer, ForeignKey("miner_account.id"), index=True)
    epoch_time = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    hash_count = Column(BigInteger, nullable=False, default=0)
    reward = Column(Numeric, nullable=False, default=0)


class Distributor(SourceBase):
    __tablename__ = "distributor"

    id = Column(Integer, primary_key=True)
    miner_account_id = Column(Integer, ForeignKey("miner_account.id"), index=True)
    distributor_date = Column(Date, nullable=False)
    reward = Column(Numeric, nullable=False, default=0)


class Block(SourceBase):
    __tablename__ = "block"

    height = Column(BigInteger, primary_key=True, autoincrement=False)
    timestamp = Column(BigInteger, nullable=False, index=True)  # unix seconds
    proof_target = Column(Numeric, nullable=False)


class Solution(SourceBase):
    __tablename__ = "solution"

    id = Column(Integer, primary_key=True)
    height = Column(BigInteger, ForeignKey("block.height"), index=True)
    reward = Column(Numeric, nullable=False)


class Cluster(OpsBase):
    __tablename__ = "aleo_cluster"

    id = Column(Integer, primary_key=True)
    cluster_name = Column(String(64), unique=True, nullable=False)


class ClusterStats(OpsBase):
    __tablename__ = "aleo_cluster_stats"

    cluster_name = Column(String(64), primary_key=True)
    total = Column(Integer, nullable=False, default=0)
    active = Column(Integer, nullable=False, default=0)
    inactive = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    invalid = Column(Integer, nullable=False, default=0)
    last_24h_power = Column(Double, nullable=False, default=0)
    last_epoch_power = Column(Double, nullable=False, default=0)
    yesterday_reward = Column(Double, nullable=False, default=0)
    today_reward = Column(Double, nullable=False, default=0)
    # Exact decimal text; a binary float column would round it
    expected_reward = Column(String(64), nullable=False, default="0")

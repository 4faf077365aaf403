"""
Reward distribution (MasterChef-style farm).

This module provides:
- Pool Registry: base pool plus weighted, append-only explicit pools
- Accumulator: lazy accumulated-reward-per-share checkpoints
- Stake Ledger: per-participant amounts and reward debt
- Reward Distributor: deposit / withdraw / claim and pool administration
- Collaborators: token custody, reward minting, role-based access control
"""

from .access_control import Role, RoleBasedAccessControl, requires_admin
from .accumulator import AccumulatorEngine
from .collaborators import (
    Authorizer,
    BalanceTransfer,
    RewardMinter,
    TokenCustody,
    TokenMinter,
)
from .events import EventType, LedgerEvent
from .pool_registry import BASE_POOL, Pool, PoolRef, PoolRegistry
from .reward_distributor import RewardDistributor
from .safe_math import ACC_PRECISION, mul_div
from .stake_ledger import StakeEntry, StakeLedger
from .weight_policy import BaseWeightPolicy, RatioBaseWeightPolicy

__all__ = [
    # Distributor
    "RewardDistributor",
    # Pools
    "Pool",
    "PoolRef",
    "PoolRegistry",
    "BASE_POOL",
    "BaseWeightPolicy",
    "RatioBaseWeightPolicy",
    # Accounting
    "AccumulatorEngine",
    "StakeEntry",
    "StakeLedger",
    "ACC_PRECISION",
    "mul_div",
    # Observations
    "EventType",
    "LedgerEvent",
    # Collaborators
    "BalanceTransfer",
    "RewardMinter",
    "Authorizer",
    "TokenCustody",
    "TokenMinter",
    "Role",
    "RoleBasedAccessControl",
    "requires_admin",
]

"""
Pool registry for the reward ledger.

Holds the implicit base pool (staking the reward asset itself) and the
append-only list of explicit pools with their allocation weights.

Weight changes are only possible through ``add_pool``, ``set_pool_weight``
and ``set_base_ratio``. Each of them validates its arguments, then
checkpoints every pool at the current tick through the bound accumulator,
and only then mutates weights. Changing weights without that sweep would
re-price already elapsed ticks under the new split.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from fractions import Fraction
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..exceptions import InvalidParameterError, LedgerError, UnknownPoolError
from .weight_policy import BaseWeightPolicy, RatioBaseWeightPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolRef:
    """Reference to either the base pool (``pool_id is None``) or an explicit pool."""

    pool_id: Optional[int] = None

    @classmethod
    def base(cls) -> "PoolRef":
        return cls(None)

    @classmethod
    def indexed(cls, pool_id: int) -> "PoolRef":
        if isinstance(pool_id, bool) or not isinstance(pool_id, int):
            raise UnknownPoolError(f"Invalid pool id {pool_id!r}")
        if pool_id < 0:
            raise UnknownPoolError(f"Pool {pool_id} does not exist", pool_id=pool_id)
        return cls(pool_id)

    @classmethod
    def of(cls, value: "PoolRef | int | None") -> "PoolRef":
        """Coerce ``None`` / an int pool id / a PoolRef into a PoolRef."""
        if isinstance(value, PoolRef):
            return value
        if value is None:
            return cls.base()
        return cls.indexed(value)

    @property
    def is_base(self) -> bool:
        return self.pool_id is None

    def __str__(self) -> str:
        return "base" if self.pool_id is None else f"pool:{self.pool_id}"


BASE_POOL = PoolRef.base()


@dataclass
class Pool:
    """
    Per-pool accumulator state.

    ``acc_reward_per_share`` is scaled by the ledger's precision factor and
    never decreases. ``accrued_reward`` counts reward units credited to the
    pool by checkpoints; the difference to what participants were paid is
    rounding dust that stays in the pool.
    """

    staked_asset: str
    pool_id: Optional[int] = None
    weight: int = 0
    acc_reward_per_share: int = 0
    last_checkpoint_tick: int = 0
    total_staked: int = 0
    accrued_reward: int = 0

    @property
    def is_base(self) -> bool:
        return self.pool_id is None

    @property
    def ref(self) -> PoolRef:
        return PoolRef(self.pool_id)

    def snapshot(self) -> "Pool":
        return Pool(**{f.name: getattr(self, f.name) for f in fields(self)})

    def restore(self, snapshot: "Pool") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(snapshot, f.name))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pool":
        return cls(**{f.name: data[f.name] for f in fields(cls) if f.name in data})


class PoolRegistry:
    """Base pool plus append-only explicit pools, with their weight split."""

    def __init__(
        self,
        reward_asset: str,
        base_ratio: int = 64,
        policy: BaseWeightPolicy | None = None,
        start_tick: int = 0,
    ):
        if not reward_asset:
            raise InvalidParameterError("Reward asset is required")
        self.policy = policy or RatioBaseWeightPolicy()
        self.policy.validate_ratio(base_ratio)

        self.reward_asset = reward_asset.lower()
        self.base_ratio = base_ratio
        self.base_pool = Pool(staked_asset=self.reward_asset, last_checkpoint_tick=start_tick)
        self.pools: List[Pool] = []
        self.total_weight = 0
        self._asset_index: Dict[str, int] = {}
        self._checkpoint_all: Callable[[int], None] | None = None

    def bind_checkpointer(self, checkpoint_all: Callable[[int], None]) -> None:
        """Attach the sweep that must run before any weight change."""
        self._checkpoint_all = checkpoint_all

    # ==================== Lookups ====================

    @property
    def pool_count(self) -> int:
        return len(self.pools)

    def get_pool(self, pool_id: int) -> Pool:
        if isinstance(pool_id, bool) or not isinstance(pool_id, int):
            raise UnknownPoolError(f"Invalid pool id {pool_id!r}")
        if not 0 <= pool_id < len(self.pools):
            raise UnknownPoolError(f"Pool {pool_id} does not exist", pool_id=pool_id)
        return self.pools[pool_id]

    def resolve(self, ref: PoolRef) -> Pool:
        if ref.is_base:
            return self.base_pool
        return self.get_pool(ref.pool_id)

    def find_pool(self, staked_asset: str) -> Optional[Pool]:
        """Explicit pool staking ``staked_asset``, or None."""
        pool_id = self._asset_index.get(staked_asset.lower())
        return None if pool_id is None else self.pools[pool_id]

    def all_pools(self) -> Iterator[Pool]:
        yield self.base_pool
        yield from self.pools

    # ==================== Weights ====================

    def effective_weight(self, pool: Pool) -> Fraction:
        if pool.is_base:
            return self.policy.base_weight(self.total_weight, self.base_ratio)
        return Fraction(pool.weight)

    def total_effective_weight(self) -> Fraction:
        return self.policy.base_weight(self.total_weight, self.base_ratio) + self.total_weight

    # ==================== Mutations (checkpoint first) ====================

    def add_pool(self, staked_asset: str, weight: int, tick: int) -> Pool:
        asset = self._validate_asset(staked_asset)
        self._validate_weight(weight)

        self._sweep(tick)

        pool = Pool(
            staked_asset=asset,
            pool_id=len(self.pools),
            weight=weight,
            last_checkpoint_tick=tick,
        )
        self.pools.append(pool)
        self._asset_index[asset] = pool.pool_id
        self.total_weight += weight

        logger.info(
            "Pool added",
            extra={
                "event": "registry.pool_added",
                "pool_id": pool.pool_id,
                "asset": asset[:10],
                "weight": weight,
                "total_weight": self.total_weight,
                "tick": tick,
            },
        )
        return pool

    def set_pool_weight(self, pool_id: int, weight: int, tick: int) -> int:
        pool = self.get_pool(pool_id)
        self._validate_weight(weight)

        self._sweep(tick)

        old_weight = pool.weight
        pool.weight = weight
        self.total_weight += weight - old_weight

        logger.info(
            "Pool weight modified",
            extra={
                "event": "registry.pool_weight_modified",
                "pool_id": pool_id,
                "old_weight": old_weight,
                "new_weight": weight,
                "total_weight": self.total_weight,
                "tick": tick,
            },
        )
        return old_weight

    def set_base_ratio(self, new_ratio: int, tick: int) -> int:
        self.policy.validate_ratio(new_ratio)

        self._sweep(tick)

        old_ratio = self.base_ratio
        self.base_ratio = new_ratio

        logger.info(
            "Base ratio modified",
            extra={
                "event": "registry.base_ratio_modified",
                "old_ratio": old_ratio,
                "new_ratio": new_ratio,
                "tick": tick,
            },
        )
        return old_ratio

    def _sweep(self, tick: int) -> None:
        if self._checkpoint_all is None:
            raise LedgerError("Pool registry has no accumulator bound; weights are frozen")
        self._checkpoint_all(tick)

    # ==================== Validation ====================

    def _validate_asset(self, staked_asset: str) -> str:
        if not isinstance(staked_asset, str) or not staked_asset.strip():
            raise InvalidParameterError("Staked asset is required")
        asset = staked_asset.strip().lower()
        if asset == self.reward_asset:
            raise InvalidParameterError(
                "Reward asset is staked through the base pool",
                details={"asset": asset},
            )
        if asset in self._asset_index:
            raise InvalidParameterError(
                f"Asset already has pool {self._asset_index[asset]}",
                details={"asset": asset, "pool_id": self._asset_index[asset]},
            )
        return asset

    @staticmethod
    def _validate_weight(weight: int) -> None:
        if isinstance(weight, bool) or not isinstance(weight, int) or weight < 0:
            raise InvalidParameterError(
                f"Weight must be a non-negative integer, got {weight!r}",
                details={"weight": weight},
            )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reward_asset": self.reward_asset,
            "base_ratio": self.base_ratio,
            "total_weight": self.total_weight,
            "base_pool": self.base_pool.to_dict(),
            "pools": [pool.to_dict() for pool in self.pools],
        }

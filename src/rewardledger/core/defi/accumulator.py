"""
Accumulated-reward-per-share engine.

Each pool keeps a single fixed-point accumulator: the reward earned by one
unit of stake since the pool was created. Bringing the accumulator up to
date (a checkpoint) costs O(1) no matter how many participants the pool
has; a participant's reward is then ``amount * acc / PRECISION`` minus
what was already settled (their reward debt).

Rounding:
- pool reward for an interval rounds DOWN (exact rational weights)
- the accumulator increment rounds DOWN
- a participant's accrued amount rounds DOWN
The remainders are dust that stays in the pool and is never distributed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import InvalidParameterError
from .pool_registry import Pool, PoolRegistry
from .safe_math import ACC_PRECISION, mul_div, share_of

if TYPE_CHECKING:
    from .stake_ledger import StakeEntry

logger = logging.getLogger(__name__)


class AccumulatorEngine:
    """Lazy per-pool reward accumulator driven by externally supplied ticks."""

    def __init__(
        self,
        registry: PoolRegistry,
        emission_per_tick: int,
        precision: int = ACC_PRECISION,
    ):
        if isinstance(emission_per_tick, bool) or not isinstance(emission_per_tick, int) or emission_per_tick < 0:
            raise InvalidParameterError("Emission per tick must be a non-negative integer")
        if isinstance(precision, bool) or not isinstance(precision, int) or precision <= 0:
            raise InvalidParameterError("Precision must be a positive integer")

        self.registry = registry
        self.emission_per_tick = emission_per_tick
        self.precision = precision
        registry.bind_checkpointer(self.checkpoint_all)

    def pool_reward(self, pool: Pool, elapsed: int) -> int:
        """Reward emitted to ``pool`` over ``elapsed`` ticks under the current weights."""
        if elapsed <= 0:
            return 0
        return share_of(
            elapsed * self.emission_per_tick,
            self.registry.effective_weight(pool),
            self.registry.total_effective_weight(),
        )

    def simulate(self, pool: Pool, tick: int) -> int:
        """Accumulator value ``pool`` would have after a checkpoint at ``tick`` (no mutation)."""
        if tick <= pool.last_checkpoint_tick or pool.total_staked == 0:
            return pool.acc_reward_per_share
        reward = self.pool_reward(pool, tick - pool.last_checkpoint_tick)
        return pool.acc_reward_per_share + mul_div(reward, self.precision, pool.total_staked)

    def checkpoint(self, pool: Pool, tick: int) -> int:
        """
        Bring ``pool`` up to ``tick``.

        Returns:
            Reward credited to the pool by this checkpoint (0 when the pool
            was already current or had nothing staked).
        """
        if tick <= pool.last_checkpoint_tick:
            return 0

        if pool.total_staked == 0:
            # Emission for an empty pool is forfeited, not banked
            pool.last_checkpoint_tick = tick
            return 0

        elapsed = tick - pool.last_checkpoint_tick
        reward = self.pool_reward(pool, elapsed)
        pool.acc_reward_per_share += mul_div(reward, self.precision, pool.total_staked)
        pool.accrued_reward += reward
        pool.last_checkpoint_tick = tick

        logger.debug(
            "Pool checkpoint",
            extra={
                "event": "accumulator.checkpoint",
                "pool": str(pool.ref),
                "elapsed": elapsed,
                "reward": reward,
                "acc_reward_per_share": pool.acc_reward_per_share,
                "tick": tick,
            },
        )
        return reward

    def checkpoint_all(self, tick: int) -> None:
        """Checkpoint the base pool and every explicit pool at ``tick``."""
        for pool in self.registry.all_pools():
            self.checkpoint(pool, tick)

    # ==================== Per-entry settlement ====================

    def accrued(self, entry: "StakeEntry", acc_reward_per_share: int) -> int:
        return mul_div(entry.amount, acc_reward_per_share, self.precision)

    def pending(self, entry: "StakeEntry", acc_reward_per_share: int) -> int:
        if entry.amount == 0:
            return 0
        return self.accrued(entry, acc_reward_per_share) - entry.reward_debt

    def refresh_debt(self, entry: "StakeEntry", pool: Pool) -> None:
        entry.reward_debt = self.accrued(entry, pool.acc_reward_per_share)

    def harvest(self, entry: "StakeEntry", pool: Pool, tick: int) -> int:
        """
        Checkpoint ``pool`` and settle ``entry``.

        Returns the reward now owed to the entry's participant; issuing it
        is the caller's job.
        """
        self.checkpoint(pool, tick)
        reward = self.pending(entry, pool.acc_reward_per_share)
        if reward < 0:
            raise AssertionError(
                f"Negative pending reward {reward} for {entry.participant[:10]} in {pool.ref}"
            )
        self.refresh_debt(entry, pool)
        return reward

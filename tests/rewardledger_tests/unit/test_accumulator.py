"""
Tests for AccumulatorEngine checkpoints, settlement and fixed-point rounding.
"""
import pytest

from rewardledger.core.defi.accumulator import AccumulatorEngine
from rewardledger.core.defi.pool_registry import BASE_POOL, PoolRegistry
from rewardledger.core.defi.safe_math import MAX_UINT256, mul_div, share_of
from rewardledger.core.defi.stake_ledger import StakeLedger
from rewardledger.core.exceptions import InvalidParameterError

PRECISION = 10**12


@pytest.fixture
def engine():
    registry = PoolRegistry("0xreward", base_ratio=64, start_tick=0)
    return AccumulatorEngine(registry, emission_per_tick=100, precision=PRECISION)


class TestCheckpoint:
    def test_same_tick_is_noop(self, engine):
        pool = engine.registry.base_pool
        pool.total_staked = 10
        assert engine.checkpoint(pool, 5) == 500
        acc = pool.acc_reward_per_share

        assert engine.checkpoint(pool, 5) == 0
        assert engine.checkpoint(pool, 3) == 0
        assert pool.acc_reward_per_share == acc
        assert pool.last_checkpoint_tick == 5

    def test_empty_pool_forfeits(self, engine):
        pool = engine.registry.base_pool
        assert engine.checkpoint(pool, 7) == 0
        assert pool.last_checkpoint_tick == 7
        assert pool.acc_reward_per_share == 0
        assert pool.accrued_reward == 0

    def test_accumulator_increment(self, engine):
        pool = engine.registry.base_pool
        pool.total_staked = 3
        engine.checkpoint(pool, 1)

        # 100 reward over 3 units of stake, scaled and rounded down
        assert pool.acc_reward_per_share == 100 * PRECISION // 3
        assert pool.accrued_reward == 100

    def test_simulate_does_not_mutate(self, engine):
        pool = engine.registry.base_pool
        pool.total_staked = 4
        projected = engine.simulate(pool, 8)

        assert projected == 800 * PRECISION // 4
        assert pool.acc_reward_per_share == 0
        assert pool.last_checkpoint_tick == 0

    def test_rounding_dust_stays_in_pool(self, engine):
        """Three equal stakers of an odd emission never receive more than was credited."""
        registry = engine.registry
        ledger = StakeLedger(registry, engine)
        pool = registry.base_pool
        entries = [ledger.entry_for(f"0x{i}", BASE_POOL) for i in range(3)]
        for entry in entries:
            entry.amount = 7
            pool.total_staked += 7

        engine.checkpoint(pool, 1)

        paid = sum(engine.pending(entry, pool.acc_reward_per_share) for entry in entries)
        assert paid <= pool.accrued_reward == 100
        assert pool.accrued_reward - paid < 3


class TestHarvest:
    def test_harvest_settles_and_refreshes_debt(self, engine):
        ledger = StakeLedger(engine.registry, engine)
        pool = engine.registry.base_pool
        entry = ledger.entry_for("0xa", BASE_POOL)
        entry.amount = 50
        pool.total_staked = 50

        assert engine.harvest(entry, pool, 4) == 400
        assert engine.harvest(entry, pool, 4) == 0
        assert entry.reward_debt == engine.accrued(entry, pool.acc_reward_per_share)

    def test_zero_amount_entry_has_no_pending(self, engine):
        ledger = StakeLedger(engine.registry, engine)
        entry = ledger.entry_for("0xa", BASE_POOL)
        entry.reward_debt = 5
        assert engine.pending(entry, 10**20) == 0


class TestEngineValidation:
    @pytest.mark.parametrize("emission", [-1, 1.5, True])
    def test_bad_emission(self, emission):
        with pytest.raises(InvalidParameterError):
            AccumulatorEngine(PoolRegistry("0xreward"), emission_per_tick=emission)

    def test_bad_precision(self):
        with pytest.raises(InvalidParameterError):
            AccumulatorEngine(PoolRegistry("0xreward"), emission_per_tick=1, precision=0)


class TestSafeMath:
    def test_mul_div_rounding(self):
        assert mul_div(10, 10, 3) == 33
        assert mul_div(10, 10, 3, round_up=True) == 34

    def test_mul_div_errors(self):
        with pytest.raises(ValueError):
            mul_div(1, 1, 0)
        with pytest.raises(OverflowError):
            mul_div(MAX_UINT256, 2, 1)

    def test_share_of_floors(self):
        from fractions import Fraction

        assert share_of(100, Fraction(1, 3), Fraction(1)) == 33
        with pytest.raises(ValueError):
            share_of(100, Fraction(1), Fraction(0))

"""
Tests for PoolRegistry, PoolRef and the base weight policy.
"""
from fractions import Fraction

import pytest

from rewardledger.core.defi.accumulator import AccumulatorEngine
from rewardledger.core.defi.pool_registry import BASE_POOL, Pool, PoolRef, PoolRegistry
from rewardledger.core.defi.weight_policy import RatioBaseWeightPolicy
from rewardledger.core.exceptions import InvalidParameterError, LedgerError, UnknownPoolError

REWARD = "0xReward"


@pytest.fixture
def registry():
    registry = PoolRegistry(REWARD, base_ratio=64, start_tick=10)
    AccumulatorEngine(registry, emission_per_tick=1000)
    return registry


class TestPoolRef:
    def test_base_and_indexed(self):
        assert PoolRef.base().is_base
        assert PoolRef.base() == BASE_POOL
        assert PoolRef.indexed(3).pool_id == 3
        assert not PoolRef.indexed(0).is_base
        assert str(BASE_POOL) == "base"
        assert str(PoolRef.indexed(2)) == "pool:2"

    def test_of_coerces(self):
        assert PoolRef.of(None) == BASE_POOL
        assert PoolRef.of(1) == PoolRef.indexed(1)
        ref = PoolRef.indexed(4)
        assert PoolRef.of(ref) is ref

    @pytest.mark.parametrize("bad", [-1, True, "0", 1.0])
    def test_invalid_pool_ids(self, bad):
        with pytest.raises(UnknownPoolError):
            PoolRef.indexed(bad)

    def test_refs_are_hashable_keys(self):
        assert {PoolRef.indexed(1): "a"}[PoolRef.of(1)] == "a"


class TestRegistryLookups:
    def test_base_pool_stakes_reward_asset(self, registry):
        assert registry.base_pool.staked_asset == REWARD.lower()
        assert registry.base_pool.last_checkpoint_tick == 10
        assert registry.resolve(BASE_POOL) is registry.base_pool

    def test_pool_ids_are_sequential(self, registry):
        first = registry.add_pool("0xLPA", 10, tick=11)
        second = registry.add_pool("0xLPB", 20, tick=12)

        assert (first.pool_id, second.pool_id) == (0, 1)
        assert registry.pool_count == 2
        assert registry.total_weight == 30
        assert second.last_checkpoint_tick == 12
        assert registry.find_pool("0xlpb") is second
        assert registry.find_pool("0xmissing") is None
        assert list(registry.all_pools()) == [registry.base_pool, first, second]

    def test_get_pool_out_of_range(self, registry):
        registry.add_pool("0xLPA", 10, tick=11)
        with pytest.raises(UnknownPoolError) as exc_info:
            registry.get_pool(1)
        assert exc_info.value.pool_id == 1

    def test_effective_weights(self, registry):
        assert registry.effective_weight(registry.base_pool) == 1
        registry.add_pool("0xLPA", 90, tick=11)

        assert registry.effective_weight(registry.base_pool) == Fraction(30)
        assert registry.total_effective_weight() == Fraction(120)


class TestRegistryValidation:
    def test_rejects_bad_weights(self, registry):
        for weight in (-1, 1.5, True, "10"):
            with pytest.raises(InvalidParameterError):
                registry.add_pool("0xLPA", weight, tick=11)
        assert registry.pool_count == 0

    def test_rejects_bad_assets(self, registry):
        with pytest.raises(InvalidParameterError):
            registry.add_pool("", 1, tick=11)
        with pytest.raises(InvalidParameterError):
            registry.add_pool(REWARD.upper(), 1, tick=11)

    def test_validation_runs_before_sweep(self, registry):
        """A rejected change must not checkpoint anything."""
        registry.base_pool.total_staked = 5
        with pytest.raises(InvalidParameterError):
            registry.set_base_ratio(999, tick=50)
        assert registry.base_pool.last_checkpoint_tick == 10

    def test_unbound_registry_refuses_weight_changes(self):
        registry = PoolRegistry(REWARD)
        with pytest.raises(LedgerError):
            registry.add_pool("0xLPA", 1, tick=0)


class TestWeightChanges:
    def test_set_pool_weight_sweeps_first(self, registry):
        pool = registry.add_pool("0xLPA", 100, tick=10)
        pool.total_staked = 1000
        registry.base_pool.total_staked = 1000

        old = registry.set_pool_weight(0, 300, tick=14)

        assert old == 100
        assert registry.total_weight == 300
        # Both pools were checkpointed at the old split (1/4 : 3/4)
        assert registry.base_pool.accrued_reward == 1000
        assert pool.accrued_reward == 3000
        assert pool.last_checkpoint_tick == 14

    def test_set_base_ratio_returns_old(self, registry):
        assert registry.set_base_ratio(128, tick=11) == 64
        assert registry.base_ratio == 128


class TestRatioPolicy:
    def test_share_is_ratio_over_denominator(self):
        policy = RatioBaseWeightPolicy(256)
        assert policy.base_share(100, 64) == Fraction(1, 4)
        assert policy.base_share(7, 64) == Fraction(1, 4)
        assert policy.base_share(100, 128) == Fraction(1, 2)
        assert policy.base_share(100, 0) == 0

    def test_no_explicit_weight_gives_base_everything(self):
        assert RatioBaseWeightPolicy().base_share(0, 64) == 1

    def test_ratio_domain(self):
        policy = RatioBaseWeightPolicy(256)
        policy.validate_ratio(0)
        policy.validate_ratio(255)
        for bad in (256, -1, 1.5, False):
            with pytest.raises(InvalidParameterError):
                policy.validate_ratio(bad)

    def test_invalid_denominator(self):
        with pytest.raises(InvalidParameterError):
            RatioBaseWeightPolicy(0)


class TestPoolSnapshot:
    def test_restore_round_trip(self):
        pool = Pool(staked_asset="0xlp", pool_id=0, weight=5, total_staked=10)
        snapshot = pool.snapshot()
        pool.total_staked = 99
        pool.acc_reward_per_share = 7

        pool.restore(snapshot)

        assert pool.to_dict() == snapshot.to_dict()
        assert Pool.from_dict(pool.to_dict()) == pool

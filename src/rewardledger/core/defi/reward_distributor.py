"""
Reward Distributor (MasterChef style).

Emits a fixed amount of reward per tick and splits it between the base
pool (staking the reward asset itself) and weighted explicit pools.
Participants deposit, withdraw and claim at any tick; every operation:

1. resolves the pool reference once
2. checkpoints the pool (harvesting the participant's pending reward)
3. updates the stake entry and pool totals
4. moves stake through the balance-transfer collaborator
5. mints the harvested reward through the minting collaborator
6. records one observation

Operations are atomic. Ledger state touched by a failing operation (the
pool record and the stake entry) is restored before the error propagates,
and no observation is recorded. Stake moves before the reward is minted,
and minting authority is checked before stake moves, so a collaborator
failure never leaves a half-applied operation behind.

Security features:
- Checkpoint-before-mutate on every weight or ratio change
- Reentrancy guard around every state-changing operation
- Administrator check on pool and ratio management
- Round-down reward math (dust stays in the pool)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..clock import TickProvider, read_tick
from ..config import LedgerConfig
from ..contracts.erc20 import ERC20Factory, ERC20Token
from ..exceptions import (
    InsufficientStakeError,
    InvalidAmountError,
    InvalidParameterError,
    ReentrancyError,
    get_error_context,
)
from .access_control import RoleBasedAccessControl, requires_admin
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
from .stake_ledger import StakeLedger
from .weight_policy import BaseWeightPolicy, RatioBaseWeightPolicy

logger = logging.getLogger(__name__)


class RewardDistributor:
    """
    Single-writer reward ledger.

    Base-pool operations (``deposit``, ``withdraw``, ``claim``) and
    explicit-pool operations (``deposit_lp``, ``withdraw_lp``,
    ``claim_lp``) share one implementation parameterized by ``PoolRef``.
    """

    def __init__(
        self,
        address: str,
        reward_asset: str,
        transfer: BalanceTransfer,
        minter: RewardMinter,
        authorizer: Authorizer,
        tick_provider: TickProvider,
        config: LedgerConfig | None = None,
        policy: BaseWeightPolicy | None = None,
    ):
        if not address:
            raise InvalidParameterError("Distributor address is required")

        self.address = address.lower()
        self.config = config or LedgerConfig()
        self.transfer = transfer
        self.minter = minter
        self.authorizer = authorizer
        self._tick_provider = tick_provider

        start_tick = read_tick(tick_provider)
        self.registry = PoolRegistry(
            reward_asset,
            base_ratio=self.config.base_ratio,
            policy=policy or RatioBaseWeightPolicy(self.config.ratio_denominator),
            start_tick=start_tick,
        )
        self.accumulator = AccumulatorEngine(
            self.registry,
            emission_per_tick=self.config.emission_per_tick,
            precision=self.config.acc_precision,
        )
        self.ledger = StakeLedger(self.registry, self.accumulator)
        self.events: List[LedgerEvent] = []
        self._locked = False

        logger.info(
            "Reward distributor initialized",
            extra={
                "event": "distributor.initialized",
                "address": self.address[:10],
                "reward_asset": self.registry.reward_asset[:10],
                "start_tick": start_tick,
                **self.config.to_dict(),
            },
        )

    @classmethod
    def from_tokens(
        cls,
        address: str,
        owner: str,
        reward_token: ERC20Token,
        tokens: ERC20Factory | Mapping[str, ERC20Token],
        tick_provider: TickProvider,
        config: LedgerConfig | None = None,
        policy: BaseWeightPolicy | None = None,
        authorizer: Authorizer | None = None,
    ) -> "RewardDistributor":
        """
        Wire a distributor to in-memory ERC20 tokens.

        The reward token's owner still has to call
        ``reward_token.set_minter(owner, address)`` before rewards can be
        issued.
        """
        return cls(
            address=address,
            reward_asset=reward_token.address,
            transfer=TokenCustody(address, tokens),
            minter=TokenMinter(address, reward_token),
            authorizer=authorizer or RoleBasedAccessControl(admin_address=owner),
            tick_provider=tick_provider,
            config=config,
            policy=policy,
        )

    # ==================== Views ====================

    @property
    def base_ratio(self) -> int:
        return self.registry.base_ratio

    @property
    def total_weight(self) -> int:
        return self.registry.total_weight

    @property
    def pool_count(self) -> int:
        return self.registry.pool_count

    @property
    def total_deposited(self) -> int:
        """Reward asset staked in the base pool."""
        return self.registry.base_pool.total_staked

    @property
    def total_lp_deposited(self) -> int:
        """Stake across all explicit pools."""
        return sum(pool.total_staked for pool in self.registry.pools)

    @property
    def current_tick(self) -> int:
        return read_tick(self._tick_provider)

    def get_pool(self, pool_id: Optional[int] = None) -> Pool:
        return self.registry.resolve(PoolRef.of(pool_id))

    def pool_info(self, pool_id: Optional[int] = None) -> Dict[str, Any]:
        pool = self.get_pool(pool_id)
        share = self.registry.effective_weight(pool) / self.registry.total_effective_weight()
        info = pool.to_dict()
        info["emission_share"] = f"{share.numerator}/{share.denominator}"
        return info

    def pending_reward(self, participant: str, pool_id: Optional[int] = None) -> int:
        """Reward ``participant`` could claim right now from the given pool (base if None)."""
        ref = PoolRef.of(pool_id)
        self.registry.resolve(ref)
        return self.ledger.pending_reward(
            self._validate_participant(participant), ref, self.current_tick
        )

    def staked_balance(self, participant: str, pool_id: Optional[int] = None) -> int:
        return self.ledger.staked_balance(
            self._validate_participant(participant), PoolRef.of(pool_id)
        )

    # ==================== Administration ====================

    @requires_admin
    def add_pool(self, caller: str, staked_asset: str, weight: int) -> int:
        """Append a pool for ``staked_asset``; returns its pool id."""
        with self._nonreentrant():
            tick = self.current_tick
            pool = self.registry.add_pool(staked_asset, weight, tick)
            self._emit(
                EventType.POOL_ADDED,
                tick,
                participant=caller.lower(),
                pool_id=pool.pool_id,
                asset=pool.staked_asset,
                new_value=weight,
            )
        return pool.pool_id

    @requires_admin
    def set_pool_weight(self, caller: str, pool_id: int, weight: int) -> int:
        """Reweight one explicit pool; returns the previous weight."""
        with self._nonreentrant():
            tick = self.current_tick
            old_weight = self.registry.set_pool_weight(pool_id, weight, tick)
            self._emit(
                EventType.POOL_WEIGHT_MODIFIED,
                tick,
                participant=caller.lower(),
                pool_id=pool_id,
                old_value=old_weight,
                new_value=weight,
            )
        return old_weight

    @requires_admin
    def set_base_ratio(self, caller: str, new_ratio: int) -> int:
        """Change the base pool's ratio parameter; returns the previous ratio."""
        with self._nonreentrant():
            tick = self.current_tick
            old_ratio = self.registry.set_base_ratio(new_ratio, tick)
            self._emit(
                EventType.BASE_RATIO_MODIFIED,
                tick,
                participant=caller.lower(),
                old_value=old_ratio,
                new_value=new_ratio,
            )
        return old_ratio

    def update_pools(self) -> None:
        """Checkpoint every pool at the current tick (callable by anyone)."""
        with self._nonreentrant():
            self.accumulator.checkpoint_all(self.current_tick)

    # ==================== Participant Operations ====================

    def deposit(self, participant: str, amount: int) -> LedgerEvent:
        return self._deposit(participant, BASE_POOL, amount)

    def deposit_lp(self, participant: str, pool_id: int, amount: int) -> LedgerEvent:
        return self._deposit(participant, PoolRef.indexed(pool_id), amount)

    def withdraw(self, participant: str, amount: int) -> LedgerEvent:
        return self._withdraw(participant, BASE_POOL, amount)

    def withdraw_lp(self, participant: str, pool_id: int, amount: int) -> LedgerEvent:
        return self._withdraw(participant, PoolRef.indexed(pool_id), amount)

    def claim(self, participant: str) -> LedgerEvent:
        return self._claim(participant, BASE_POOL)

    def claim_lp(self, participant: str, pool_id: int) -> LedgerEvent:
        return self._claim(participant, PoolRef.indexed(pool_id))

    def _deposit(self, participant: str, ref: PoolRef, amount: int) -> LedgerEvent:
        participant = self._validate_participant(participant)
        self._validate_amount(amount, "deposit")

        with self._nonreentrant():
            pool = self.registry.resolve(ref)
            tick = self.current_tick

            with self._rollback(pool, participant, ref):
                entry = self.ledger.entry_for(participant, ref)
                reward = self.accumulator.harvest(entry, pool, tick)
                self._check_reward(participant, reward)

                self.transfer.transfer_in(pool.staked_asset, participant, amount)
                entry.amount += amount
                pool.total_staked += amount
                self.accumulator.refresh_debt(entry, pool)

                self._issue_reward(participant, reward)

            event = self._emit(
                EventType.DEPOSITED if ref.is_base else EventType.LP_DEPOSITED,
                tick,
                participant=participant,
                pool_id=ref.pool_id,
                asset=pool.staked_asset,
                amount=amount,
                total=entry.amount,
                reward=reward,
            )

        logger.info(
            "Deposit",
            extra={
                "event": "distributor.deposit",
                "participant": participant[:10],
                "pool": str(ref),
                "amount": amount,
                "total": entry.amount,
                "reward": reward,
                "tick": tick,
            },
        )
        return event

    def _withdraw(self, participant: str, ref: PoolRef, amount: int) -> LedgerEvent:
        participant = self._validate_participant(participant)
        self._validate_amount(amount, "withdraw")

        with self._nonreentrant():
            pool = self.registry.resolve(ref)

            existing = self.ledger.get_entry(participant, ref)
            available = existing.amount if existing else 0
            if amount > available:
                logger.warning(
                    "Withdraw rejected: insufficient stake",
                    extra={
                        "event": "distributor.insufficient_stake",
                        "participant": participant[:10],
                        "pool": str(ref),
                        "requested": amount,
                        "available": available,
                    },
                )
                raise InsufficientStakeError(
                    f"Withdraw: not enough stake in {ref} ({amount} > {available})",
                    requested=amount,
                    available=available,
                )

            tick = self.current_tick
            with self._rollback(pool, participant, ref):
                entry = self.ledger.entry_for(participant, ref)
                reward = self.accumulator.harvest(entry, pool, tick)
                self._check_reward(participant, reward)

                entry.amount -= amount
                pool.total_staked -= amount
                self.transfer.transfer_out(pool.staked_asset, participant, amount)
                self.accumulator.refresh_debt(entry, pool)

                self._issue_reward(participant, reward)

            event = self._emit(
                EventType.WITHDRAWN if ref.is_base else EventType.LP_WITHDRAWN,
                tick,
                participant=participant,
                pool_id=ref.pool_id,
                asset=pool.staked_asset,
                amount=amount,
                total=entry.amount,
                reward=reward,
            )

        logger.info(
            "Withdraw",
            extra={
                "event": "distributor.withdraw",
                "participant": participant[:10],
                "pool": str(ref),
                "amount": amount,
                "remaining": entry.amount,
                "reward": reward,
                "tick": tick,
            },
        )
        return event

    def _claim(self, participant: str, ref: PoolRef) -> LedgerEvent:
        participant = self._validate_participant(participant)

        with self._nonreentrant():
            pool = self.registry.resolve(ref)
            tick = self.current_tick

            with self._rollback(pool, participant, ref):
                entry = self.ledger.entry_for(participant, ref)
                reward = self.accumulator.harvest(entry, pool, tick)
                self._issue_reward(participant, reward)

            event = self._emit(
                EventType.CLAIMED if ref.is_base else EventType.LP_CLAIMED,
                tick,
                participant=participant,
                pool_id=ref.pool_id,
                asset=pool.staked_asset,
                total=entry.amount,
                reward=reward,
            )

        logger.info(
            "Claim",
            extra={
                "event": "distributor.claim",
                "participant": participant[:10],
                "pool": str(ref),
                "reward": reward,
                "tick": tick,
            },
        )
        return event

    # ==================== Helpers ====================

    def _check_reward(self, participant: str, reward: int) -> None:
        if reward > 0:
            self.minter.check_mint(participant, reward)

    def _issue_reward(self, participant: str, reward: int) -> None:
        if reward > 0:
            self.minter.mint(participant, reward)

    def _emit(self, event_type: EventType, tick: int, **fields: Any) -> LedgerEvent:
        event = LedgerEvent(
            event_type=event_type,
            sequence=len(self.events),
            tick=tick,
            **fields,
        )
        self.events.append(event)
        return event

    @contextmanager
    def _nonreentrant(self) -> Iterator[None]:
        if self._locked:
            raise ReentrancyError("Reentrant call into reward distributor")
        self._locked = True
        try:
            yield
        finally:
            self._locked = False

    @contextmanager
    def _rollback(self, pool: Pool, participant: str, ref: PoolRef) -> Iterator[None]:
        """Restore ``pool`` and the (participant, pool) entry if the block raises."""
        pool_snapshot = pool.snapshot()
        existing = self.ledger.get_entry(participant, ref)
        entry_snapshot = (existing.amount, existing.reward_debt) if existing else None
        try:
            yield
        except Exception as exc:
            pool.restore(pool_snapshot)
            if existing is None:
                self.ledger.discard(participant, ref)
            else:
                existing.amount, existing.reward_debt = entry_snapshot
            logger.warning(
                "Operation rolled back",
                extra={
                    "event": "distributor.rolled_back",
                    "participant": participant[:10],
                    "pool": str(ref),
                    **get_error_context(exc),
                },
            )
            raise

    def _validate_participant(self, participant: str) -> str:
        if not isinstance(participant, str) or not participant.strip():
            raise InvalidParameterError("Participant address is required")
        return participant.strip().lower()

    def _validate_amount(self, amount: int, operation: str) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            logger.warning(
                "Rejected invalid amount",
                extra={
                    "event": "distributor.invalid_amount",
                    "operation": operation,
                    "amount": repr(amount),
                },
            )
            raise InvalidAmountError(
                "Params: Input value must be greater than zero",
                details={"operation": operation, "amount": repr(amount)},
            )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data snapshot of the whole ledger (replay comparisons, CLI output)."""
        return {
            "address": self.address,
            "config": self.config.to_dict(),
            "registry": self.registry.to_dict(),
            "entries": self.ledger.to_dict(),
            "events": [event.to_dict() for event in self.events],
        }

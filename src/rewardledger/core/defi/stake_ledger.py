"""
Per-participant stake bookkeeping.

Entries are keyed by ``(participant, PoolRef)``, created lazily on first
touch and never deleted. An entry with ``amount == 0`` means "no stake"
but stays addressable for later deposits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .accumulator import AccumulatorEngine
from .pool_registry import PoolRef, PoolRegistry

EntryKey = Tuple[str, PoolRef]


@dataclass
class StakeEntry:
    """Deposited amount and reward debt for one participant in one pool."""

    participant: str
    pool_ref: PoolRef
    amount: int = 0
    reward_debt: int = 0

    @property
    def is_active(self) -> bool:
        return self.amount > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant": self.participant,
            "pool_id": self.pool_ref.pool_id,
            "amount": self.amount,
            "reward_debt": self.reward_debt,
        }


class StakeLedger:
    """Stake entries plus the two derived reads (pending reward, staked balance)."""

    def __init__(self, registry: PoolRegistry, accumulator: AccumulatorEngine):
        self.registry = registry
        self.accumulator = accumulator
        self.entries: Dict[EntryKey, StakeEntry] = {}

    def get_entry(self, participant: str, pool_ref: PoolRef) -> Optional[StakeEntry]:
        return self.entries.get((participant.lower(), pool_ref))

    def entry_for(self, participant: str, pool_ref: PoolRef) -> StakeEntry:
        """Existing entry, or a new zero entry registered in the ledger."""
        key = (participant.lower(), pool_ref)
        entry = self.entries.get(key)
        if entry is None:
            entry = StakeEntry(participant=key[0], pool_ref=pool_ref)
            self.entries[key] = entry
        return entry

    def discard(self, participant: str, pool_ref: PoolRef) -> None:
        """Drop an entry; only used to undo the lazy creation of a failed operation."""
        self.entries.pop((participant.lower(), pool_ref), None)

    def pending_reward(self, participant: str, pool_ref: PoolRef, tick: int) -> int:
        """Reward claimable at ``tick`` without mutating any state."""
        entry = self.get_entry(participant, pool_ref)
        if entry is None or entry.amount == 0:
            return 0
        pool = self.registry.resolve(pool_ref)
        acc = self.accumulator.simulate(pool, tick)
        return self.accumulator.pending(entry, acc)

    def staked_balance(self, participant: str, pool_ref: PoolRef) -> int:
        self.registry.resolve(pool_ref)
        entry = self.get_entry(participant, pool_ref)
        return entry.amount if entry else 0

    def entries_for_pool(self, pool_ref: PoolRef) -> List[StakeEntry]:
        return [entry for (_, ref), entry in self.entries.items() if ref == pool_ref]

    def total_for_pool(self, pool_ref: PoolRef) -> int:
        """Sum of entry amounts; always equals the pool's ``total_staked``."""
        return sum(entry.amount for entry in self.entries_for_pool(pool_ref))

    def participants(self) -> List[str]:
        return sorted({participant for participant, _ in self.entries})

    def __iter__(self) -> Iterator[StakeEntry]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> List[Dict[str, Any]]:
        # Insertion order is operation order, so the output is replay-stable
        return [entry.to_dict() for entry in self.entries.values()]

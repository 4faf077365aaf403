"""Observations emitted by the reward distributor.

One event per successful state-changing operation. Events carry the tick
and a per-ledger sequence number instead of wall-clock time so a replay of
the same operations reproduces the same event log.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class EventType(Enum):
    POOL_ADDED = "PoolAdded"
    POOL_WEIGHT_MODIFIED = "PoolWeightModified"
    BASE_RATIO_MODIFIED = "BaseRatioModified"
    DEPOSITED = "Deposited"
    LP_DEPOSITED = "LPDeposited"
    WITHDRAWN = "Withdrawn"
    LP_WITHDRAWN = "LPWithdrawn"
    CLAIMED = "Claimed"
    LP_CLAIMED = "LPClaimed"


@dataclass(frozen=True)
class LedgerEvent:
    """
    A single audit-trail entry.

    Field use per event type:
    - POOL_ADDED: ``pool_id``, ``new_value`` = weight, ``asset``
    - POOL_WEIGHT_MODIFIED: ``pool_id``, ``old_value``, ``new_value``
    - BASE_RATIO_MODIFIED: ``old_value``, ``new_value``
    - (LP_)DEPOSITED / (LP_)WITHDRAWN: ``amount`` moved, ``total`` = the
      participant's resulting stake, ``reward`` harvested on the way
    - (LP_)CLAIMED: ``reward`` issued (may be 0)

    ``pool_id`` is None for base-pool events.
    """

    event_type: EventType
    sequence: int
    tick: int
    participant: str = ""
    pool_id: Optional[int] = None
    asset: str = ""
    amount: int = 0
    total: int = 0
    reward: int = 0
    old_value: int = 0
    new_value: int = 0

    @property
    def is_base_pool(self) -> bool:
        return self.pool_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "sequence": self.sequence,
            "tick": self.tick,
            "participant": self.participant,
            "pool_id": self.pool_id,
            "asset": self.asset,
            "amount": self.amount,
            "total": self.total,
            "reward": self.reward,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }

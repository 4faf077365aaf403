"""Tick sources for the reward ledger.

The ledger never advances time itself. It reads the current tick (block
height) from a zero-argument callable supplied by its host.
"""

from __future__ import annotations

from typing import Callable

TickProvider = Callable[[], int]


class ManualClock:
    """Tick counter advanced explicitly by its owner (tests, replays)."""

    def __init__(self, start_tick: int = 0):
        if isinstance(start_tick, bool) or not isinstance(start_tick, int) or start_tick < 0:
            raise ValueError("start_tick must be a non-negative integer")
        self.current_tick = start_tick

    def now(self) -> int:
        return self.current_tick

    def advance(self, ticks: int = 1) -> int:
        if isinstance(ticks, bool) or not isinstance(ticks, int) or ticks < 0:
            raise ValueError("ticks must be a non-negative integer")
        self.current_tick += ticks
        return self.current_tick

    def set(self, tick: int) -> int:
        """Jump to ``tick``; ticks never move backwards."""
        if isinstance(tick, bool) or not isinstance(tick, int):
            raise ValueError("tick must be an integer")
        if tick < self.current_tick:
            raise ValueError(f"tick {tick} is before current tick {self.current_tick}")
        self.current_tick = tick
        return self.current_tick


def read_tick(provider: TickProvider) -> int:
    """Call ``provider`` and check it returned an integer tick."""
    tick = provider()
    if isinstance(tick, bool) or not isinstance(tick, int):
        raise ValueError("tick provider must return an integer tick")
    if tick < 0:
        raise ValueError("tick provider returned a negative tick")
    return tick

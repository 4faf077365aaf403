"""
Base-pool weight policies.

The base pool has no stored weight. A policy derives its effective weight
from the aggregate explicit weight and the base-ratio parameter, so the
base pool's share depends only on the explicit total, never on how that
total is spread across individual pools.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Protocol, runtime_checkable

from ..exceptions import InvalidParameterError


@runtime_checkable
class BaseWeightPolicy(Protocol):
    """Maps ``(total_weight, base_ratio)`` to the base pool's effective weight."""

    def base_weight(self, total_weight: int, base_ratio: int) -> Fraction:
        ...

    def validate_ratio(self, base_ratio: int) -> None:
        ...


class RatioBaseWeightPolicy:
    """
    Fixed-share policy: the base pool receives ``base_ratio / denominator``
    of the emission whenever any explicit weight exists.

    Solving ``b / (b + W) = r / d`` for the base weight ``b`` gives
    ``b = W * r / (d - r)``. With no explicit weight the base pool is the
    only claimant and receives the whole emission.
    """

    def __init__(self, denominator: int = 256):
        if isinstance(denominator, bool) or not isinstance(denominator, int) or denominator <= 0:
            raise InvalidParameterError("Ratio denominator must be a positive integer")
        self.denominator = denominator

    def validate_ratio(self, base_ratio: int) -> None:
        if isinstance(base_ratio, bool) or not isinstance(base_ratio, int):
            raise InvalidParameterError("Base ratio must be an integer")
        if not 0 <= base_ratio < self.denominator:
            raise InvalidParameterError(
                f"Base ratio must be in [0, {self.denominator}), got {base_ratio}",
                details={"base_ratio": base_ratio, "denominator": self.denominator},
            )

    def base_weight(self, total_weight: int, base_ratio: int) -> Fraction:
        if total_weight == 0:
            return Fraction(1)
        return Fraction(total_weight * base_ratio, self.denominator - base_ratio)

    def base_share(self, total_weight: int, base_ratio: int) -> Fraction:
        """Fraction of the emission going to the base pool."""
        base = self.base_weight(total_weight, base_ratio)
        return base / (base + total_weight)

    def __repr__(self) -> str:
        return f"RatioBaseWeightPolicy(denominator={self.denominator})"

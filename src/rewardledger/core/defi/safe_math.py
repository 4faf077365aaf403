"""
Fixed-point helpers for reward accounting.

All reward math is integer math. Division always rounds DOWN when paying
participants, so rounding dust stays in the pool instead of being
over-distributed.
"""

from __future__ import annotations

from fractions import Fraction

MAX_UINT256 = 2**256 - 1

# Default scale for acc_reward_per_share
ACC_PRECISION = 10**12


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        round_up: If True, round up; if False, round down (paying users)

    Returns:
        Result of (a * b) / denominator

    Raises:
        ValueError: If denominator is zero
        OverflowError: If the product exceeds uint256
    """
    if denominator == 0:
        raise ValueError("Division by zero")

    result = a * b
    if result > MAX_UINT256:
        raise OverflowError("Multiplication overflow")

    if round_up:
        return (result + denominator - 1) // denominator
    return result // denominator


def share_of(total: int, weight: Fraction, total_weight: Fraction) -> int:
    """Floor of ``total * weight / total_weight`` using exact rational weights."""
    if total_weight <= 0:
        raise ValueError("total_weight must be positive")
    return int((total * weight) // total_weight)

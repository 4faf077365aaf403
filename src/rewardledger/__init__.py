"""
rewardledger - Reward Distribution Ledger

A fixed-rate stream of a reward asset is emitted per tick and split between
a base pool (staking the reward asset itself) and weighted explicit pools.

Main Components:
- Distributor: deposit, withdraw and claim against any pool
- Accounting: accumulated-reward-per-share with lazy checkpoints
- Collaborators: in-memory ERC20 tokens, custody, minting, access control
- Replay: deterministic scenario replay from YAML (CLI)
"""

__version__ = "0.1.0"
__author__ = "rewardledger developers"

__all__ = []

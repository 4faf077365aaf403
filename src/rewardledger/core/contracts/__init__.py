"""
Token contracts used as ledger collaborators.

- ERC20: fungible token with a designated minter
- Factory for deploying tokens by symbol
"""

from .erc20 import ZERO_ADDRESS, ERC20Factory, ERC20Token, TokenEvent

__all__ = [
    "ERC20Token",
    "ERC20Factory",
    "TokenEvent",
    "ZERO_ADDRESS",
]

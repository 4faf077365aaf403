"""
Collaborator contracts consumed by the reward distributor, and the
adapters that satisfy them with in-memory ERC20 tokens.

Failures are exceptions. A failing collaborator must leave its own state
untouched; the distributor restores ledger state and re-raises the
collaborator's exception unchanged.
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, runtime_checkable

from ..contracts.erc20 import ERC20Factory, ERC20Token
from ..exceptions import TokenError

logger = logging.getLogger(__name__)


@runtime_checkable
class BalanceTransfer(Protocol):
    """Moves staked assets between participants and the ledger's custody."""

    def transfer_in(self, asset: str, sender: str, amount: int) -> None:
        ...

    def transfer_out(self, asset: str, recipient: str, amount: int) -> None:
        ...


@runtime_checkable
class RewardMinter(Protocol):
    """Issues newly earned reward units."""

    def check_mint(self, to: str, amount: int) -> None:
        """Raise the error ``mint`` would raise, without minting."""
        ...

    def mint(self, to: str, amount: int) -> None:
        ...


@runtime_checkable
class Authorizer(Protocol):
    def is_administrator(self, caller: str) -> bool:
        ...


class TokenCustody:
    """
    Custody of staked tokens at the ledger's own address.

    Deposits pull tokens with ``transfer_from`` (participants approve the
    ledger first); withdrawals push them back with ``transfer``.
    """

    def __init__(self, custodian: str, tokens: ERC20Factory | Mapping[str, ERC20Token]):
        self.custodian = custodian.lower()
        self._tokens = tokens

    def token(self, asset: str) -> ERC20Token:
        if isinstance(self._tokens, ERC20Factory):
            token = self._tokens.get_token(asset)
        else:
            token = self._tokens.get(asset.lower())
        if token is None:
            raise TokenError(f"Unknown asset {asset}", details={"asset": asset})
        return token

    def transfer_in(self, asset: str, sender: str, amount: int) -> None:
        self.token(asset).transfer_from(self.custodian, sender, self.custodian, amount)

    def transfer_out(self, asset: str, recipient: str, amount: int) -> None:
        self.token(asset).transfer(self.custodian, recipient, amount)

    def held(self, asset: str) -> int:
        """Balance of ``asset`` currently in custody."""
        return self.token(asset).balance_of(self.custodian)


class TokenMinter:
    """Mints the reward token as the ledger, which must be the token's minter."""

    def __init__(self, minter: str, reward_token: ERC20Token):
        self.minter = minter.lower()
        self.reward_token = reward_token

    def check_mint(self, to: str, amount: int) -> None:
        self.reward_token.require_mintable(self.minter, to, amount)

    def mint(self, to: str, amount: int) -> None:
        self.reward_token.mint(self.minter, to, amount)

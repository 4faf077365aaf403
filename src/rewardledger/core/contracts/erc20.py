"""
ERC20 Token Implementation.

In-memory fungible token used for both the reward asset and the staked
assets of a reward ledger:
- Basic token operations (transfer, approve, transferFrom)
- Minting restricted to a single designated minter (the ledger)
- Burning by holders
- Pause switch (owner only)
- Transfer / Approval event log

Security features:
- 256-bit amount bounds
- Zero address checks
- Balance underflow prevention
- Allowance validation
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from ..exceptions import TokenError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


@dataclass
class TokenEvent:
    """Represents an ERC20 event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int


@dataclass
class ERC20Token:
    """
    ERC20 token with owner-managed minter.

    The owner may hand minting rights to one other address (``set_minter``),
    which is how a reward ledger becomes the sole issuer of its reward
    asset. All balances and allowances are kept in memory.
    """

    # Token metadata
    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    # Contract address
    address: str = ""

    # Owner (pause, minter assignment); minter defaults to owner
    owner: str = ""
    minter: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    # Event log
    events: list[TokenEvent] = field(default_factory=list)

    # Pause state
    paused: bool = False

    # Constants
    UINT256_MAX: int = 2**256 - 1

    def __post_init__(self) -> None:
        """Derive a deterministic address and normalize roles."""
        if not self.address:
            addr_input = f"{self.name}:{self.symbol}:{self.owner}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)
        self.minter = self._normalize(self.minter) if self.minter else self.owner

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    def is_minter(self, account: str) -> bool:
        return bool(self.minter) and self._normalize(account) == self.minter

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        self._require_not_paused()
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise TokenError(
                f"ERC20: transfer amount exceeds balance "
                f"({amount} > {sender_balance})",
                details={"token": self.symbol, "account": sender_norm},
            )

        self.balances[sender_norm] = sender_balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount

        self._emit_transfer(sender_norm, recipient_norm, amount)

        logger.debug(
            "ERC20 transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Approve spender to spend tokens on behalf of owner."""
        self._require_not_paused()
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        if owner_norm not in self.allowances:
            self.allowances[owner_norm] = {}
        self.allowances[owner_norm][spender_norm] = amount

        self._emit_approval(owner_norm, spender_norm, amount)

        return True

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing transfer (msg.sender)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Raises:
            TokenError: If allowance or balance is insufficient
        """
        self._require_not_paused()
        spender_norm = self._normalize(spender)
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise TokenError(
                f"ERC20: insufficient allowance ({current_allowance} < {amount})",
                details={"token": self.symbol, "owner": from_norm, "spender": spender_norm},
            )

        from_balance = self.balances.get(from_norm, 0)
        if from_balance < amount:
            raise TokenError(
                f"ERC20: transfer amount exceeds balance ({amount} > {from_balance})",
                details={"token": self.symbol, "account": from_norm},
            )

        # Unlimited allowances are never decremented
        if current_allowance != self.UINT256_MAX:
            self.allowances[from_norm][spender_norm] = current_allowance - amount

        self.balances[from_norm] = from_balance - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        self._emit_transfer(from_norm, to_norm, amount)

        return True

    # ==================== Minting & Burning ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (designated minter only).

        Raises:
            TokenError: If caller is not the minter or the token is paused
        """
        self.require_mintable(minter, to, amount)
        to_norm = self._normalize(to)

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        # Emit transfer from zero address
        self._emit_transfer(ZERO_ADDRESS, to_norm, amount)

        logger.info(
            "ERC20 mint",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    def require_mintable(self, minter: str, to: str, amount: int) -> None:
        """Raise the TokenError ``mint`` would raise for these arguments."""
        self._require_not_paused()
        self._require_minter(minter)
        self._validate_address(self._normalize(to), "recipient")
        self._validate_amount(amount)

    def burn(self, holder: str, amount: int) -> bool:
        """Burn tokens from holder's balance."""
        self._require_not_paused()
        holder_norm = self._normalize(holder)
        self._validate_amount(amount)

        balance = self.balances.get(holder_norm, 0)
        if balance < amount:
            raise TokenError(
                f"ERC20: burn amount exceeds balance ({amount} > {balance})"
            )

        self.balances[holder_norm] = balance - amount
        self.total_supply -= amount

        self._emit_transfer(holder_norm, ZERO_ADDRESS, amount)

        return True

    # ==================== Admin Functions ====================

    def set_minter(self, caller: str, new_minter: str) -> bool:
        """Hand minting rights to ``new_minter`` (owner only)."""
        self._require_owner(caller)
        minter_norm = self._normalize(new_minter)
        self._validate_address(minter_norm, "minter")
        old_minter = self.minter
        self.minter = minter_norm

        logger.info(
            "ERC20 minter changed",
            extra={
                "event": "erc20.minter_changed",
                "token": self.symbol,
                "old_minter": old_minter[:10],
                "new_minter": minter_norm[:10],
            }
        )
        return True

    def pause(self, caller: str) -> bool:
        """Pause token transfers (owner only)."""
        self._require_owner(caller)
        self.paused = True
        return True

    def unpause(self, caller: str) -> bool:
        """Unpause token transfers (owner only)."""
        self._require_owner(caller)
        self.paused = False
        return True

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        if address == ZERO_ADDRESS or not address:
            raise TokenError(f"ERC20: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TokenError("ERC20: amount must be an integer")
        if amount < 0:
            raise TokenError("ERC20: amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise TokenError("ERC20: amount exceeds uint256")

    def _require_owner(self, caller: str) -> None:
        if self._normalize(caller) != self.owner:
            raise TokenError("ERC20: caller is not owner")

    def _require_minter(self, caller: str) -> None:
        if not self.is_minter(caller):
            raise TokenError(
                "ERC20: caller is not the minter",
                details={"token": self.symbol, "caller": self._normalize(caller)},
            )

    def _require_not_paused(self) -> None:
        if self.paused:
            raise TokenError("ERC20: token is paused", recoverable=True)

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    def _emit_approval(self, owner: str, spender: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Approval",
                from_address=owner,
                to_address=spender,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "minter": self.minter,
            "balances": dict(sorted(self.balances.items())),
            "paused": self.paused,
        }


class ERC20Factory:
    """
    Factory for creating ERC20 tokens.

    Keeps the deployed tokens addressable by address and by symbol so a
    ledger's custody adapter can look up the token behind an asset address.
    """

    def __init__(self) -> None:
        self.deployed_tokens: dict[str, ERC20Token] = {}

    def create_token(
        self,
        creator: str,
        name: str,
        symbol: str,
        decimals: int = 18,
        initial_supply: int = 0,
        mint_to: str | None = None,
    ) -> ERC20Token:
        """
        Create a new ERC20 token.

        Args:
            creator: Address creating the token (becomes owner and initial minter)
            name: Token name
            symbol: Token symbol (ticker), unique per factory
            decimals: Decimal places (default 18)
            initial_supply: Initial supply to mint
            mint_to: Address to mint initial supply to (defaults to creator)

        Raises:
            TokenError: If creation fails
        """
        if not name:
            raise TokenError("ERC20Factory: name cannot be empty")
        if not symbol:
            raise TokenError("ERC20Factory: symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise TokenError("ERC20Factory: invalid decimals")
        if initial_supply < 0:
            raise TokenError("ERC20Factory: invalid initial supply")
        if self.get_token_by_symbol(symbol) is not None:
            raise TokenError(f"ERC20Factory: symbol {symbol} already deployed")

        token = ERC20Token(
            name=name,
            symbol=symbol,
            decimals=decimals,
            owner=creator,
        )

        if initial_supply > 0:
            token.mint(creator, mint_to or creator, initial_supply)

        self.deployed_tokens[token.address] = token

        logger.info(
            "ERC20 token created",
            extra={
                "event": "erc20.created",
                "address": token.address,
                "token_name": name,
                "symbol": symbol,
                "initial_supply": initial_supply,
                "creator": creator[:10],
            }
        )

        return token

    def get_token(self, address: str) -> ERC20Token | None:
        return self.deployed_tokens.get(address.lower())

    def get_token_by_symbol(self, symbol: str) -> ERC20Token | None:
        for token in self.deployed_tokens.values():
            if token.symbol == symbol:
                return token
        return None

    def list_tokens(self) -> list[Dict[str, Any]]:
        return [
            {
                "address": address,
                "name": token.name,
                "symbol": token.symbol,
                "decimals": token.decimals,
                "total_supply": token.total_supply,
                "owner": token.owner,
            }
            for address, token in self.deployed_tokens.items()
        ]

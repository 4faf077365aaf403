"""
Exception hierarchy for the reward ledger.

Provides typed exceptions for ledger operations so callers can tell a
rejected request (bad amount, missing stake, unknown pool, missing
authority) apart from a failure raised by a token collaborator.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all reward-ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried as-is
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(LedgerError):
    """Raised when an operation's arguments fail validation."""
    pass


class InvalidAmountError(ValidationError):
    """Raised when a deposit or withdraw amount is zero, negative or not an integer."""
    pass


class InsufficientStakeError(ValidationError):
    """Raised when a withdraw exceeds the participant's deposited amount."""

    def __init__(
        self,
        message: str,
        requested: int = 0,
        available: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.requested = requested
        self.available = available


class InvalidParameterError(ValidationError):
    """Raised for out-of-domain administrative parameters or malformed addresses."""
    pass


class UnknownPoolError(ValidationError):
    """Raised when an explicit pool id does not name a created pool."""

    def __init__(self, message: str, pool_id: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.pool_id = pool_id


# ==================== Authorization & Execution Errors ====================


class UnauthorizedError(LedgerError):
    """Raised when an administrative operation is invoked by a non-administrator."""
    pass


class ReentrancyError(LedgerError):
    """Raised when a collaborator calls back into the ledger mid-operation."""
    pass


class TokenError(LedgerError):
    """Raised by the token collaborator (balance, allowance, pause, minter checks).

    The ledger never wraps these; they reach the caller unchanged.
    """
    pass


# ==================== Configuration Errors ====================


class ConfigurationError(LedgerError):
    """Raised when ledger configuration is missing or invalid."""
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, InsufficientStakeError):
        context["requested"] = exc.requested
        context["available"] = exc.available

    if isinstance(exc, UnknownPoolError) and exc.pool_id is not None:
        context["pool_id"] = exc.pool_id

    return context

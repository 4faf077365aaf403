"""
Role-Based Access Control for the reward ledger.

Answers the one question the ledger asks of its authorization
collaborator, ``is_administrator(caller)``, and keeps an audit trail of
role changes.

Security features:
- Only admins can grant/revoke roles
- The last admin cannot be revoked
- Audit trail for all role changes
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Set, TypeVar

from ..exceptions import InvalidParameterError, UnauthorizedError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Role(Enum):
    """Roles understood by the ledger."""
    ADMIN = "admin"
    OPERATOR = "operator"


@dataclass
class RoleBasedAccessControl:
    """
    Role registry with an owner-held admin role.

    Usage:
        rbac = RoleBasedAccessControl(admin_address="0xowner")
        rbac.is_administrator("0xowner")  # True
        rbac.grant_role("0xowner", Role.ADMIN.value, "0xops")
    """

    admin_address: str = ""

    # Role assignments: role -> set of addresses
    roles: Dict[str, Set[str]] = field(default_factory=dict)

    # Audit log
    role_changes: List[Dict[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        for role in Role:
            if role.value not in self.roles:
                self.roles[role.value] = set()

        if self.admin_address:
            self.admin_address = self.admin_address.lower()
            self.roles[Role.ADMIN.value].add(self.admin_address)

    def is_administrator(self, caller: str) -> bool:
        return self.has_role(Role.ADMIN.value, caller)

    def has_role(self, role: str, address: str) -> bool:
        if not address:
            return False
        return address.lower() in self.roles.get(role, set())

    def require_role(self, caller: str, role: str) -> None:
        """Raise UnauthorizedError unless ``caller`` holds ``role``."""
        if not self.has_role(role, caller):
            logger.warning(
                "Access denied: role not assigned",
                extra={
                    "event": "rbac.role_not_assigned",
                    "address": (caller or "")[:10],
                    "required_role": role,
                },
            )
            raise UnauthorizedError(
                f"Unauthorized: caller {(caller or '')[:10]} does not have role '{role}'",
                details={"caller": caller, "role": role},
            )

    def grant_role(self, caller: str, role: str, address: str) -> bool:
        """
        Grant a role to an address.

        Raises:
            UnauthorizedError: If caller is not admin
        """
        self.require_role(caller, Role.ADMIN.value)
        if not address:
            raise InvalidParameterError("Cannot grant a role to an empty address")

        address_norm = address.lower()
        self.roles.setdefault(role, set()).add(address_norm)
        self._audit("grant", role, address_norm, caller)

        logger.info(
            "Role granted",
            extra={
                "event": "rbac.role_granted",
                "role": role,
                "address": address_norm[:10],
                "admin": caller[:10],
            },
        )
        return True

    def revoke_role(self, caller: str, role: str, address: str) -> bool:
        """
        Revoke a role from an address.

        Raises:
            UnauthorizedError: If caller is not admin
            InvalidParameterError: If this would remove the last admin
        """
        self.require_role(caller, Role.ADMIN.value)

        address_norm = address.lower()
        members = self.roles.get(role, set())
        if role == Role.ADMIN.value and members == {address_norm}:
            raise InvalidParameterError("Cannot revoke the last admin")
        members.discard(address_norm)
        self._audit("revoke", role, address_norm, caller)

        logger.info(
            "Role revoked",
            extra={
                "event": "rbac.role_revoked",
                "role": role,
                "address": address_norm[:10],
                "admin": caller[:10],
            },
        )
        return True

    def get_role_members(self, role: str) -> Set[str]:
        return self.roles.get(role, set()).copy()

    def get_user_roles(self, address: str) -> Set[str]:
        address_norm = address.lower()
        return {
            role
            for role, members in self.roles.items()
            if address_norm in members
        }

    def _audit(self, action: str, role: str, address: str, admin: str) -> None:
        self.role_changes.append({
            "action": action,
            "role": role,
            "address": address,
            "admin": admin.lower(),
        })


def requires_admin(func: F) -> F:
    """
    Decorator for ledger methods whose first argument is the caller.

    The decorated object must expose an ``authorizer`` with
    ``is_administrator(caller)``.

    Usage:
        @requires_admin
        def set_base_ratio(self, caller: str, new_ratio: int) -> int:
            ...
    """
    @functools.wraps(func)
    def wrapper(self, caller: str, *args, **kwargs):
        if not caller or not self.authorizer.is_administrator(caller):
            logger.warning(
                "Access denied: administrator required",
                extra={
                    "event": "rbac.admin_required",
                    "address": (caller or "")[:10],
                    "operation": func.__name__,
                },
            )
            raise UnauthorizedError(
                f"Unauthorized: {func.__name__} requires an administrator",
                details={"caller": caller, "operation": func.__name__},
            )
        return func(self, caller, *args, **kwargs)
    return wrapper  # type: ignore[return-value]

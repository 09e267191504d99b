"""Role-based access control for privileged ledger operations.

Membership is an explicit mapping from principal to granted roles, consulted
at every privileged entry point before any other logic runs.
"""

import logging
from enum import Enum
from functools import wraps
from typing import Callable, Iterable, Optional

from stablevault.addresses import normalize_address, require_address
from stablevault.errors import AuthorizationError, InputError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Privileged roles."""

    ADMIN = "admin"        # Reassigns roles, sets cap and swap adapter
    OPERATOR = "operator"  # Sets withdrawal limit


class AccessControl:
    """Principal -> role set mapping."""

    def __init__(self, admins: Optional[Iterable[str]] = None):
        self._members: dict[str, set[Role]] = {}
        self._denied: dict[str, int] = {}
        for admin in admins or ():
            self._add(admin, Role.ADMIN)

    def has_role(self, account: str, role: Role) -> bool:
        return Role(role) in self._members.get(normalize_address(account), set())

    def roles_of(self, account: str) -> set[Role]:
        return set(self._members.get(normalize_address(account), set()))

    def members(self, role: Role) -> list[str]:
        """Accounts holding a role, sorted for stable output."""
        role = Role(role)
        return sorted(account for account, roles in self._members.items() if role in roles)

    def check_role(self, caller: str, role: Role) -> None:
        """Raise AuthorizationError unless caller holds role."""
        role = Role(role)
        if not self.has_role(caller, role):
            self._record_denied(caller, role)
            raise AuthorizationError(normalize_address(caller), role.value)

    def grant_role(self, sender: str, role: Role, account: str) -> bool:
        """Grant role to account. Admin only.

        Returns:
            True if the membership changed
        """
        self.check_role(sender, Role.ADMIN)
        account = require_address(account, "account")
        changed = self._add(account, Role(role))
        if changed:
            logger.info(f"Role {Role(role).value} granted to {account} by {sender}")
        return changed

    def revoke_role(self, sender: str, role: Role, account: str) -> bool:
        """Revoke role from account. Admin only.

        Returns:
            True if the membership changed
        """
        self.check_role(sender, Role.ADMIN)
        account = require_address(account, "account")
        changed = self._remove(account, Role(role))
        if changed:
            logger.info(f"Role {Role(role).value} revoked from {account} by {sender}")
        return changed

    def renounce_role(self, account: str, role: Role) -> bool:
        """Drop one of the caller's own roles."""
        return self._remove(require_address(account, "account"), Role(role))

    def denied_attempts(self) -> dict[str, int]:
        """Count of rejected privileged calls per role."""
        return self._denied.copy()

    def apply(self, role: Role, account: str, granted: bool) -> None:
        """Apply a membership change without authorization (event replay)."""
        if granted:
            self._add(account, Role(role))
        else:
            self._remove(account, Role(role))

    def _add(self, account: str, role: Role) -> bool:
        account = normalize_address(account)
        if not account:
            raise InputError("account must not be empty", field="account")
        roles = self._members.setdefault(account, set())
        if role in roles:
            return False
        roles.add(role)
        return True

    def _remove(self, account: str, role: Role) -> bool:
        roles = self._members.get(normalize_address(account))
        if not roles or role not in roles:
            return False
        roles.discard(role)
        return True

    def _record_denied(self, caller: str, role: Role) -> None:
        self._denied[role.value] = self._denied.get(role.value, 0) + 1
        logger.warning(
            "Unauthorized call by %s: role %s required (attempt #%d)",
            caller,
            role.value,
            self._denied[role.value],
        )


def require_role(role: Role) -> Callable:
    """Decorator for async methods of objects exposing ``access``.

    The wrapped method must take the acting principal as its first argument
    after ``self``.

    Usage:
        @require_role(Role.ADMIN)
        async def set_cap(self, caller, new_cap):
            ...

    Raises:
        AuthorizationError: If caller lacks the role
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self, caller: str, *args, **kwargs):
            self.access.check_role(caller, role)
            return await func(self, caller, *args, **kwargs)

        wrapper.required_role = role
        return wrapper

    return decorator

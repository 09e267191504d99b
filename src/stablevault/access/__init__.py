"""Access control for privileged ledger operations."""

from stablevault.access.roles import AccessControl, Role, require_role

__all__ = ["AccessControl", "Role", "require_role"]

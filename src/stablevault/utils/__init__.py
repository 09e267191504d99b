"""Utility modules for StableVault."""

from stablevault.utils.locks import LockTimeoutError, ReentrancyGuard

__all__ = ["LockTimeoutError", "ReentrancyGuard"]

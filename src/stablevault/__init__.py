"""StableVault: custodial stable-asset ledger with AMM conversion of deposits."""

__version__ = "0.1.0"

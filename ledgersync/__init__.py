"""LedgerSync: personal-finance auth and incremental sync server."""

__version__ = "1.0.0"

"""
Daybook - Source Package

A single-user ledger for daily sales and expense entries, persisted
in a local versioned store.

DESIGN PRINCIPLES:
1. The store owns the durable copy; in-memory state is a read-through cache
2. Untrusted data is validated before anything touches the store
3. Legacy shapes are resolved once, at load time
4. Destructive restores require explicit confirmation
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Daybook Team"

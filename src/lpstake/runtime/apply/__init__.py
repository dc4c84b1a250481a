# src/lpstake/runtime/apply/__init__.py
"""Ledger state transitions.

These modules implement the checks and state effects of each entry point.
They never issue transfers themselves; the executor runs them through a
CallJournal around the state effects applied here.

NOTE: Keep this package import-safe (no imports of the executor).
"""

from __future__ import annotations

__all__ = [
    "staking",
    "admin",
]

# src/lpstake/services/__init__.py
"""External collaborators of the staking ledger.

The executor never talks to a concrete token or pool; it talks to the
Protocols in ``interfaces`` resolved through a ServiceDirectory.
``memory`` holds in-process reference implementations for tests and dev nodes.
"""

from lpstake.services.interfaces import LiquidityPoolOracle, ServiceDirectory, TransferableBalanceLedger
from lpstake.services.memory import InMemoryPool, InMemoryServiceDirectory, InMemoryToken

__all__ = [
    "LiquidityPoolOracle",
    "ServiceDirectory",
    "TransferableBalanceLedger",
    "InMemoryPool",
    "InMemoryServiceDirectory",
    "InMemoryToken",
]

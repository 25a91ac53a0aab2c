"""Storage protocols and backends.

Backends are imported by module path: ``keygate.stores.memory.MemoryStore``
and ``keygate.stores.sql.SQLStore``.
"""

from keygate.stores.base import (
    AlertStore,
    KeyStore,
    LedgerStore,
    PlanStore,
    StoreUnavailableError,
    WindowStore,
)

__all__ = [
    "AlertStore",
    "KeyStore",
    "LedgerStore",
    "PlanStore",
    "StoreUnavailableError",
    "WindowStore",
]

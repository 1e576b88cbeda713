"""
Database layer: SQLAlchemy storage for registry state and the verification event log.
"""

from verification_registry.database.host import open_sql_host
from verification_registry.database.store import (
    RegistryStorage,
    SqlEventLog,
    SqlKeyValueStore,
    VerificationEvent,
    create_registry_engine,
    init_db,
)

__all__ = [
    "RegistryStorage",
    "SqlEventLog",
    "SqlKeyValueStore",
    "VerificationEvent",
    "create_registry_engine",
    "init_db",
    "open_sql_host",
]

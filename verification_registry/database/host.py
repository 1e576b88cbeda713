"""
Host environment over the database: SQL storage, SQL event log, system clock
and a context-bound caller.
"""

from __future__ import annotations

from verification_registry.database.store import (
    SqlEventLog,
    SqlKeyValueStore,
    create_registry_engine,
    init_db,
)
from verification_registry.registry.host import (
    CallerSource,
    Clock,
    ContextCaller,
    HostEnvironment,
    SystemClock,
)


def open_sql_host(
    url: str,
    *,
    caller: CallerSource | None = None,
    clock: Clock | None = None,
) -> HostEnvironment:
    """Create the engine, ensure tables exist, and bundle the SQL-backed collaborators."""
    engine = create_registry_engine(url)
    init_db(engine)
    clock = clock or SystemClock()
    store = SqlKeyValueStore(engine)
    return HostEnvironment(
        caller=caller or ContextCaller(),
        clock=clock,
        store=store,
        events=SqlEventLog(store, clock),
    )

"""
The verification registry core: models, byte layout, host collaborators and
the VerificationRegistry itself.
"""

from verification_registry.registry.contract import VerificationRegistry, open_registry
from verification_registry.registry.host import (
    CallerSource,
    Clock,
    ContextCaller,
    EventSink,
    HostEnvironment,
    InMemoryStore,
    KeyValueStore,
    ManualClock,
    MemoryEventSink,
    StaticCaller,
    SystemClock,
    in_memory_host,
)
from verification_registry.registry.models import (
    BatchEntry,
    ContractInfo,
    RiskLevel,
    VerificationRecord,
    WalletAddress,
    WalletVerified,
)

__all__ = [
    "BatchEntry",
    "CallerSource",
    "Clock",
    "ContextCaller",
    "ContractInfo",
    "EventSink",
    "HostEnvironment",
    "InMemoryStore",
    "KeyValueStore",
    "ManualClock",
    "MemoryEventSink",
    "RiskLevel",
    "StaticCaller",
    "SystemClock",
    "VerificationRecord",
    "VerificationRegistry",
    "WalletAddress",
    "WalletVerified",
    "in_memory_host",
    "open_registry",
]

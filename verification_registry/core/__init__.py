"""
Core cross-cutting definitions: the error taxonomy shared by the registry,
the database host and the API server.
"""

from verification_registry.core.exceptions import (
    InvalidRiskScore,
    NoCallerError,
    NotAuthorized,
    RegistryAlreadyInitialized,
    RegistryNotInitialized,
    RegistryStateError,
    VerificationError,
    WalletAlreadyVerified,
)

__all__ = [
    "InvalidRiskScore",
    "NoCallerError",
    "NotAuthorized",
    "RegistryAlreadyInitialized",
    "RegistryNotInitialized",
    "RegistryStateError",
    "VerificationError",
    "WalletAlreadyVerified",
]

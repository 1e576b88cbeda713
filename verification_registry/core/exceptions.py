"""
Application-level exceptions.

VerificationError and its subclasses form the closed, caller-recoverable error
taxonomy of the registry's mutating operations. Each carries a stable ``code``
used by the API layer. Host and setup failures (registry state, missing caller)
live outside that taxonomy.
"""

from __future__ import annotations


class VerificationError(Exception):
    """Base class for errors returned by registry operations."""

    code = "verification_error"
    default_message = "verification failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotAuthorized(VerificationError):
    """Caller identity does not equal the registry owner."""

    code = "not_authorized"
    default_message = "caller is not the registry owner"


class InvalidRiskScore(VerificationError):
    """Risk score outside [0, 100] on the single-entry path."""

    code = "invalid_risk_score"
    default_message = "risk score must be between 0 and 100"


class WalletAlreadyVerified(VerificationError):
    """
    Reserved. No operation raises this: re-verifying an address overwrites the
    previous record.
    """

    code = "wallet_already_verified"
    default_message = "wallet is already verified"


class RegistryStateError(Exception):
    """Registry storage is in the wrong state for the requested setup step."""


class RegistryAlreadyInitialized(RegistryStateError):
    """construct() called on a store that already holds registry state."""


class RegistryNotInitialized(RegistryStateError):
    """attach() called on a store with no registry state."""


class NoCallerError(RuntimeError):
    """The host has no caller identity for the current call."""

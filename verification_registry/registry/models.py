"""
Domain models for the verification registry.

Wallet addresses, risk levels, stored verification records and the
WalletVerified notification. Plain dataclasses; no storage coupling.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple, Union

from solders.pubkey import Pubkey

WALLET_ADDRESS_LEN = 20
ACCOUNT_ID_LEN = 32
MIN_RISK_SCORE = 0
MAX_RISK_SCORE = 100

_HEX_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class WalletAddress:
    """Opaque 20-byte wallet identifier. Used only as a lookup key."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise ValueError(f"wallet address must be bytes, got {type(self.raw).__name__}")
        if len(self.raw) != WALLET_ADDRESS_LEN:
            raise ValueError(
                f"wallet address must be {WALLET_ADDRESS_LEN} bytes, got {len(self.raw)}"
            )
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_hex(cls, text: str) -> "WalletAddress":
        """Parse 40 hex digits with optional 0x prefix (case-insensitive)."""
        value = (text or "").strip()
        if not _HEX_ADDRESS_RE.match(value):
            raise ValueError(f"Invalid wallet address: {text!r}")
        if value[:2].lower() == "0x":
            value = value[2:]
        return cls(bytes.fromhex(value))

    @classmethod
    def coerce(cls, value: "AddressLike") -> "WalletAddress":
        if isinstance(value, WalletAddress):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        if isinstance(value, str):
            return cls.from_hex(value)
        raise ValueError(f"Unsupported wallet address type: {type(value).__name__}")

    def hex(self) -> str:
        return "0x" + self.raw.hex()

    def __str__(self) -> str:
        return self.hex()

    def short(self) -> str:
        """Truncated form for logs."""
        return self.hex()[:12] + "..."


AddressLike = Union[WalletAddress, bytes, bytearray, str]


class RiskLevel(str, Enum):
    """Categorical risk label, stored as given. Not derived from the score."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def code(self) -> int:
        """Numeric code used on the wire: Low=0, Medium=1, High=2."""
        return _RISK_LEVEL_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "RiskLevel":
        for level, level_code in _RISK_LEVEL_CODES.items():
            if level_code == code:
                return level
        raise ValueError(f"Unknown risk level code: {code}")

    @classmethod
    def parse(cls, value: "RiskLevel | str | int") -> "RiskLevel":
        """Accept a RiskLevel, its name in any case, or its numeric code."""
        if isinstance(value, RiskLevel):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Unknown risk level: {value!r}")
        if isinstance(value, int):
            return cls.from_code(value)
        if isinstance(value, str):
            name = value.strip().lower()
            for level in cls:
                if level.value.lower() == name:
                    return level
            if name.isdigit():
                return cls.from_code(int(name))
        raise ValueError(f"Unknown risk level: {value!r}")


_RISK_LEVEL_CODES = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
}


@dataclass(frozen=True)
class VerificationRecord:
    """Durable verification outcome for one wallet."""

    risk_score: int
    risk_level: RiskLevel
    verified_at: int
    """Host timestamp (ms since epoch) at write time."""
    verified_by: Pubkey
    is_sanctioned: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "verified_at": self.verified_at,
            "verified_by": str(self.verified_by),
            "is_sanctioned": self.is_sanctioned,
        }


@dataclass(frozen=True)
class WalletVerified:
    """Notification emitted once per successful insert. wallet_address is the topic."""

    wallet_address: WalletAddress
    risk_score: int
    risk_level: RiskLevel
    verified_by: Pubkey

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet_address": str(self.wallet_address),
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "verified_by": str(self.verified_by),
        }


class BatchEntry(NamedTuple):
    """One batch input row: (address, risk_score, risk_level, is_sanctioned)."""

    address: AddressLike
    risk_score: int
    risk_level: RiskLevel | str | int
    is_sanctioned: bool


@dataclass(frozen=True)
class ContractInfo:
    """Owner, version and counter in one read."""

    owner: Pubkey
    version: str
    total_verifications: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": str(self.owner),
            "version": self.version,
            "total_verifications": self.total_verifications,
        }


def is_valid_risk_score(score: Any) -> bool:
    """True if score is an int (not bool) in [MIN_RISK_SCORE, MAX_RISK_SCORE]."""
    if isinstance(score, bool) or not isinstance(score, int):
        return False
    return MIN_RISK_SCORE <= score <= MAX_RISK_SCORE

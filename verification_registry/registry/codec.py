"""
Byte layout for persisted registry state and emitted events.

Record (43 bytes, little-endian):
    risk_score u8 | risk_level u8 | verified_at u64 | verified_by [32] | is_sanctioned u8
Event (54 bytes):
    wallet_address [20] | risk_score u8 | risk_level u8 | verified_by [32]
Counter: u64 little-endian. Owner: 32 raw bytes.
"""

from __future__ import annotations

import struct

from solders.pubkey import Pubkey

from verification_registry.registry.models import (
    ACCOUNT_ID_LEN,
    RiskLevel,
    VerificationRecord,
    WalletAddress,
    WalletVerified,
)

RECORD_FORMAT = "<BBQ32sB"
RECORD_LEN = struct.calcsize(RECORD_FORMAT)  # 43
EVENT_FORMAT = "<20sBB32s"
EVENT_LEN = struct.calcsize(EVENT_FORMAT)  # 54
COUNTER_FORMAT = "<Q"

# Storage key prefixes
META_PREFIX = b"\x00"
VERIFICATION_PREFIX = b"\x01"
OWNER_KEY = META_PREFIX + b"owner"
TOTAL_KEY = META_PREFIX + b"total"


def verification_key(address: WalletAddress) -> bytes:
    return VERIFICATION_PREFIX + address.raw


def encode_record(record: VerificationRecord) -> bytes:
    return struct.pack(
        RECORD_FORMAT,
        record.risk_score,
        record.risk_level.code,
        record.verified_at,
        bytes(record.verified_by),
        1 if record.is_sanctioned else 0,
    )


def decode_record(data: bytes) -> VerificationRecord:
    """Decode a stored record. Raises ValueError on malformed data."""
    if len(data) != RECORD_LEN:
        raise ValueError(f"record must be {RECORD_LEN} bytes, got {len(data)}")
    score, level_code, verified_at, verifier, sanctioned = struct.unpack(RECORD_FORMAT, data)
    if sanctioned not in (0, 1):
        raise ValueError(f"invalid sanction flag byte: {sanctioned}")
    return VerificationRecord(
        risk_score=score,
        risk_level=RiskLevel.from_code(level_code),
        verified_at=verified_at,
        verified_by=Pubkey.from_bytes(verifier),
        is_sanctioned=bool(sanctioned),
    )


def encode_event(event: WalletVerified) -> bytes:
    return struct.pack(
        EVENT_FORMAT,
        event.wallet_address.raw,
        event.risk_score,
        event.risk_level.code,
        bytes(event.verified_by),
    )


def decode_event(data: bytes) -> WalletVerified:
    if len(data) != EVENT_LEN:
        raise ValueError(f"event must be {EVENT_LEN} bytes, got {len(data)}")
    wallet, score, level_code, verifier = struct.unpack(EVENT_FORMAT, data)
    return WalletVerified(
        wallet_address=WalletAddress(wallet),
        risk_score=score,
        risk_level=RiskLevel.from_code(level_code),
        verified_by=Pubkey.from_bytes(verifier),
    )


def encode_counter(value: int) -> bytes:
    return struct.pack(COUNTER_FORMAT, value)


def decode_counter(data: bytes) -> int:
    return struct.unpack(COUNTER_FORMAT, data)[0]


def encode_owner(owner: Pubkey) -> bytes:
    return bytes(owner)


def decode_owner(data: bytes) -> Pubkey:
    if len(data) != ACCOUNT_ID_LEN:
        raise ValueError(f"owner must be {ACCOUNT_ID_LEN} bytes, got {len(data)}")
    return Pubkey.from_bytes(data)

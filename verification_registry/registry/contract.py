"""
Verification registry: owner-gated record of wallet risk verifications.

State (held in the host key-value store):
- verifications: wallet address -> VerificationRecord (insert-or-replace)
- owner: identity of the constructing caller; never reassigned
- total_verifications: number of inserts performed, overwrites included

Mutating calls check authorization first, then input validity, and only then
write. Each call runs inside one store transaction and under the registry lock,
so other callers never observe a half-applied call.

Single and batch writes deliberately differ on bad scores: verify_wallet raises
InvalidRiskScore, verify_wallets_batch skips the entry and keeps going.
"""

from __future__ import annotations

import dataclasses
import threading
from typing import Iterable

from solders.pubkey import Pubkey

from verification_registry import __version__
from verification_registry.core.exceptions import (
    InvalidRiskScore,
    NotAuthorized,
    RegistryAlreadyInitialized,
    RegistryNotInitialized,
)
from verification_registry.registry.codec import (
    OWNER_KEY,
    TOTAL_KEY,
    decode_counter,
    decode_owner,
    decode_record,
    encode_counter,
    encode_owner,
    encode_record,
    verification_key,
)
from verification_registry.registry.host import HostEnvironment, StaticCaller
from verification_registry.registry.models import (
    AddressLike,
    BatchEntry,
    ContractInfo,
    RiskLevel,
    VerificationRecord,
    WalletAddress,
    WalletVerified,
    is_valid_risk_score,
)
from verification_registry.registry_logging import get_logger

logger = get_logger(__name__)


class VerificationRegistry:
    """
    Registry bound to a host environment.

    Create with construct() (fresh store, caller becomes owner) or attach()
    (store already holds registry state). Do not call __init__ directly.
    """

    def __init__(self, host: HostEnvironment, owner: Pubkey) -> None:
        self._host = host
        self._owner = owner
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @classmethod
    def construct(cls, host: HostEnvironment) -> "VerificationRegistry":
        """
        Initialize registry state in an empty store. The current caller becomes owner
        and total_verifications starts at 0.

        Raises RegistryAlreadyInitialized if the store already has an owner.
        """
        owner = host.caller.caller()
        with host.store.transaction():
            if host.store.get(OWNER_KEY, for_update=True) is not None:
                raise RegistryAlreadyInitialized("store already holds a registry")
            host.store.set(OWNER_KEY, encode_owner(owner))
            host.store.set(TOTAL_KEY, encode_counter(0))
        logger.info("registry_constructed", owner=str(owner))
        return cls(host, owner)

    @classmethod
    def attach(cls, host: HostEnvironment) -> "VerificationRegistry":
        """Bind to registry state already in the store. The stored owner is kept as is."""
        raw_owner = host.store.get(OWNER_KEY)
        if raw_owner is None:
            raise RegistryNotInitialized("store holds no registry; construct() it first")
        owner = decode_owner(raw_owner)
        logger.info("registry_attached", owner=str(owner))
        return cls(host, owner)

    @property
    def owner(self) -> Pubkey:
        return self._owner

    @property
    def host(self) -> HostEnvironment:
        return self._host

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def verify_wallet(
        self,
        address: AddressLike,
        risk_score: int,
        risk_level: RiskLevel | str | int,
        is_sanctioned: bool,
    ) -> None:
        """
        Record one verification, replacing any earlier record for the address.

        Raises NotAuthorized if the caller is not the owner (checked first), then
        InvalidRiskScore if risk_score is outside [0, 100]. Nothing is written on error.
        Emits one WalletVerified on success.
        """
        with self._lock:
            caller = self._require_owner("verify_wallet")
            if not is_valid_risk_score(risk_score):
                logger.warning(
                    "verify_wallet_rejected",
                    reason=InvalidRiskScore.code,
                    risk_score=risk_score,
                    caller=str(caller),
                )
                raise InvalidRiskScore(f"risk score {risk_score!r} is outside [0, 100]")
            wallet = WalletAddress.coerce(address)
            level = RiskLevel.parse(risk_level)

            store = self._host.store
            with store.transaction():
                verified_at = self._host.clock.now()
                self._insert(wallet, risk_score, level, bool(is_sanctioned), caller, verified_at)
                self._add_to_total(1)
            logger.info(
                "wallet_verified",
                wallet_address=wallet.short(),
                risk_score=risk_score,
                risk_level=level.value,
                is_sanctioned=bool(is_sanctioned),
                caller=str(caller),
            )

    def verify_wallets_batch(self, entries: Iterable[BatchEntry | tuple]) -> int:
        """
        Record many verifications in input order and return how many were applied.

        Authorization is checked once, before any entry. Entries whose score is
        outside [0, 100] are skipped: not stored, not counted, no notification.
        Every other entry behaves like verify_wallet, its notification emitted
        right after its write.

        Malformed addresses or risk levels raise ValueError before anything is written.
        """
        with self._lock:
            caller = self._require_owner("verify_wallets_batch")
            parsed = self._parse_batch(entries)

            applied = 0
            skipped = 0
            store = self._host.store
            with store.transaction():
                verified_at = self._host.clock.now()
                for index, (wallet, score, level, sanctioned) in enumerate(parsed):
                    if not is_valid_risk_score(score):
                        skipped += 1
                        logger.info(
                            "batch_entry_skipped",
                            index=index,
                            wallet_address=wallet.short(),
                            risk_score=score,
                        )
                        continue
                    self._insert(wallet, score, level, sanctioned, caller, verified_at)
                    applied += 1
                self._add_to_total(applied)
            logger.info(
                "batch_verify_completed",
                applied=applied,
                skipped=skipped,
                caller=str(caller),
            )
            return applied

    # -------------------------------------------------------------------------
    # Reads (no authorization, no side effects)
    # -------------------------------------------------------------------------

    def get_verification(self, address: AddressLike) -> VerificationRecord | None:
        wallet = WalletAddress.coerce(address)
        with self._lock:
            raw = self._host.store.get(verification_key(wallet))
        return decode_record(raw) if raw is not None else None

    def is_verified(self, address: AddressLike) -> bool:
        wallet = WalletAddress.coerce(address)
        with self._lock:
            return self._host.store.contains(verification_key(wallet))

    def get_total_verifications(self) -> int:
        with self._lock:
            return self._read_total()

    def get_owner(self) -> Pubkey:
        return self._owner

    def get_contract_info(self) -> ContractInfo:
        with self._lock:
            return ContractInfo(
                owner=self._owner,
                version=__version__,
                total_verifications=self._read_total(),
            )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_owner(self, operation: str) -> Pubkey:
        caller = self._host.caller.caller()
        if caller != self._owner:
            logger.warning(
                "verify_wallet_rejected",
                reason=NotAuthorized.code,
                operation=operation,
                caller=str(caller),
            )
            raise NotAuthorized()
        return caller

    @staticmethod
    def _parse_batch(
        entries: Iterable[BatchEntry | tuple],
    ) -> list[tuple[WalletAddress, int, RiskLevel, bool]]:
        parsed: list[tuple[WalletAddress, int, RiskLevel, bool]] = []
        for index, entry in enumerate(entries):
            try:
                address, score, level, sanctioned = entry
            except (TypeError, ValueError) as e:
                raise ValueError(f"batch entry {index} must have 4 fields") from e
            try:
                parsed.append(
                    (WalletAddress.coerce(address), score, RiskLevel.parse(level), bool(sanctioned))
                )
            except ValueError as e:
                raise ValueError(f"batch entry {index}: {e}") from e
        return parsed

    def _insert(
        self,
        wallet: WalletAddress,
        score: int,
        level: RiskLevel,
        sanctioned: bool,
        caller: Pubkey,
        verified_at: int,
    ) -> None:
        record = VerificationRecord(
            risk_score=score,
            risk_level=level,
            verified_at=verified_at,
            verified_by=caller,
            is_sanctioned=sanctioned,
        )
        self._host.store.set(verification_key(wallet), encode_record(record))
        self._host.events.emit(
            WalletVerified(
                wallet_address=wallet,
                risk_score=score,
                risk_level=level,
                verified_by=caller,
            )
        )

    def _read_total(self, *, for_update: bool = False) -> int:
        raw = self._host.store.get(TOTAL_KEY, for_update=for_update)
        return decode_counter(raw) if raw is not None else 0

    def _add_to_total(self, count: int) -> None:
        # row stays locked until commit; writers in other processes wait here
        if count:
            total = self._read_total(for_update=True)
            self._host.store.set(TOTAL_KEY, encode_counter(total + count))


def open_registry(host: HostEnvironment, deployer: Pubkey | None = None) -> VerificationRegistry:
    """
    Attach to the registry in host's store, constructing it first when the store
    is empty. Construction runs as ``deployer``, who becomes the owner.
    """
    try:
        return VerificationRegistry.attach(host)
    except RegistryNotInitialized:
        if deployer is None:
            raise RegistryNotInitialized(
                "store holds no registry and no deployer identity was given (set REGISTRY_OWNER)"
            ) from None
    deploy_host = dataclasses.replace(host, caller=StaticCaller(deployer))
    VerificationRegistry.construct(deploy_host)
    return VerificationRegistry.attach(host)

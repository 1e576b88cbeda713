"""
Tests for VerificationRegistry: construction, single verification, reads,
authorization and owner immutability. Uses the in-memory host from conftest.
"""

from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from conftest import START_MS, wallet
from verification_registry.core.exceptions import (
    InvalidRiskScore,
    NoCallerError,
    NotAuthorized,
    RegistryAlreadyInitialized,
    RegistryNotInitialized,
)
from verification_registry.registry.contract import VerificationRegistry, open_registry
from verification_registry.registry.host import in_memory_host
from verification_registry.registry.models import RiskLevel, WalletAddress, WalletVerified


def test_construct_sets_owner_and_zero_total(registry, owner):
    """Scenario 1: owner is the constructing caller, counter starts at 0."""
    assert registry.get_owner() == owner
    assert registry.owner == owner
    assert registry.get_total_verifications() == 0
    assert registry.is_verified(wallet(1)) is False
    assert registry.get_verification(wallet(1)) is None


def test_verify_wallet_works(registry, host, owner):
    """Scenario 2: stored record, counter and notification."""
    with host.caller.acting_as(owner):
        assert registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False) is None

    assert registry.is_verified(wallet(1)) is True
    assert registry.get_total_verifications() == 1
    record = registry.get_verification(wallet(1))
    assert record is not None
    assert record.risk_score == 25
    assert record.risk_level is RiskLevel.LOW
    assert record.is_sanctioned is False
    assert record.verified_by == owner
    assert record.verified_at == START_MS
    assert host.events.events == [
        WalletVerified(
            wallet_address=WalletAddress(wallet(1)),
            risk_score=25,
            risk_level=RiskLevel.LOW,
            verified_by=owner,
        )
    ]


def test_verify_wallet_not_authorized(registry, host, owner, stranger):
    """Scenario 3 / P1: non-owner is rejected and nothing changes."""
    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
    with host.caller.acting_as(stranger):
        with pytest.raises(NotAuthorized):
            registry.verify_wallet(wallet(2), 10, RiskLevel.LOW, False)
    assert registry.get_total_verifications() == 1
    assert registry.is_verified(wallet(2)) is False
    assert len(host.events.events) == 1


def test_not_authorized_checked_before_score(registry, host, stranger):
    """A non-owner with an invalid score gets NotAuthorized, not InvalidRiskScore."""
    with host.caller.acting_as(stranger):
        with pytest.raises(NotAuthorized):
            registry.verify_wallet(wallet(1), 999, RiskLevel.HIGH, True)


def test_invalid_risk_score_leaves_record_unchanged(registry, host, owner):
    """Scenario 4 / P2: score above 100 is rejected; earlier record kept."""
    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
        before = registry.get_verification(wallet(1))
        with pytest.raises(InvalidRiskScore):
            registry.verify_wallet(wallet(1), 999, RiskLevel.HIGH, True)
        with pytest.raises(InvalidRiskScore):
            registry.verify_wallet(wallet(1), 101, RiskLevel.HIGH, True)
    assert registry.get_verification(wallet(1)) == before
    assert registry.get_total_verifications() == 1
    assert len(host.events.events) == 1


@pytest.mark.parametrize("score", [0, 100])
def test_boundary_scores_accepted(registry, host, owner, score):
    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(9), score, RiskLevel.MEDIUM, False)
    assert registry.get_verification(wallet(9)).risk_score == score


@pytest.mark.parametrize("score", [-1, 101, True])
def test_scores_just_outside_range_rejected(registry, host, owner, score):
    with host.caller.acting_as(owner):
        with pytest.raises(InvalidRiskScore):
            registry.verify_wallet(wallet(9), score, RiskLevel.MEDIUM, False)
    assert registry.is_verified(wallet(9)) is False
    assert registry.get_total_verifications() == 0
    assert host.events.events == []


def test_reverify_overwrites_and_counts(registry, host, owner, clock):
    """P3: re-verifying the same address replaces the record and still increments."""
    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
        clock.advance(6_000)
        registry.verify_wallet(wallet(1), 90, RiskLevel.HIGH, True)
    record = registry.get_verification(wallet(1))
    assert record.risk_score == 90
    assert record.risk_level is RiskLevel.HIGH
    assert record.is_sanctioned is True
    assert record.verified_at == START_MS + 6_000
    assert registry.get_total_verifications() == 2
    assert len(host.events.events) == 2


def test_level_and_address_forms(registry, host, owner):
    """Risk level by name or code; address by hex text or bytes."""
    with host.caller.acting_as(owner):
        registry.verify_wallet("0x" + "0a" * 20, 40, "medium", False)
        registry.verify_wallet(wallet(11), 70, 2, True)
    assert registry.get_verification(wallet(10)).risk_level is RiskLevel.MEDIUM
    assert registry.get_verification("0x" + "0b" * 20).risk_level is RiskLevel.HIGH


def test_malformed_input_rejected_without_mutation(registry, host, owner):
    with host.caller.acting_as(owner):
        with pytest.raises(ValueError):
            registry.verify_wallet("0x1234", 10, RiskLevel.LOW, False)
        with pytest.raises(ValueError):
            registry.verify_wallet(wallet(1), 10, "extreme", False)
    assert registry.get_total_verifications() == 0
    assert host.events.events == []


def test_reads_are_pure(registry, host, owner):
    """P5: repeated reads never change counter, owner, or records."""
    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
    snapshot = registry.get_verification(wallet(1))
    store_size = len(host.store)
    for _ in range(3):
        registry.get_verification(wallet(1))
        registry.get_verification(wallet(2))
        registry.is_verified(wallet(1))
        registry.get_total_verifications()
        registry.get_owner()
        registry.get_contract_info()
    assert registry.get_total_verifications() == 1
    assert registry.get_owner() == owner
    assert registry.get_verification(wallet(1)) == snapshot
    assert len(host.store) == store_size
    assert len(host.events.events) == 1


def test_reads_need_no_caller(registry):
    """Reads work with no caller bound at all."""
    assert registry.get_total_verifications() == 0
    assert registry.is_verified(wallet(1)) is False


def test_owner_is_immutable(registry, host, owner, stranger):
    """P6: owner cannot be reassigned and survives every operation."""
    with pytest.raises(AttributeError):
        registry.owner = stranger
    with host.caller.acting_as(stranger):
        with pytest.raises(NotAuthorized):
            registry.verify_wallets_batch([(wallet(1), 10, RiskLevel.LOW, False)])
    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(1), 10, RiskLevel.LOW, False)
    assert registry.get_owner() == owner


def test_construct_twice_rejected(registry, host, stranger, owner):
    """A store is constructed into once; a second construct does not change the owner."""
    with host.caller.acting_as(stranger):
        with pytest.raises(RegistryAlreadyInitialized):
            VerificationRegistry.construct(host)
    assert VerificationRegistry.attach(host).get_owner() == owner


def test_attach_requires_state(host):
    with pytest.raises(RegistryNotInitialized):
        VerificationRegistry.attach(host)


def test_construct_without_caller_fails(host):
    with pytest.raises(NoCallerError):
        VerificationRegistry.construct(host)


def test_open_registry_constructs_then_attaches(owner, stranger):
    host = in_memory_host()
    first = open_registry(host, owner)
    assert first.get_owner() == owner
    # Second open ignores a different deployer: owner is already fixed.
    second = open_registry(host, stranger)
    assert second.get_owner() == owner
    with pytest.raises(RegistryNotInitialized):
        open_registry(in_memory_host(), None)


def test_contract_info(registry, host, owner):
    from verification_registry import __version__

    with host.caller.acting_as(owner):
        registry.verify_wallet(wallet(1), 5, RiskLevel.LOW, False)
    info = registry.get_contract_info()
    assert info.owner == owner
    assert info.version == __version__
    assert info.total_verifications == 1
    assert info.to_dict()["owner"] == str(owner)


def test_failed_emit_rolls_back_write(owner):
    """A host failure during a call leaves no partial state behind."""
    from verification_registry.registry.host import EventSink

    class FailingSink(EventSink):
        def emit(self, event):
            raise RuntimeError("sink down")

    host = in_memory_host()
    host.events = FailingSink()
    with host.caller.acting_as(owner):
        registry = VerificationRegistry.construct(host)
        with pytest.raises(RuntimeError, match="sink down"):
            registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
    assert registry.is_verified(wallet(1)) is False
    assert registry.get_total_verifications() == 0


def test_distinct_registries_have_own_owner():
    a, b = Pubkey.new_unique(), Pubkey.new_unique()
    host_a, host_b = in_memory_host(), in_memory_host()
    assert open_registry(host_a, a).get_owner() == a
    assert open_registry(host_b, b).get_owner() == b


def test_counter_and_owner_read_with_row_lock(owner):
    """Writers lock the owner key on construct and the counter before updating it."""
    from verification_registry.registry.codec import OWNER_KEY, TOTAL_KEY
    from verification_registry.registry.host import InMemoryStore

    class LockRecordingStore(InMemoryStore):
        def __init__(self) -> None:
            super().__init__()
            self.locked: list[bytes] = []

        def get(self, key, *, for_update=False):
            if for_update:
                self.locked.append(key)
            return super().get(key, for_update=for_update)

    host = in_memory_host()
    host.store = LockRecordingStore()
    with host.caller.acting_as(owner):
        registry = VerificationRegistry.construct(host)
        assert host.store.locked == [OWNER_KEY]
        registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
        registry.verify_wallets_batch([(wallet(2), 30, RiskLevel.LOW, False)])
    assert host.store.locked == [OWNER_KEY, TOTAL_KEY, TOTAL_KEY]
    assert registry.get_total_verifications() == 2


def test_memory_sink_keeps_events_of_rolled_back_call(owner):
    """The in-memory sink is outside the store transaction."""
    from verification_registry.registry.codec import TOTAL_KEY
    from verification_registry.registry.host import InMemoryStore

    class CounterWriteFails(InMemoryStore):
        armed = False

        def set(self, key, value):
            if self.armed and key == TOTAL_KEY:
                raise RuntimeError("disk full")
            super().set(key, value)

    host = in_memory_host()
    host.store = CounterWriteFails()
    with host.caller.acting_as(owner):
        registry = VerificationRegistry.construct(host)
        host.store.armed = True
        with pytest.raises(RuntimeError, match="disk full"):
            registry.verify_wallet(wallet(1), 25, RiskLevel.LOW, False)
    assert registry.is_verified(wallet(1)) is False
    assert registry.get_total_verifications() == 0
    assert [e.wallet_address for e in host.events.events] == [WalletAddress(wallet(1))]

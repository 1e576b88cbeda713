"""
Pytest fixtures for registry tests: in-memory host, constructed registry,
temporary SQLite host and a FastAPI TestClient.
"""

from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from verification_registry.config import Settings
from verification_registry.registry.contract import VerificationRegistry
from verification_registry.registry.host import ContextCaller, ManualClock, in_memory_host

START_MS = 1_700_000_000_000


def wallet(fill: int) -> bytes:
    """20-byte address with every byte set to fill, e.g. wallet(1) == [1; 20]."""
    return bytes([fill]) * 20


@pytest.fixture
def owner() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def stranger() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START_MS)


@pytest.fixture
def host(clock):
    return in_memory_host(caller=ContextCaller(), clock=clock)


@pytest.fixture
def registry(host, owner) -> VerificationRegistry:
    """Registry constructed by owner on an empty in-memory store."""
    with host.caller.acting_as(owner):
        return VerificationRegistry.construct(host)


@pytest.fixture
def sql_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'registry.db'}"


@pytest.fixture
def sql_host(sql_url, clock):
    from verification_registry.database import open_sql_host

    return open_sql_host(sql_url, clock=clock)


@pytest.fixture
def api_settings() -> Settings:
    return Settings(
        db_url="sqlite://",
        owner=None,
        caller_header="X-Caller-Id",
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
    )


@pytest.fixture
def client(registry, api_settings):
    """FastAPI TestClient serving the in-memory registry."""
    from fastapi.testclient import TestClient

    from verification_registry.api_server.server import create_app

    return TestClient(create_app(registry, settings=api_settings))

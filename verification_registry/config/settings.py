"""
Application settings.

Single typed view over the environment (see config.env) shared by the API
server, the batch script and the database layer.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass

from solders.pubkey import Pubkey

from verification_registry.config.env import (
    get_api_bind,
    get_caller_header,
    get_db_url,
    get_registry_owner,
    load_registry_env,
)


@dataclass(frozen=True)
class Settings:
    """Resolved configuration. Build with get_settings()."""

    db_url: str
    owner: Pubkey | None
    """Identity used to construct the registry when the store is empty."""
    caller_header: str
    api_host: str
    api_port: int
    log_level: str


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings (cached).

    Call get_settings.cache_clear() after changing the environment in tests.
    """
    load_registry_env()
    host, port = get_api_bind()
    return Settings(
        db_url=get_db_url(),
        owner=get_registry_owner(),
        caller_header=get_caller_header(),
        api_host=host,
        api_port=port,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )

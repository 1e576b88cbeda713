"""
Environment variable loading and validation for the verification registry.

- REGISTRY_DB_URL / DATABASE_URL: SQLAlchemy URL of the persisted store
- REGISTRY_OWNER: base58 identity that constructs the registry on an empty store
- REGISTRY_CALLER_HEADER: HTTP header carrying the caller identity
- API_HOST / API_PORT: server bind address
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from solders.pubkey import Pubkey

# Project root: config is verification_registry/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_DB_URL = "sqlite:///registry.db"
DEFAULT_CALLER_HEADER = "X-Caller-Id"
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 8000


def load_registry_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides the process env."""
    load_dotenv(_ENV_PATH, override=False)


def get_db_url() -> str:
    """
    Resolve the database URL.
    Order: REGISTRY_DB_URL > DATABASE_URL > sqlite:///registry.db.
    """
    load_registry_env()
    url = (os.getenv("REGISTRY_DB_URL") or os.getenv("DATABASE_URL") or "").strip()
    return url or DEFAULT_DB_URL


def get_registry_owner() -> Pubkey | None:
    """
    Return REGISTRY_OWNER as a Pubkey, or None when unset.
    Raises ValueError when set but not a valid base58 public key.
    """
    load_registry_env()
    raw = (os.getenv("REGISTRY_OWNER") or "").strip()
    if not raw:
        return None
    try:
        return Pubkey.from_string(raw)
    except Exception as e:
        raise ValueError(f"REGISTRY_OWNER is not a valid identity: {e}") from e


def get_caller_header() -> str:
    load_registry_env()
    return (os.getenv("REGISTRY_CALLER_HEADER") or "").strip() or DEFAULT_CALLER_HEADER


def get_api_bind() -> tuple[str, int]:
    """Return (host, port) from API_HOST / API_PORT."""
    load_registry_env()
    host = (os.getenv("API_HOST") or "").strip() or DEFAULT_API_HOST
    raw_port = (os.getenv("API_PORT") or "").strip()
    try:
        port = int(raw_port) if raw_port else DEFAULT_API_PORT
    except ValueError as e:
        raise ValueError(f"API_PORT must be an integer, got {raw_port!r}") from e
    return host, port


def mask_db_url(url: str) -> str:
    """Strip credentials and query string from a database URL for logging."""
    base = url.split("?")[0]
    if "@" in base:
        scheme, _, rest = base.partition("://")
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return base

"""
SQLAlchemy-backed registry storage and event log.

Uses REGISTRY_DB_URL / DATABASE_URL (PostgreSQL or anything SQLAlchemy speaks);
otherwise falls back to SQLite (registry.db). Two tables:

- registry_storage: byte key -> byte value; the registry's key-value store.
- verification_events: append-only WalletVerified log, one row per emitted event,
  written in the same session as the storage writes of the call that emitted it.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import Column, Integer, LargeBinary, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from verification_registry.config.env import mask_db_url
from verification_registry.registry.codec import encode_event
from verification_registry.registry.host import Clock, EventSink, KeyValueStore
from verification_registry.registry.models import WalletVerified
from verification_registry.registry_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class RegistryStorage(Base):
    """One storage cell of the registry: owner, counter, or one wallet's encoded record."""

    __tablename__ = "registry_storage"

    key = Column(LargeBinary(64), primary_key=True)
    value = Column(LargeBinary, nullable=False)


class VerificationEvent(Base):
    """
    Emitted WalletVerified notification (append-only). payload is the 54-byte
    encoded event; the other columns are the same fields, queryable.
    """

    __tablename__ = "verification_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(42), nullable=False, index=True)
    risk_score = Column(Integer, nullable=False)
    risk_level = Column(String(16), nullable=False)
    verified_by = Column(String(64), nullable=False, index=True)
    emitted_at = Column(Integer, nullable=False, index=True)  # ms since epoch
    payload = Column(LargeBinary, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "wallet_address": self.wallet_address,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level,
            "verified_by": self.verified_by,
            "emitted_at": self.emitted_at,
        }


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------


def create_registry_engine(url: str) -> Engine:
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    logger.info("registry_engine_created", url=mask_db_url(url))
    return engine


def init_db(engine: Engine) -> None:
    """Create registry tables if they do not exist. Safe to call on every startup."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("registry_init_db", url=mask_db_url(str(engine.url)))
    except Exception as e:
        logger.exception("registry_init_db_failed", error=str(e))
        raise


# -----------------------------------------------------------------------------
# Key-value store
# -----------------------------------------------------------------------------


class SqlKeyValueStore(KeyValueStore):
    """
    KeyValueStore over registry_storage.

    transaction() opens one session for the calling thread: commit on success,
    rollback on error. Calls outside a transaction use a short-lived session each.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._local = threading.local()

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Current transaction's session, or a short-lived one."""
        current = getattr(self._local, "session", None)
        if current is not None:
            yield current
            return
        with self._session_scope() as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator["SqlKeyValueStore"]:
        if getattr(self._local, "session", None) is not None:
            yield self
            return
        with self._session_scope() as session:
            self._local.session = session
            try:
                yield self
            finally:
                self._local.session = None

    def get(self, key: bytes, *, for_update: bool = False) -> bytes | None:
        """
        Read one value. With for_update the row is read with SELECT ... FOR UPDATE
        and stays locked until the enclosing transaction ends (ignored by SQLite,
        which locks the whole database on write).
        """
        with self.session() as session:
            if for_update:
                row = session.get(
                    RegistryStorage,
                    bytes(key),
                    with_for_update=True,
                    populate_existing=True,
                )
            else:
                row = session.get(RegistryStorage, bytes(key))
            return bytes(row.value) if row is not None else None

    def set(self, key: bytes, value: bytes) -> None:
        with self.session() as session:
            session.merge(RegistryStorage(key=bytes(key), value=bytes(value)))
            session.flush()

    def contains(self, key: bytes) -> bool:
        return self.get(key) is not None


# -----------------------------------------------------------------------------
# Event log
# -----------------------------------------------------------------------------


class SqlEventLog(EventSink):
    """EventSink appending to verification_events through the store's current session."""

    def __init__(self, store: SqlKeyValueStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    def emit(self, event: WalletVerified) -> None:
        with self._store.session() as session:
            session.add(
                VerificationEvent(
                    wallet_address=str(event.wallet_address),
                    risk_score=event.risk_score,
                    risk_level=event.risk_level.value,
                    verified_by=str(event.verified_by),
                    emitted_at=self._clock.now(),
                    payload=encode_event(event),
                )
            )
            session.flush()

    def list_events(
        self,
        wallet: str | None = None,
        *,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Return events as dicts, newest first, optionally for one wallet (0x hex)."""
        try:
            with self._store.session() as session:
                q = session.query(VerificationEvent)
                if wallet:
                    q = q.filter(VerificationEvent.wallet_address == wallet.strip().lower())
                rows = q.order_by(VerificationEvent.id.desc()).limit(limit).all()
                return [r.to_dict() for r in rows]
        except Exception as e:
            logger.exception("list_events_failed", error=str(e))
            raise

    def list_payloads(self, *, limit: int = 100) -> list[bytes]:
        """Raw encoded events in emission order (oldest first)."""
        with self._store.session() as session:
            rows = (
                session.query(VerificationEvent.payload)
                .order_by(VerificationEvent.id)
                .limit(limit)
                .all()
            )
            return [bytes(r[0]) for r in rows]

"""
FastAPI server: the registry's call interface over HTTP.

Mutating endpoints act as the identity in the caller header (REGISTRY_CALLER_HEADER,
default X-Caller-Id, base58). Reads need no identity. Registry errors map to
403 (NotAuthorized), 400 (InvalidRiskScore), 409 (WalletAlreadyVerified).

On startup the app attaches to the registry in REGISTRY_DB_URL, constructing it
as REGISTRY_OWNER when the store is empty.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from solders.pubkey import Pubkey

from verification_registry import __version__
from verification_registry.config import Settings, get_settings
from verification_registry.core.exceptions import (
    InvalidRiskScore,
    NotAuthorized,
    VerificationError,
    WalletAlreadyVerified,
)
from verification_registry.registry.contract import VerificationRegistry, open_registry
from verification_registry.registry.host import ContextCaller
from verification_registry.registry.models import BatchEntry, WalletAddress
from verification_registry.registry_logging import get_logger

logger = get_logger(__name__)

ERROR_STATUS = {
    NotAuthorized.code: 403,
    InvalidRiskScore.code: 400,
    WalletAlreadyVerified.code: 409,
}
MAX_BATCH_ENTRIES = 1000


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class VerifyWalletRequest(BaseModel):
    """
    POST /verifications body. risk_score has no range here: the registry rejects
    (single) or skips (batch) scores outside 0-100, after the owner check.
    """

    wallet_address: str = Field(..., description="20-byte address, 0x hex")
    risk_score: int = Field(..., description="Risk score (valid: 0-100)")
    risk_level: Union[int, str] = Field(..., description="Low | Medium | High, or 0 | 1 | 2")
    is_sanctioned: bool = Field(..., description="Wallet is on a sanctions list")


class VerifyBatchRequest(BaseModel):
    """POST /verifications/batch body."""

    entries: list[VerifyWalletRequest] = Field(..., max_length=MAX_BATCH_ENTRIES)


class VerifyBatchResponse(BaseModel):
    submitted: int = Field(..., description="Entries received")
    verified_count: int = Field(..., description="Entries applied (invalid scores skipped)")


class VerificationResponse(BaseModel):
    """GET /verifications/{address} response."""

    wallet_address: str
    risk_score: int = Field(..., ge=0, le=100)
    risk_level: str
    verified_at: int = Field(..., description="Timestamp (ms since epoch) of the write")
    verified_by: str
    is_sanctioned: bool


class VerifiedStatusResponse(BaseModel):
    wallet_address: str
    verified: bool


class ContractInfoResponse(BaseModel):
    owner: str
    version: str
    total_verifications: int


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


def get_registry(request: Request) -> VerificationRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="registry not ready")
    return registry


def get_caller(request: Request) -> Pubkey:
    """Dependency: caller identity from the configured header."""
    header = request.app.state.caller_header
    raw = (request.headers.get(header) or "").strip()
    if not raw:
        raise HTTPException(status_code=401, detail=f"missing {header} header")
    try:
        return Pubkey.from_string(raw)
    except Exception:
        raise HTTPException(status_code=400, detail=f"invalid caller identity in {header}")


def _parse_address(address: str) -> WalletAddress:
    try:
        return WalletAddress.from_hex(address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def create_app(
    registry: VerificationRegistry | None = None,
    *,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the API. With ``registry`` the app serves it directly (tests, embedding);
    otherwise the lifespan opens the registry from settings on startup.
    The registry host must use a ContextCaller so each request can act as its caller.
    """
    settings = settings or get_settings()
    if registry is not None and not isinstance(registry.host.caller, ContextCaller):
        raise TypeError("API registry host must use a ContextCaller")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.registry is None:
            from verification_registry.database import open_sql_host

            host = open_sql_host(settings.db_url)
            app.state.registry = open_registry(host, settings.owner)
        logger.info(
            "api_registry_ready",
            owner=str(app.state.registry.get_owner()),
            caller_header=settings.caller_header,
        )
        yield

    app = FastAPI(
        title="Wallet Verification Registry API",
        description="Owner-gated registry of wallet risk verifications.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.caller_header = settings.caller_header

    @app.exception_handler(VerificationError)
    def verification_error_handler(request: Any, exc: VerificationError) -> JSONResponse:
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.code, 400),
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
        """Consistent JSON error response for HTTPException."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.post("/verifications", status_code=201)
    def verify_wallet(
        body: VerifyWalletRequest,
        caller: Pubkey = Depends(get_caller),
        registry: VerificationRegistry = Depends(get_registry),
    ) -> dict[str, Any]:
        """Record one verification as the header caller (owner only)."""
        with registry.host.caller.acting_as(caller):
            logger.info("verify_wallet_called", wallet_address=body.wallet_address[:12])
            try:
                registry.verify_wallet(
                    body.wallet_address,
                    body.risk_score,
                    body.risk_level,
                    body.is_sanctioned,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
        return {"wallet_address": str(WalletAddress.from_hex(body.wallet_address)), "verified": True}

    @app.post("/verifications/batch", response_model=VerifyBatchResponse)
    def verify_wallets_batch(
        body: VerifyBatchRequest,
        caller: Pubkey = Depends(get_caller),
        registry: VerificationRegistry = Depends(get_registry),
    ) -> VerifyBatchResponse:
        """Record many verifications; entries with score outside 0-100 are skipped."""
        entries = [
            BatchEntry(e.wallet_address, e.risk_score, e.risk_level, e.is_sanctioned)
            for e in body.entries
        ]
        with registry.host.caller.acting_as(caller):
            try:
                count = registry.verify_wallets_batch(entries)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
        return VerifyBatchResponse(submitted=len(entries), verified_count=count)

    @app.get("/verifications/{address}", response_model=VerificationResponse)
    def get_verification(
        address: str,
        registry: VerificationRegistry = Depends(get_registry),
    ) -> VerificationResponse:
        wallet = _parse_address(address)
        record = registry.get_verification(wallet)
        if record is None:
            raise HTTPException(status_code=404, detail=f"No verification for wallet {wallet.short()}")
        return VerificationResponse(wallet_address=str(wallet), **record.to_dict())

    @app.get("/verifications/{address}/status", response_model=VerifiedStatusResponse)
    def is_verified(
        address: str,
        registry: VerificationRegistry = Depends(get_registry),
    ) -> VerifiedStatusResponse:
        wallet = _parse_address(address)
        return VerifiedStatusResponse(wallet_address=str(wallet), verified=registry.is_verified(wallet))

    @app.get("/stats")
    def stats(registry: VerificationRegistry = Depends(get_registry)) -> dict[str, int]:
        return {"total_verifications": registry.get_total_verifications()}

    @app.get("/owner")
    def owner(registry: VerificationRegistry = Depends(get_registry)) -> dict[str, str]:
        return {"owner": str(registry.get_owner())}

    @app.get("/info", response_model=ContractInfoResponse)
    def info(registry: VerificationRegistry = Depends(get_registry)) -> ContractInfoResponse:
        return ContractInfoResponse(**registry.get_contract_info().to_dict())

    @app.get("/events")
    def events(
        wallet: str | None = Query(None, description="Filter by wallet address (0x hex)"),
        limit: int = Query(100, ge=1, le=1000),
        registry: VerificationRegistry = Depends(get_registry),
    ) -> list[dict[str, Any]]:
        """Emitted WalletVerified notifications, newest first."""
        if wallet:
            wallet = str(_parse_address(wallet))
        sink = registry.host.events
        if not hasattr(sink, "list_events"):
            raise HTTPException(status_code=501, detail="event sink is not queryable")
        return sink.list_events(wallet, limit=limit)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness check: API is up."""
        return {"status": "ok"}

    return app

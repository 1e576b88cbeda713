"""
Batch verify: read wallet verifications from CSV and submit them to the registry
as one verify_wallets_batch call.

CSV columns: wallet_address,risk_score,risk_level,is_sanctioned
Rows that cannot be parsed are reported and left out; rows with a score above
100 are submitted and skipped by the registry.

Cron-ready: python batch_verify.py wallets.csv [--caller PUBKEY] [--db-url URL]
"""

from __future__ import annotations

import argparse
import csv
import sys
from dataclasses import dataclass, field
from pathlib import Path

from solders.pubkey import Pubkey

from verification_registry.config import get_settings
from verification_registry.core.exceptions import NotAuthorized, RegistryStateError
from verification_registry.database import open_sql_host
from verification_registry.registry.contract import VerificationRegistry, open_registry
from verification_registry.registry.host import StaticCaller
from verification_registry.registry.models import BatchEntry, RiskLevel, WalletAddress
from verification_registry.registry_logging import caller_context, get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("wallet_address", "risk_score", "risk_level", "is_sanctioned")
_TRUE_VALUES = ("1", "true", "yes", "y")
_FALSE_VALUES = ("0", "false", "no", "n", "")


@dataclass
class CsvLoadResult:
    entries: list[BatchEntry] = field(default_factory=list)
    invalid: list[tuple[int, str]] = field(default_factory=list)
    """(line number, reason) for rows left out."""


def _parse_bool(raw: str) -> bool:
    value = (raw or "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid is_sanctioned value: {raw!r}")


def parse_row(row: dict[str, str]) -> BatchEntry:
    """Parse one CSV row into a BatchEntry. Raises ValueError on malformed fields."""
    address = WalletAddress.from_hex(row.get("wallet_address") or "")
    raw_score = (row.get("risk_score") or "").strip()
    try:
        score = int(raw_score)
    except ValueError as e:
        raise ValueError(f"invalid risk_score: {raw_score!r}") from e
    level = RiskLevel.parse(row.get("risk_level") or "")
    return BatchEntry(address, score, level, _parse_bool(row.get("is_sanctioned") or ""))


def load_entries(path: Path) -> CsvLoadResult:
    """Read the CSV. Raises ValueError if required columns are missing."""
    result = CsvLoadResult()
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"CSV missing columns: {', '.join(missing)}")
        for row in reader:
            try:
                result.entries.append(parse_row(row))
            except ValueError as e:
                result.invalid.append((reader.line_num, str(e)))
    return result


def run_batch(registry: VerificationRegistry, entries: list[BatchEntry]) -> int:
    """Submit entries as one batch call. Returns the number applied."""
    count = registry.verify_wallets_batch(entries)
    logger.info("batch_verify_submitted", submitted=len(entries), verified=count)
    return count


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Submit wallet verifications from a CSV file.")
    parser.add_argument("csv_path", type=Path, help="CSV with wallet_address,risk_score,risk_level,is_sanctioned")
    parser.add_argument("--caller", help="base58 identity to act as (default: REGISTRY_OWNER)")
    parser.add_argument("--db-url", help="SQLAlchemy URL (default: REGISTRY_DB_URL)")
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    caller = settings.owner
    if args.caller:
        try:
            caller = Pubkey.from_string(args.caller)
        except Exception as e:
            print(f"error: invalid --caller identity: {e}", file=sys.stderr)
            return 1
    if caller is None:
        print("error: no caller identity (pass --caller or set REGISTRY_OWNER)", file=sys.stderr)
        return 1

    try:
        loaded = load_entries(args.csv_path)
    except (OSError, ValueError) as e:
        logger.error("batch_verify_input_error", path=str(args.csv_path), error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    for line, reason in loaded.invalid:
        logger.warning("batch_verify_row_invalid", line=line, reason=reason)
        print(f"line {line}: {reason}", file=sys.stderr)

    host = open_sql_host(args.db_url or settings.db_url, caller=StaticCaller(caller))
    try:
        with caller_context(caller):
            registry = open_registry(host, settings.owner)
            count = run_batch(registry, loaded.entries)
    except NotAuthorized as e:
        logger.error("batch_verify_not_authorized", caller=str(caller))
        print(f"error: {e}", file=sys.stderr)
        return 1
    except RegistryStateError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        host.store.engine.dispose()

    print(f"verified={count} skipped={len(loaded.entries) - count} invalid={len(loaded.invalid)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

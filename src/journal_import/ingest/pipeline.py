"""Extract, process, resolve commissions and hash one uploaded file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from sqlalchemy.orm import Session

from journal_import.db.repository import SaveTradesResult, load_trades, record_import_run, save_trades
from journal_import.ingest.ai_mapping import suggest_and_merge
from journal_import.ingest.column_mapping import (
    ColumnMapping,
    file_signature,
    get_saved_mapping,
    infer_default_mapping,
)
from journal_import.ingest.commissions import (
    CommissionResolution,
    apply_commission_overrides,
    historical_commission_rates,
    resolve_commissions,
)
from journal_import.ingest.dedupe import assign_trade_ids, dedupe_trades
from journal_import.ingest.extractors import Source
from journal_import.ingest.models import ContractSpec, OpenPosition, ProcessResult, RawTable, Trade
from journal_import.ingest.registry import PlatformKind, PlatformStrategy, get_platform
from journal_import.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ImportResult:
    platform: PlatformKind
    trades: list[Trade] = field(default_factory=list)
    incomplete: list[OpenPosition] = field(default_factory=list)
    unknown_symbols: list[str] = field(default_factory=list)
    missing_commissions: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    file_signature: str | None = None

    @property
    def ready(self) -> bool:
        return not self.missing_commissions


def resolve_mapping(table: RawTable, mapping: ColumnMapping | None = None) -> ColumnMapping:
    """Caller mapping, else the saved one for these headers, else inferred plus AI suggestions."""
    if mapping is not None:
        return mapping
    saved = get_saved_mapping(PlatformKind.GENERIC.value, table.headers)
    if saved is not None:
        logger.info("Using saved column mapping for signature %s", file_signature(table.headers))
        return saved
    inferred = infer_default_mapping(table.headers)
    if inferred.missing_required():
        applied = suggest_and_merge(inferred, table)
        if applied:
            logger.info("Applied %d AI mapping suggestion(s)", len(applied))
    return inferred


def _process(
    strategy: PlatformStrategy,
    extracted: object,
    *,
    existing_trades: list[Trade],
    mapping: ColumnMapping | None,
    spec_overrides: Mapping[str, ContractSpec] | None,
    source_timezone: str | None,
) -> ProcessResult:
    kwargs: dict[str, object] = {
        "existing_trades": existing_trades,
        "source_timezone": source_timezone,
    }
    if strategy.accepts_mapping:
        kwargs["mapping"] = resolve_mapping(extracted, mapping)
    if strategy.accepts_spec_overrides:
        kwargs["spec_overrides"] = spec_overrides
    return strategy.process(extracted, **kwargs)


def run_import(
    platform: PlatformKind | str,
    source: Source,
    *,
    existing_trades: Iterable[Trade] = (),
    mapping: ColumnMapping | None = None,
    commission_overrides: Mapping[str, float] | None = None,
    spec_overrides: Mapping[str, ContractSpec] | None = None,
    source_timezone: str | None = None,
) -> ImportResult:
    """Run one file through its platform strategy.

    Structural problems (unreadable file, missing sheet or columns, missing
    required mapping) raise. Row-level problems are returned in ``issues``.
    Missing commissions are filled from stored trades of the accounts in
    this file. Trades whose instrument has no known rate keep
    ``commission=None`` and the instrument is listed in
    ``missing_commissions`` until ``finalize_import`` receives a rate.
    """
    strategy = get_platform(platform)
    existing = list(existing_trades)
    extracted = strategy.extract(source)

    processed = _process(
        strategy,
        extracted,
        existing_trades=existing,
        mapping=mapping,
        spec_overrides=spec_overrides,
        source_timezone=source_timezone,
    )
    accounts = {trade.account_number for trade in processed.trades}
    rates = historical_commission_rates(existing, account_numbers=accounts)
    resolution = resolve_commissions(processed.trades, rates, commission_overrides)
    trades = dedupe_trades(assign_trade_ids(resolution.trades))

    result = ImportResult(
        platform=strategy.kind,
        trades=trades,
        incomplete=list(processed.incomplete),
        unknown_symbols=sorted(processed.unknown_symbols),
        missing_commissions=list(resolution.missing),
        issues=list(processed.issues),
        file_signature=file_signature(extracted.headers) if isinstance(extracted, RawTable) else None,
    )
    logger.info(
        "%s import: %d trade(s), %d incomplete, %d issue(s)",
        strategy.label,
        len(result.trades),
        len(result.incomplete),
        len(result.issues),
    )
    return result


def finalize_import(result: ImportResult, overrides: Mapping[str, float] | None = None) -> ImportResult:
    """Fill missing commissions from ``{instrument: rate}``; raises while any stay missing."""
    if result.missing_commissions:
        resolution = apply_commission_overrides(
            CommissionResolution(trades=result.trades, missing=result.missing_commissions),
            overrides or {},
        )
        result.trades = resolution.trades
        result.missing_commissions = list(resolution.missing)
    if result.missing_commissions:
        raise ValueError(
            "Commission rate required for: " + ", ".join(result.missing_commissions)
        )
    return result


def import_and_save(
    session: Session,
    platform: PlatformKind | str,
    source: Source,
    *,
    mapping: ColumnMapping | None = None,
    commission_overrides: Mapping[str, float] | None = None,
    spec_overrides: Mapping[str, ContractSpec] | None = None,
    source_timezone: str | None = None,
    source_name: str | None = None,
) -> tuple[ImportResult, SaveTradesResult]:
    """Import against the trades already stored, then persist the new ones."""
    result = run_import(
        platform,
        source,
        existing_trades=load_trades(session),
        mapping=mapping,
        commission_overrides=commission_overrides,
        spec_overrides=spec_overrides,
        source_timezone=source_timezone,
    )
    finalize_import(result)

    if source_name is None:
        source_name = Path(source).name if isinstance(source, (str, Path)) and "\n" not in str(source) else "upload"
    run = record_import_run(
        session,
        platform=result.platform.value,
        source_file=source_name,
        file_signature=result.file_signature,
        trades_found=len(result.trades),
        incomplete_count=len(result.incomplete),
        issues=result.issues,
    )
    saved = save_trades(session, result.trades, platform=result.platform.value, import_run_id=run.id)
    run.trades_added = saved.number_of_trades_added
    session.flush()
    return result, saved

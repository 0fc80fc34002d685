from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from dotenv import load_dotenv

from journal_import.config.paths import data_dir, default_db_path, mapping_store_path
from journal_import.config.settings import get_settings
from journal_import.ingest.models import ContractSpec


def _commission_pair(text: str) -> tuple[str, float]:
    instrument, sep, rate = text.partition("=")
    if not sep or not instrument.strip():
        raise argparse.ArgumentTypeError(f"Expected INSTRUMENT=RATE, got '{text}'")
    try:
        value = float(rate)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Commission rate must be a number, got '{rate}'") from exc
    if value < 0:
        raise argparse.ArgumentTypeError("Commission rate must be >= 0")
    return instrument.strip(), value


def _spec_pair(text: str) -> tuple[str, ContractSpec]:
    symbol, sep, spec = text.partition("=")
    tick_size, colon, tick_value = spec.partition(":")
    if not sep or not colon or not symbol.strip():
        raise argparse.ArgumentTypeError(f"Expected SYMBOL=TICK_SIZE:TICK_VALUE, got '{text}'")
    try:
        return symbol.strip().upper(), ContractSpec(tick_size=float(tick_size), tick_value=float(tick_value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _cmd_init_db(args: argparse.Namespace) -> int:
    from journal_import.db.migrate import migrate

    migrate(args.database_url)
    print("Initialized database schema.")
    return 0


def _cmd_paths(_: argparse.Namespace) -> int:
    settings = get_settings()
    print(f"DATA_DIR={data_dir()}")
    print(f"DB_PATH={default_db_path()}")
    print(f"MAPPING_STORE={mapping_store_path()}")
    print(f"DATABASE_URL={settings.database_url}")
    return 0


def _cmd_platforms(_: argparse.Namespace) -> int:
    from journal_import.ingest.registry import list_platforms

    for strategy in list_platforms():
        print(f"{strategy.kind.value:<22} {strategy.family:<9} {strategy.label}")
    return 0


def _cmd_mapping(args: argparse.Namespace) -> int:
    from journal_import.ingest.column_mapping import mapped_headers, save_mapping
    from journal_import.ingest.extractors import extract_delimited_text
    from journal_import.ingest.pipeline import resolve_mapping
    from journal_import.ingest.registry import PlatformKind

    table = extract_delimited_text(args.file)
    mapping = resolve_mapping(table)
    for destination, header in sorted(mapped_headers(mapping, table.headers).items()):
        print(f"{destination:<16} <- {header}")
    missing = mapping.missing_required()
    if missing:
        print("Missing required: " + ", ".join(destination.value for destination in missing))
        return 2
    if args.save:
        signature = save_mapping(PlatformKind.GENERIC.value, table.headers, mapping)
        print(f"Saved mapping for signature {signature}.")
    return 0


def _print_result(result) -> None:
    print(f"Trades: {len(result.trades)}")
    for position in result.incomplete:
        print(f"Incomplete: {position.side.value} {position.quantity:g} {position.instrument}")
    if result.unknown_symbols:
        print("Unknown symbols (default contract spec used): " + ", ".join(result.unknown_symbols))
    for issue in result.issues:
        print(issue)


def _cmd_import(args: argparse.Namespace) -> int:
    from journal_import.db.migrate import migrate
    from journal_import.db.repository import session_scope
    from journal_import.ingest.pipeline import import_and_save, run_import

    commissions = dict(args.commission or [])
    specs = dict(args.spec or [])

    if not args.save:
        result = run_import(
            args.platform,
            args.file,
            commission_overrides=commissions,
            spec_overrides=specs,
            source_timezone=args.timezone,
        )
        _print_result(result)
        if result.missing_commissions:
            print("Commission rate required for: " + ", ".join(result.missing_commissions))
            return 2
        return 0

    engine = migrate(args.database_url)
    try:
        with session_scope(engine) as session:
            result, saved = import_and_save(
                session,
                args.platform,
                args.file,
                commission_overrides=commissions,
                spec_overrides=specs,
                source_timezone=args.timezone,
                source_name=Path(args.file).name,
            )
    except ValueError as exc:
        print(f"Import failed: {exc}")
        return 2
    _print_result(result)
    if saved.error:
        print(f"Saved 0 trades ({saved.error}).")
    else:
        print(f"Saved {saved.number_of_trades_added} trades.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trade journal import developer CLI")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_init_db = subparsers.add_parser("init-db", help="Create/update local database schema")
    sp_init_db.set_defaults(func=_cmd_init_db)

    sp_paths = subparsers.add_parser("paths", help="Print configured project paths")
    sp_paths.set_defaults(func=_cmd_paths)

    sp_platforms = subparsers.add_parser("platforms", help="List supported import platforms")
    sp_platforms.set_defaults(func=_cmd_platforms)

    sp_mapping = subparsers.add_parser("mapping", help="Show the column mapping for a generic CSV")
    sp_mapping.add_argument("file", help="CSV file to inspect.")
    sp_mapping.add_argument("--save", action="store_true", help="Remember the mapping for these headers.")
    sp_mapping.set_defaults(func=_cmd_mapping)

    sp_import = subparsers.add_parser("import", help="Import a platform export")
    sp_import.add_argument("platform", help="Platform key (see 'platforms').")
    sp_import.add_argument("file", help="Export file to import.")
    sp_import.add_argument(
        "--commission",
        action="append",
        type=_commission_pair,
        metavar="INSTRUMENT=RATE",
        help="Commission per contract for an instrument; repeatable.",
    )
    sp_import.add_argument(
        "--spec",
        action="append",
        type=_spec_pair,
        metavar="SYMBOL=TICK_SIZE:TICK_VALUE",
        help="Contract spec override for fill-level exports; repeatable.",
    )
    sp_import.add_argument("--timezone", default=None, help="Timezone of naive timestamps.")
    sp_import.add_argument("--save", action="store_true", help="Persist new trades to the database.")
    sp_import.set_defaults(func=_cmd_import)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(dotenv_path=REPO_ROOT / ".env")
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())

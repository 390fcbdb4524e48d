import argparse
from dataclasses import replace
import logging
from pathlib import Path

from csvledger.config import Settings, get_settings
from csvledger.database import build_session_factory
from csvledger.exceptions import CsvImportError
from csvledger.importer import CsvImporter, read_csv_text
from csvledger.reconciler import ImportSession
from csvledger.schemas import UNSET_COLUMN, ImportDefaults, TransactionKind


def _add_mapping_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="CSV file to read")
    parser.add_argument("--date-col", type=int, help="zero-based index of the date column")
    parser.add_argument("--description-col", type=int, help="zero-based index of the description column")
    parser.add_argument("--amount-col", type=int, help="zero-based index of the amount column")
    parser.add_argument("--delimiter", help="single-character cell separator; defaults to CSV_DELIMITER")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import bank CSV exports into the ledger")
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview_parser = subparsers.add_parser("preview", help="validate a file without importing it")
    _add_mapping_arguments(preview_parser)

    import_parser = subparsers.add_parser("import", help="import the valid rows of a file")
    _add_mapping_arguments(import_parser)
    import_parser.add_argument(
        "--kind",
        choices=[kind.value for kind in TransactionKind],
        help="transaction kind used for zero amounts",
    )
    import_parser.add_argument("--category", help="category id assigned to every imported row")
    import_parser.add_argument("--source", help="source id assigned to every imported row")
    import_parser.add_argument("--import-key", help="idempotency key; defaults to a hash of the file content")

    return parser.parse_args(argv)


def mapping_overrides(args: argparse.Namespace) -> dict[str, int | None]:
    overrides: dict[str, int | None] = {}
    for name, value in (("date", args.date_col), ("description", args.description_col), ("amount", args.amount_col)):
        if value is not None:
            overrides[name] = value
    return overrides


def run_preview(args: argparse.Namespace, settings: Settings) -> int:
    delimiter = args.delimiter or settings.csv_delimiter
    try:
        session = ImportSession.from_text(read_csv_text(Path(args.file)), delimiter=delimiter)
    except (CsvImportError, OSError, ValueError) as exc:
        print(f"error: {exc}")
        return 1

    overrides = mapping_overrides(args)
    if overrides:
        session.remap(**overrides)

    print("columns: " + " | ".join(f"{index}:{name}" for index, name in enumerate(session.headers)))
    print(
        "mapping: date={date} description={description} amount={amount}".format(
            date=_column_label(session.headers, session.mapping.date),
            description=_column_label(session.headers, session.mapping.description),
            amount=_column_label(session.headers, session.mapping.amount),
        )
    )
    for index, (row, outcome) in enumerate(zip(session.rows, session.outcomes)):
        status = "ok" if outcome.is_valid else "!!"
        line = f"{index + 1:>5} {status} " + " | ".join(row)
        if not outcome.is_valid:
            line += "  <- " + "; ".join(outcome.errors)
        print(line)
    print(session.summary().message)
    return 0


def run_import(args: argparse.Namespace, settings: Settings) -> int:
    if args.delimiter:
        settings = replace(settings, csv_delimiter=args.delimiter)
    importer = CsvImporter(settings, build_session_factory(settings.database_url))
    base = importer.import_defaults()
    defaults = ImportDefaults(
        kind=TransactionKind(args.kind) if args.kind else base.kind,
        category_id=args.category or base.category_id,
        source_id=args.source or base.source_id,
    )

    result = importer.run(
        Path(args.file),
        import_key=args.import_key,
        overrides=mapping_overrides(args),
        defaults=defaults,
    )

    print(
        "import_id={run_id} key={key} file={file} status={status} total={total} imported={imported} skipped={skipped} reused={reused}".format(
            run_id=result.import_run_id,
            key=result.import_key,
            file=result.source_name,
            status=result.status,
            total=result.total_rows,
            imported=result.imported_rows,
            skipped=result.skipped_rows,
            reused=result.reused_existing_run,
        )
    )
    print(result.message)
    return 1 if result.status == "failed" else 0


def _column_label(headers: list[str], index: int) -> str:
    if index == UNSET_COLUMN:
        return "-"
    if 0 <= index < len(headers):
        return f"{index}:{headers[index]}"
    return str(index)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.command == "preview":
        exit_code = run_preview(args, settings)
    else:
        exit_code = run_import(args, settings)

    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()

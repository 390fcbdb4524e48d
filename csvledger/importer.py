import hashlib
import json
import logging
from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from csvledger.config import Settings
from csvledger.db_models import ImportRun
from csvledger.import_store import (
    create_or_get_import_run,
    mark_import_failed,
    mark_import_running,
    mark_import_succeeded,
    reset_failed_import_run,
    store_skipped_rows,
    store_transactions,
)
from csvledger.reconciler import ImportSession
from csvledger.schemas import ImportDefaults, ImportResult, TransactionKind


logger = logging.getLogger(__name__)


def read_csv_text(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"input file not found: {path}")
    # utf-8-sig drops the byte order mark spreadsheet exports like to add.
    return path.read_text(encoding="utf-8-sig")


def content_key(
    text: str,
    *,
    delimiter: str,
    overrides: dict[str, int | None],
    defaults: ImportDefaults,
) -> str:
    # The same bytes imported with another mapping or other defaults is a different import.
    options = {
        "delimiter": delimiter,
        "overrides": overrides,
        "kind": str(defaults.kind),
        "category_id": defaults.category_id,
        "source_id": defaults.source_id,
    }
    digest = hashlib.sha256(text.encode("utf-8"))
    digest.update(b"\0")
    digest.update(json.dumps(options, sort_keys=True).encode("utf-8"))
    return digest.hexdigest()


class CsvImporter:
    def __init__(self, settings: Settings, session_factory: sessionmaker[Session]) -> None:
        self.settings = settings
        self.session_factory = session_factory

    def import_defaults(self) -> ImportDefaults:
        return ImportDefaults(
            kind=TransactionKind(self.settings.default_transaction_kind),
            category_id=self.settings.default_category_id,
            source_id=self.settings.default_source_id,
        )

    def run(
        self,
        path: Path,
        *,
        import_key: str | None = None,
        overrides: dict[str, int | None] | None = None,
        defaults: ImportDefaults | None = None,
    ) -> ImportResult:
        source_name = path.name
        overrides = overrides or {}
        try:
            text = read_csv_text(path)
            defaults = defaults or self.import_defaults()
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            # Without content and defaults there is no key to hang a run record on.
            logger.exception("could not prepare import", extra={"path": str(path)})
            return self._failed_result(import_key or "", source_name, str(exc))

        import_key = import_key or content_key(
            text,
            delimiter=self.settings.csv_delimiter,
            overrides=overrides,
            defaults=defaults,
        )

        with self.session_factory() as db:
            run, created = create_or_get_import_run(db, import_key=import_key, source_name=source_name)
            if not created:
                if run.status == "failed":
                    logger.info("retrying previously failed import", extra={"import_key": import_key})
                    reset_failed_import_run(db, run, source_name=source_name)
                else:
                    logger.info("identical import reused", extra={"import_key": import_key, "status": run.status})
                    return self._result_from_run(run, reused_existing_run=True)

            mark_import_running(db, run)

            total_rows = 0
            try:
                session = ImportSession.from_text(text, delimiter=self.settings.csv_delimiter)
                total_rows = len(session.rows)
                if overrides:
                    session.remap(**overrides)

                batch = session.commit(defaults)
                store_transactions(db, import_run_id=run.id, records=batch.records)
                store_skipped_rows(db, import_run_id=run.id, rows=session.rows, batch=batch)

                mark_import_succeeded(
                    db,
                    run,
                    total_rows=total_rows,
                    imported_rows=len(batch.records),
                    skipped_rows=batch.skipped,
                )
            except Exception as exc:
                mark_import_failed(db, run, error=str(exc), total_rows=total_rows)
                logger.exception("csv import failed", extra={"import_key": import_key})
                return self._result_from_run(run, reused_existing_run=False)

            logger.info(
                "csv import completed",
                extra={"import_key": import_key, "imported": run.imported_rows, "skipped": run.skipped_rows},
            )
            return self._result_from_run(run, reused_existing_run=False)

    def _failed_result(self, import_key: str, source_name: str, error: str) -> ImportResult:
        return ImportResult(
            import_run_id=0,
            import_key=import_key,
            source_name=source_name,
            status="failed",
            total_rows=0,
            imported_rows=0,
            skipped_rows=0,
            error=error,
            reused_existing_run=False,
        )

    def _result_from_run(self, run: ImportRun, reused_existing_run: bool) -> ImportResult:
        return ImportResult(
            import_run_id=run.id,
            import_key=run.import_key,
            source_name=run.source_name,
            status=run.status,
            total_rows=run.total_rows,
            imported_rows=run.imported_rows,
            skipped_rows=run.skipped_rows,
            error=run.error,
            reused_existing_run=reused_existing_run,
        )

import json

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from csvledger.db_models import ImportRun, SkippedRow, Transaction, utc_now
from csvledger.schemas import ImportBatch, ImportRecord, RawRow


def get_import_run_by_key(db: Session, import_key: str) -> ImportRun | None:
    stmt = select(ImportRun).where(ImportRun.import_key == import_key)
    return db.execute(stmt).scalar_one_or_none()


def create_or_get_import_run(db: Session, *, import_key: str, source_name: str) -> tuple[ImportRun, bool]:
    run = ImportRun(import_key=import_key, source_name=source_name, status="queued")
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        # Unique import_key keeps one run per file content.
        db.rollback()
        existing = get_import_run_by_key(db, import_key)
        if existing:
            return existing, False
        raise

    db.refresh(run)
    return run, True


def reset_failed_import_run(db: Session, run: ImportRun, *, source_name: str) -> None:
    db.execute(delete(Transaction).where(Transaction.import_run_id == run.id))
    db.execute(delete(SkippedRow).where(SkippedRow.import_run_id == run.id))

    run.source_name = source_name
    run.status = "queued"
    run.error = None
    run.completed_at = None
    run.total_rows = 0
    run.imported_rows = 0
    run.skipped_rows = 0
    db.commit()


def mark_import_running(db: Session, run: ImportRun) -> None:
    run.status = "running"
    run.started_at = utc_now()
    run.error = None
    db.commit()


def mark_import_succeeded(db: Session, run: ImportRun, *, total_rows: int, imported_rows: int, skipped_rows: int) -> None:
    run.status = "succeeded"
    run.total_rows = total_rows
    run.imported_rows = imported_rows
    run.skipped_rows = skipped_rows
    run.completed_at = utc_now()
    run.error = None
    db.commit()


def mark_import_failed(db: Session, run: ImportRun, *, error: str, total_rows: int = 0) -> None:
    db.rollback()
    run.status = "failed"
    run.error = error
    run.total_rows = total_rows
    run.imported_rows = 0
    run.skipped_rows = 0
    run.completed_at = utc_now()
    db.commit()


def store_transactions(db: Session, *, import_run_id: int, records: list[ImportRecord]) -> list[Transaction]:
    rows = [
        Transaction(
            import_run_id=import_run_id,
            date=record.date,
            description=record.description,
            amount=record.amount,
            kind=str(record.kind),
            category_id=record.category_id,
            source_id=record.source_id,
            import_type=record.import_type,
        )
        for record in records
    ]
    db.add_all(rows)
    db.flush()
    return rows


def store_skipped_rows(db: Session, *, import_run_id: int, rows: list[RawRow], batch: ImportBatch) -> None:
    for index, (row, outcome) in enumerate(zip(rows, batch.outcomes, strict=True)):
        if outcome.is_valid:
            continue
        db.add(
            SkippedRow(
                import_run_id=import_run_id,
                row_index=index,
                raw_row=json.dumps(row),
                reason="; ".join(outcome.errors),
            )
        )
    db.flush()


def list_transactions(db: Session, *, import_run_id: int | None = None) -> list[Transaction]:
    stmt = select(Transaction).order_by(Transaction.id)
    if import_run_id is not None:
        stmt = stmt.where(Transaction.import_run_id == import_run_id)
    return list(db.execute(stmt).scalars().all())

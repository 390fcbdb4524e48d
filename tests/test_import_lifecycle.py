from dataclasses import replace
from decimal import Decimal
import json
from pathlib import Path

from sqlalchemy import select

from csvledger.db_models import ImportRun, SkippedRow, Transaction
from csvledger.import_store import list_transactions
from csvledger.schemas import ImportDefaults, TransactionKind


def write_csv(root: Path, name: str, text: str) -> Path:
    path = root / "data" / name
    path.write_text(text, encoding="utf-8")
    return path


STATEMENT = (
    "Date,Memo,Amount\n"
    "01/05/2024,Coffee,-4.50\n"
    "01/06/2024,Paycheck,\"2,000.00\"\n"
    "02/30/2024,Ghost,-1.00\n"
)


def test_import_persists_valid_rows_and_dead_letters(importer, temp_workspace: Path) -> None:
    path = write_csv(temp_workspace, "january.csv", STATEMENT)

    result = importer.run(path)

    assert result.status == "succeeded"
    assert result.total_rows == 3
    assert result.imported_rows == 2
    assert result.skipped_rows == 1
    assert result.reused_existing_run is False
    assert result.message == "2 transactions imported, 1 row skipped due to validation errors."

    with importer.session_factory() as db:
        transactions = list_transactions(db, import_run_id=result.import_run_id)
        assert [(t.description, t.kind, t.amount) for t in transactions] == [
            ("Coffee", "expense", Decimal("4.50")),
            ("Paycheck", "income", Decimal("2000.00")),
        ]
        assert all(t.source_id == "checking" for t in transactions)
        assert all(t.import_type == "imported" for t in transactions)

        skipped = db.execute(select(SkippedRow).where(SkippedRow.import_run_id == result.import_run_id)).scalars().all()
        assert len(skipped) == 1
        assert skipped[0].row_index == 2
        assert json.loads(skipped[0].raw_row) == ["02/30/2024", "Ghost", "-1.00"]
        assert "02/30/2024" in skipped[0].reason


def test_same_file_content_is_not_imported_twice(importer, temp_workspace: Path) -> None:
    first = importer.run(write_csv(temp_workspace, "a.csv", STATEMENT))
    second = importer.run(write_csv(temp_workspace, "copy-of-a.csv", STATEMENT))

    assert second.reused_existing_run is True
    assert second.import_run_id == first.import_run_id
    assert second.source_name == "a.csv"

    with importer.session_factory() as db:
        assert len(list_transactions(db)) == 2


def test_empty_file_fails_and_can_be_retried_with_same_key(importer, temp_workspace: Path) -> None:
    empty = write_csv(temp_workspace, "empty.csv", "\n\n")

    first = importer.run(empty, import_key="statement-2024-01")

    assert first.status == "failed"
    assert first.error == "CSV file is empty"
    assert first.message == "import failed: CSV file is empty"

    fixed = write_csv(temp_workspace, "fixed.csv", STATEMENT)
    second = importer.run(fixed, import_key="statement-2024-01")

    assert second.status == "succeeded"
    assert second.reused_existing_run is False
    assert second.import_run_id == first.import_run_id
    assert second.source_name == "fixed.csv"

    with importer.session_factory() as db:
        run = db.execute(select(ImportRun).where(ImportRun.import_key == "statement-2024-01")).scalar_one()
        assert run.status == "succeeded"
        assert run.error is None


def test_missing_file_fails_without_a_run(importer, temp_workspace: Path) -> None:
    result = importer.run(temp_workspace / "data" / "nope.csv")

    assert result.status == "failed"
    assert result.import_run_id == 0
    assert "not found" in result.error

    with importer.session_factory() as db:
        assert db.execute(select(ImportRun)).scalars().all() == []


def test_overrides_and_defaults_are_applied(importer, temp_workspace: Path) -> None:
    path = write_csv(
        temp_workspace,
        "bank.csv",
        "\ufeffPosted;Payee;Debit\n01/05/2024;Refund;0\n01/06/2024;Grocer;-25.10\n",
    )
    importer.settings = replace(importer.settings, csv_delimiter=";")

    result = importer.run(
        path,
        overrides={"date": 0, "description": 1, "amount": 2},
        defaults=ImportDefaults(kind=TransactionKind.INCOME, category_id="food", source_id="visa"),
    )

    assert result.status == "succeeded"
    assert result.imported_rows == 2

    with importer.session_factory() as db:
        transactions = db.execute(select(Transaction).order_by(Transaction.id)).scalars().all()
        assert [(t.date, t.kind, t.category_id, t.source_id) for t in transactions] == [
            ("2024-01-05", "income", "food", "visa"),
            ("2024-01-06", "expense", "food", "visa"),
        ]


def test_reimport_with_corrected_mapping_is_not_reused(importer, temp_workspace: Path) -> None:
    path = write_csv(temp_workspace, "unlabelled.csv", "When,What,Debit\n01/05/2024,Coffee,-4.50\n")

    first = importer.run(path)

    assert first.status == "succeeded"
    assert (first.imported_rows, first.skipped_rows) == (0, 1)

    second = importer.run(path, overrides={"date": 0, "description": 1, "amount": 2})

    assert second.reused_existing_run is False
    assert second.import_key != first.import_key
    assert (second.imported_rows, second.skipped_rows) == (1, 0)

    third = importer.run(path, overrides={"date": 0, "description": 1, "amount": 2})

    assert third.reused_existing_run is True
    assert third.import_run_id == second.import_run_id


def test_reimport_with_other_defaults_is_a_new_import(importer, temp_workspace: Path) -> None:
    path = write_csv(temp_workspace, "january.csv", STATEMENT)

    first = importer.run(path, defaults=ImportDefaults(category_id="food", source_id="visa"))
    second = importer.run(path, defaults=ImportDefaults(category_id="travel", source_id="visa"))

    assert second.reused_existing_run is False
    assert second.import_run_id != first.import_run_id


def test_bad_default_kind_fails_without_a_run(importer, temp_workspace: Path) -> None:
    importer.settings = replace(importer.settings, default_transaction_kind="refund")

    result = importer.run(write_csv(temp_workspace, "january.csv", STATEMENT))

    assert result.status == "failed"
    assert result.import_run_id == 0


def test_amount_column_holds_long_grouped_amounts(importer, temp_workspace: Path) -> None:
    amount_type = Transaction.__table__.c.amount.type
    assert amount_type.precision - amount_type.scale >= 16

    path = write_csv(temp_workspace, "big.csv", 'Date,Memo,Amount\n01/05/2024,Bond,"1,234,567,890,123.00"\n')

    result = importer.run(path)

    assert result.imported_rows == 1
    with importer.session_factory() as db:
        assert list_transactions(db)[0].amount == Decimal("1234567890123.00")

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum


UNSET_COLUMN = -1

RawRow = list[str]


class TransactionKind(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class Diagnostic:
    line: int
    code: str
    message: str


@dataclass(frozen=True)
class ParseResult:
    rows: list[RawRow]
    errors: list[Diagnostic] = field(default_factory=list)


@dataclass(frozen=True)
class ColumnMapping:
    date: int = UNSET_COLUMN
    description: int = UNSET_COLUMN
    amount: int = UNSET_COLUMN
    expected_columns: int = 0


@dataclass(frozen=True)
class ValidationOutcome:
    is_valid: bool
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationSummary:
    valid: int
    invalid: int

    @property
    def message(self) -> str:
        if self.invalid == 0:
            return f"All {_plural(self.valid, 'row')} validated successfully"
        return (
            f"{_plural(self.valid, 'valid row')}, {_plural(self.invalid, 'invalid row')} "
            "(will be skipped during import)"
        )


@dataclass(frozen=True)
class ImportDefaults:
    kind: TransactionKind = TransactionKind.EXPENSE
    category_id: str = "uncategorized"
    source_id: str | None = None


@dataclass(frozen=True)
class ImportRecord:
    date: str
    description: str
    amount: Decimal
    kind: TransactionKind
    category_id: str
    source_id: str | None
    import_type: str = "imported"


@dataclass(frozen=True)
class ImportBatch:
    records: list[ImportRecord]
    skipped: int
    outcomes: list[ValidationOutcome]


@dataclass(frozen=True)
class ImportResult:
    import_run_id: int
    import_key: str
    source_name: str
    status: str
    total_rows: int
    imported_rows: int
    skipped_rows: int
    error: str | None
    reused_existing_run: bool

    @property
    def message(self) -> str:
        if self.status == "failed":
            return f"import failed: {self.error}"
        imported = _plural(self.imported_rows, "transaction")
        if self.skipped_rows > 0:
            return f"{imported} imported, {_plural(self.skipped_rows, 'row')} skipped due to validation errors."
        return f"{imported} imported successfully."


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"

from dataclasses import replace
from decimal import Decimal
import logging
import re

from csvledger.exceptions import EmptyFileError, SessionCommittedError
from csvledger.row_validation import validate_row
from csvledger.schemas import (
    UNSET_COLUMN,
    ColumnMapping,
    ImportBatch,
    ImportDefaults,
    ImportRecord,
    RawRow,
    TransactionKind,
    ValidationOutcome,
    ValidationSummary,
)
from csvledger.tokenizer import parse
from csvledger.validators import parse_calendar_date, parse_currency_amount


logger = logging.getLogger(__name__)

DATE_HEADER = re.compile(r"date", re.IGNORECASE)
AMOUNT_HEADER = re.compile(r"amount|amt|value|total", re.IGNORECASE)
DESCRIPTION_HEADER = re.compile(r"desc|description|memo|detail", re.IGNORECASE)

CENTS = Decimal("0.01")

PREVIEWING = "previewing"
COMMITTED = "committed"

_KEEP = object()


def detect_columns(headers: list[str]) -> ColumnMapping:
    return ColumnMapping(
        date=_first_match(headers, DATE_HEADER),
        description=_first_match(headers, DESCRIPTION_HEADER),
        amount=_first_match(headers, AMOUNT_HEADER),
        expected_columns=len(headers),
    )


def validate_rows(rows: list[RawRow], mapping: ColumnMapping) -> list[ValidationOutcome]:
    return [validate_row(row, mapping.expected_columns, mapping.date, mapping.amount) for row in rows]


def convert_rows(
    rows: list[RawRow],
    outcomes: list[ValidationOutcome],
    mapping: ColumnMapping,
    defaults: ImportDefaults,
) -> ImportBatch:
    records: list[ImportRecord] = []
    skipped = 0

    for index, (row, outcome) in enumerate(zip(rows, outcomes, strict=True)):
        if not outcome.is_valid:
            skipped += 1
            continue

        amount = parse_currency_amount(_cell(row, mapping.amount))
        parsed_date = parse_calendar_date(_cell(row, mapping.date))
        if amount is None or parsed_date is None:
            # Valid rows only land here when the date or amount column is unmapped.
            logger.debug("row skipped at conversion", extra={"row_index": index})
            skipped += 1
            continue

        records.append(
            ImportRecord(
                date=parsed_date,
                description=_cell(row, mapping.description) or "",
                amount=abs(amount).quantize(CENTS),
                kind=_infer_kind(amount, defaults.kind),
                category_id=defaults.category_id,
                source_id=defaults.source_id,
            )
        )

    return ImportBatch(records=records, skipped=skipped, outcomes=list(outcomes))


class ImportSession:
    def __init__(self, headers: list[str], rows: list[RawRow], mapping: ColumnMapping | None = None) -> None:
        self.headers = headers
        self.rows = rows
        self.mapping = mapping if mapping is not None else detect_columns(headers)
        self.state = PREVIEWING
        self.outcomes: list[ValidationOutcome] = []
        self.batch: ImportBatch | None = None
        self.validate()

    @classmethod
    def from_text(cls, text: str, *, delimiter: str = ",") -> "ImportSession":
        result = parse(text, delimiter=delimiter, skip_empty_lines=True, trim_headers=True, header=True)
        for diagnostic in result.errors:
            logger.warning(
                "csv parsing warning",
                extra={"line": diagnostic.line, "code": diagnostic.code, "detail": diagnostic.message},
            )

        if not result.rows:
            raise EmptyFileError()

        headers, *rows = result.rows
        return cls(headers, rows)

    def validate(self) -> list[ValidationOutcome]:
        self.outcomes = validate_rows(self.rows, self.mapping)
        return self.outcomes

    def remap(self, *, date=_KEEP, description=_KEEP, amount=_KEEP) -> list[ValidationOutcome]:
        self._ensure_previewing("remap")
        changes = {
            name: UNSET_COLUMN if value is None else int(value)
            for name, value in (("date", date), ("description", description), ("amount", amount))
            if value is not _KEEP
        }
        self.mapping = replace(self.mapping, **changes)
        return self.validate()

    def summary(self) -> ValidationSummary:
        valid = sum(1 for outcome in self.outcomes if outcome.is_valid)
        return ValidationSummary(valid=valid, invalid=len(self.outcomes) - valid)

    def commit(self, defaults: ImportDefaults) -> ImportBatch:
        self._ensure_previewing("commit")
        if self.mapping.date == UNSET_COLUMN or self.mapping.amount == UNSET_COLUMN:
            logger.warning(
                "committing without a date or amount column; every row will be skipped",
                extra={"date_column": self.mapping.date, "amount_column": self.mapping.amount},
            )

        self.batch = convert_rows(self.rows, self.outcomes, self.mapping, defaults)
        self.state = COMMITTED
        logger.info(
            "import session committed",
            extra={"accepted": len(self.batch.records), "skipped": self.batch.skipped},
        )
        return self.batch

    def _ensure_previewing(self, action: str) -> None:
        if self.state == COMMITTED:
            raise SessionCommittedError(f"cannot {action} a committed import session; start a new one")


def _first_match(headers: list[str], pattern: re.Pattern[str]) -> int:
    for index, name in enumerate(headers):
        if pattern.search(name):
            return index
    return UNSET_COLUMN


def _cell(row: RawRow, index: int) -> str | None:
    if 0 <= index < len(row):
        return row[index]
    return None


def _infer_kind(amount: Decimal, default: TransactionKind) -> TransactionKind:
    if amount == 0:
        return default
    return TransactionKind.EXPENSE if amount < 0 else TransactionKind.INCOME

from csvledger.schemas import RawRow, ValidationOutcome
from csvledger.validators import parse_calendar_date, parse_currency_amount


def validate_row(
    row: RawRow,
    expected_columns: int,
    date_index: int,
    amount_index: int,
) -> ValidationOutcome:
    errors: list[str] = []

    if len(row) != expected_columns:
        errors.append(f"Expected {expected_columns} columns, got {len(row)}")

    if _in_range(row, date_index):
        raw_date = row[date_index]
        if parse_calendar_date(raw_date) is None:
            errors.append(f'Invalid date format: "{raw_date}" (expected MM/DD/YYYY)')

    if _in_range(row, amount_index):
        raw_amount = row[amount_index]
        if parse_currency_amount(raw_amount) is None:
            errors.append(f'Invalid amount format: "{raw_amount}"')

    return ValidationOutcome(is_valid=not errors, errors=tuple(errors))


def _in_range(row: RawRow, index: int) -> bool:
    # Out-of-range and negative indices mean the check does not apply.
    return 0 <= index < len(row)

from datetime import date
from decimal import Decimal, InvalidOperation
import re


_DATE_PATTERN = re.compile(r"([0-9]{1,2})/([0-9]{1,2})/([0-9]{4})")
_AMOUNT_PATTERN = re.compile(r"-?(?:[0-9]{1,3}(?:,[0-9]{3})+|[0-9]{1,10})(?:\.[0-9]{1,2})?")

MIN_YEAR = 1900
MAX_YEAR = 2100


def parse_calendar_date(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None

    match = _DATE_PATTERN.fullmatch(raw.strip())
    if match is None:
        return None

    month, day, year = (int(token) for token in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= 31 or not MIN_YEAR <= year <= MAX_YEAR:
        return None

    try:
        parsed = date(year, month, day)
    except ValueError:
        # April 31, February 30 and friends.
        return None
    return parsed.isoformat()


def parse_currency_amount(raw: object) -> Decimal | None:
    if not isinstance(raw, str):
        return None

    candidate = raw.strip()
    if _AMOUNT_PATTERN.fullmatch(candidate) is None:
        return None

    try:
        return Decimal(candidate.replace(",", ""))
    except InvalidOperation:
        return None

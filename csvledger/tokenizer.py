from csvledger.schemas import Diagnostic, ParseResult, RawRow


QUOTE = '"'
NEWLINE = "\n"


def parse(
    text: str,
    *,
    delimiter: str = ",",
    skip_empty_lines: bool = True,
    trim_headers: bool = True,
    header: bool = False,
) -> ParseResult:
    if len(delimiter) != 1 or delimiter in (QUOTE, NEWLINE, "\r"):
        raise ValueError(f"unsupported delimiter: {delimiter!r}")

    text = text.replace("\r\n", NEWLINE).replace("\r", NEWLINE)

    rows: list[RawRow] = []
    errors: list[Diagnostic] = []
    length = len(text)
    pos = 0
    line = 1

    while pos < length:
        row_line = line
        row: RawRow = []

        while True:
            if pos < length and text[pos] == QUOTE:
                cell, pos, closed = _read_quoted(text, pos + 1)
                line += cell.count(NEWLINE)
                if not closed:
                    errors.append(
                        Diagnostic(row_line, "unterminated_quote", "quoted field is not closed before end of input")
                    )
                # Anything between the closing quote and the next separator is dropped.
                while pos < length and text[pos] != delimiter and text[pos] != NEWLINE:
                    pos += 1
            else:
                start = pos
                while pos < length and text[pos] != delimiter and text[pos] != NEWLINE:
                    pos += 1
                cell = text[start:pos].strip()

            row.append(cell)

            if pos < length and text[pos] == delimiter:
                pos += 1
                continue
            break

        if pos < length:
            # text[pos] is the line feed that ended the row.
            pos += 1
            line += 1

        if skip_empty_lines and not any(row):
            continue
        rows.append(row)

    if header and trim_headers and rows:
        rows[0] = [cell.strip() for cell in rows[0]]

    return ParseResult(rows=rows, errors=errors)


def _read_quoted(text: str, pos: int) -> tuple[str, int, bool]:
    # Returns the unescaped cell, the position after it and whether a closing quote was seen.
    length = len(text)
    parts: list[str] = []
    while pos < length:
        end = text.find(QUOTE, pos)
        if end == -1:
            parts.append(text[pos:])
            return "".join(parts), length, False
        parts.append(text[pos:end])
        if end + 1 < length and text[end + 1] == QUOTE:
            parts.append(QUOTE)
            pos = end + 2
            continue
        return "".join(parts), end + 1, True
    return "".join(parts), pos, False

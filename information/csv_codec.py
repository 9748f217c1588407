"""
CSV import/export for information tables.

parse_csv() reads RFC 4180 text (quoted fields may hold commas, doubled
quotes and line breaks) into ordered columns plus one dict per row;
generate_csv() writes the same shape back, so that
parse_csv(generate_csv(columns, rows)) gives back columns and rows as text.
"""
import csv
import io
import os
from typing import Any, Dict, List, NamedTuple

from utils.errors import ParseError, ValidationError

ALLOWED_UPLOADS = (".csv", ".xlsx")


class ParsedCSV(NamedTuple):
    columns: List[str]
    rows: List[Dict[str, Any]]


def _ensure_field_limit(size: int):
    # the reader's limit is process-wide; never shrink it
    if size > csv.field_size_limit():
        csv.field_size_limit(size)


def _records(text: str):
    """
    Yields non-blank records. A record is blank when its source lines are
    whitespace only or all of its fields are empty; quoted values are kept as-is.
    """
    _ensure_field_limit(len(text) + 1)
    consumed = []

    def lines():
        for line in io.StringIO(text, newline=""):
            consumed.append(line)
            yield line

    reader = csv.reader(lines())
    try:
        for record in reader:
            source = "".join(consumed)
            consumed.clear()
            if not source.strip() or not any(record):
                continue
            yield record
    except csv.Error as e:
        raise ParseError(f"Malformed CSV near line {reader.line_num}: {e}") from e


def _to_parsed(records) -> ParsedCSV:
    records = iter(records)
    try:
        header = next(records)
    except StopIteration:
        raise ParseError("CSV file is empty") from None

    columns = list(header)
    rows = []
    for record in records:
        rows.append({col: (record[i] if i < len(record) else "") for i, col in enumerate(columns)})
    return ParsedCSV(columns, rows)


def parse_csv(text: str) -> ParsedCSV:
    if text is None:
        raise ParseError("CSV file is empty")
    return _to_parsed(_records(text.lstrip("\ufeff")))


def validate_csv(parsed: ParsedCSV):
    if not parsed.columns:
        raise ValidationError("No columns found in CSV")
    if any(not c for c in parsed.columns):
        raise ValidationError("Column names cannot be blank")
    if len(set(parsed.columns)) != len(parsed.columns):
        raise ValidationError("Duplicate column names found")
    if not parsed.rows:
        raise ValidationError("No data rows found in CSV")


def escape_field(value: str) -> str:
    # whitespace-only values are quoted too, otherwise a one-column line reads as blank
    if any(ch in value for ch in (',', '"', '\n', '\r')) or (value and not value.strip()):
        return '"' + value.replace('"', '""') + '"'
    return value


def _cell(value) -> str:
    return "" if value is None else str(value)


def generate_csv(columns: List[str], rows: List[Dict[str, Any]]) -> str:
    """Header line then one line per row, '\\n'-separated, no trailing newline."""
    lines = [",".join(escape_field(_cell(col)) for col in columns)]
    for row in rows:
        lines.append(",".join(escape_field(_cell(row.get(col))) for col in columns))
    return "\n".join(lines)


# -----------------------------
# Uploads (.csv / .xlsx)
# -----------------------------
def _xlsx_records(stream):
    import openpyxl

    try:
        wb = openpyxl.load_workbook(stream, read_only=True, data_only=True)
    except Exception as e:
        raise ParseError(f"Could not read workbook: {e}") from e
    try:
        ws = wb.active
        for values in ws.iter_rows(values_only=True):
            record = ["" if v is None else str(v).strip() for v in values]
            # trailing empty cells come from sheet formatting, not data
            while record and record[-1] == "":
                record.pop()
            if any(record):
                yield record
    finally:
        wb.close()


def parse_upload(filename: str, stream) -> ParsedCSV:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_UPLOADS:
        raise ValidationError("Unsupported file type. Use .csv or .xlsx")

    if ext == ".xlsx":
        return _to_parsed(_xlsx_records(stream))

    raw = stream.read()
    try:
        text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as e:
        raise ParseError("CSV must be UTF-8 encoded") from e
    return parse_csv(text)

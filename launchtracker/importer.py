"""Contact list parsing for CSV and XLSX uploads.

Both formats need a header row with at least ``email`` and ``segment``; ``name`` and
``tags`` (separated by ``;``) are optional. Header names are case-insensitive.
"""
from __future__ import annotations

import csv
import io
import logging
import zipfile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError as PydanticValidationError

from launchtracker.errors import ValidationError
from launchtracker.schemas import ContactImportRow

log = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("email", "segment")
TAG_SEPARATOR = ";"


def _s(value: object) -> str:
    """Safely coerce cell value to stripped string."""
    if value is None:
        return ""
    return str(value).strip()


def _segment(value: str) -> str:
    return value.strip().lower().replace(" ", "_").replace("-", "_")


def _check_headers(headers: list[str]) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise ValidationError(
            f"Missing required column{'s' if len(missing) > 1 else ''}: {', '.join(missing)}",
            [{"field": c, "message": "Missing required column"} for c in missing],
        )


# ---------------------------------------------------------------------------
# Readers: each yields (row_number, {header: value}) with 1-based sheet row numbers
# ---------------------------------------------------------------------------


def read_csv_rows(text: str) -> tuple[list[tuple[int, dict[str, str]]], list[dict]]:
    reader = csv.reader(io.StringIO(text.strip()))
    lines = [row for row in reader]
    if len(lines) < 2:
        raise ValidationError("CSV must have at least a header row and one data row")
    headers = [_s(h).lower() for h in lines[0]]
    _check_headers(headers)

    rows: list[tuple[int, dict[str, str]]] = []
    errors: list[dict] = []
    for idx, values in enumerate(lines[1:], start=2):
        if not any(_s(v) for v in values):
            continue
        if len(values) != len(headers):
            errors.append({"row": idx, "message": "Column count mismatch"})
            continue
        rows.append((idx, {h: _s(v) for h, v in zip(headers, values)}))
    return rows, errors


def read_xlsx_rows(content: bytes) -> tuple[list[tuple[int, dict[str, str]]], list[dict]]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ValidationError(f"Could not read spreadsheet: {exc}") from exc
    try:
        ws = wb.worksheets[0]
        all_rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()
    if len(all_rows) < 2:
        raise ValidationError("Spreadsheet must have at least a header row and one data row")
    headers = [_s(h).lower() for h in all_rows[0]]
    _check_headers(headers)

    rows: list[tuple[int, dict[str, str]]] = []
    for idx, values in enumerate(all_rows[1:], start=2):
        if not values or not any(_s(v) for v in values):
            continue
        rows.append((idx, {h: _s(v) for h, v in zip(headers, values) if h}))
    return rows, []


# ---------------------------------------------------------------------------
# Row validation
# ---------------------------------------------------------------------------


def to_contact_rows(
    rows: list[tuple[int, dict[str, str]]],
) -> tuple[list[ContactImportRow], list[dict]]:
    """Validate raw rows; invalid rows are reported by row number instead of raising."""
    valid: list[ContactImportRow] = []
    errors: list[dict] = []
    for idx, raw in rows:
        tags = [t.strip() for t in raw.get("tags", "").split(TAG_SEPARATOR) if t.strip()]
        try:
            valid.append(ContactImportRow.model_validate({
                "email": raw.get("email", ""),
                "name": raw.get("name") or None,
                "segment": _segment(raw.get("segment", "")),
                "tags": tags,
            }))
        except PydanticValidationError as exc:
            message = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            errors.append({"row": idx, "message": message})
    return valid, errors


def parse_contacts_file(filename: str, content: bytes) -> tuple[list[ContactImportRow], list[dict]]:
    name = (filename or "").lower()
    if name.endswith(".csv"):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ValidationError("CSV file must be UTF-8 encoded") from exc
        raw_rows, errors = read_csv_rows(text)
    elif name.endswith(".xlsx"):
        raw_rows, errors = read_xlsx_rows(content)
    else:
        raise ValidationError("Only .csv and .xlsx files are supported")

    contacts, row_errors = to_contact_rows(raw_rows)
    errors = sorted(errors + row_errors, key=lambda e: e["row"])
    log.info("Parsed %s: %d valid rows, %d rejected", filename, len(contacts), len(errors))
    return contacts, errors

"""
Statement Readers Module

Turns CSV and Excel statement exports into plain tabular rows for the normalizer.
"""

import csv
import logging
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from .base import UnsupportedFileError

logger = logging.getLogger(__name__)


CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS


def read_csv_rows(content: str | bytes, delimiter: str = ",") -> list[list[str]]:
    """Parse CSV content into rows.

    Args:
        content: CSV content as text or UTF-8 bytes
        delimiter: CSV delimiter

    Returns:
        List of rows, blank lines removed
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")

    # Remove BOM if present
    if content.startswith('\ufeff'):
        content = content[1:]

    # Normalize line endings
    content = content.replace('\r\n', '\n').replace('\r', '\n')

    reader = csv.reader(StringIO(content), delimiter=delimiter)
    return [
        [cell.strip() for cell in row]
        for row in reader
        if any(cell.strip() for cell in row)
    ]


def read_excel_rows(source: bytes | Path | str) -> list[list[Any]]:
    """Read the first worksheet of an Excel workbook.

    Cell values keep their native types, so dates arrive as datetimes and
    amounts as numbers.

    Args:
        source: Workbook bytes or path

    Returns:
        List of rows, fully empty rows removed
    """
    if isinstance(source, bytes):
        source = BytesIO(source)

    wb = load_workbook(source, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = []
        for row in ws.iter_rows(values_only=True):
            values = list(row)
            if any(v is not None and str(v).strip() for v in values):
                rows.append(values)
        return rows
    finally:
        wb.close()


def read_statement_content(file_name: str, content: bytes) -> list[list[Any]]:
    """Read uploaded statement bytes, choosing the reader from the file name.

    Args:
        file_name: Original file name
        content: File content

    Returns:
        Tabular rows including the header row

    Raises:
        UnsupportedFileError: If the extension is not CSV or Excel
    """
    ext = Path(file_name).suffix.lower()

    if ext in CSV_EXTENSIONS:
        return read_csv_rows(content)
    if ext in EXCEL_EXTENSIONS:
        return read_excel_rows(content)

    raise UnsupportedFileError(
        f"Unsupported statement file {file_name!r}. "
        f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


def read_statement_file(file_path: Path | str) -> list[list[Any]]:
    """Read a statement file from disk.

    Args:
        file_path: Path to a CSV or Excel statement

    Returns:
        Tabular rows including the header row
    """
    file_path = Path(file_path)

    with open(file_path, "rb") as f:
        content = f.read()

    rows = read_statement_content(file_path.name, content)
    logger.info(f"Read {len(rows)} rows from {file_path.name}")
    return rows
